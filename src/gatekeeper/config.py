from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Gatekeeper"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8787
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/gatekeeper.db"
    data_dir: Path = Path("./data")
    asset_dir: Path = Path("./data/assets")
    asset_base_url: str = "http://127.0.0.1:8787/assets"
    upload_chunk_size: int = 256 * 1024
    max_resume_bytes: int = 5 * 1024 * 1024
    allowed_resume_extensions: str = ".pdf,.docx,.doc"

    recording_max_seconds: int = 10
    recording_tick_sec: float = 1.0
    recording_width: int = 1280
    recording_height: int = 720
    recording_facing_mode: str = "user"
    camera_index: int = 0
    camera_fps: float = 24.0

    thumbnail_width: int = 320
    thumbnail_quality: int = 85
    thumbnail_seek_sec: float = 1.0
    thumbnail_seek_ratio: float = 0.3

    screening_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    screening_api_key: str = ""
    screening_model: str = "gemini-2.0-flash"
    screening_timeout_sec: int = 45
    screening_progress_interval_ms: int = 800
    screening_max_resume_chars: int = 20000
    manual_recovery_ttl_sec: int = 3600

    resend_api_key: str = ""
    resend_base_url: str = "https://api.resend.com"
    resend_from: str = "Gatekeeper <onboarding@resend.dev>"
    notification_timeout_sec: int = 10
    career_page_url: str = ""

    cors_origins: str = "http://127.0.0.1:8787"

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("thumbnail_quality")
    @classmethod
    def validate_quality(cls, value: int) -> int:
        if value < 1 or value > 100:
            raise ValueError("thumbnail_quality must be between 1 and 100")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def resume_extension_list(self) -> list[str]:
        return [ext.strip().lower() for ext in self.allowed_resume_extensions.split(",") if ext.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
