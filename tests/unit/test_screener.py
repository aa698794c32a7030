from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from gatekeeper.config import Settings
from gatekeeper.errors import ScreeningFailure
from gatekeeper.llm.prompts import MISSING_RESUME_TEXT
from gatekeeper.llm.screener import LLMResumeScreener
from gatekeeper.storage.assets import LocalAssetStore


class RecordingProvider:
    def __init__(self, payload: dict):
        self.payload = payload
        self.prompts: list[tuple[str, str]] = []

    def complete_json(self, *, model: str, prompt: str) -> dict:
        self.prompts.append((model, prompt))
        return self.payload


def _store(tmp_path: Path) -> LocalAssetStore:
    return LocalAssetStore(tmp_path, base_url="http://assets.local")


def test_missing_api_key_is_a_screening_failure() -> None:
    screener = LLMResumeScreener(Settings(screening_api_key=""))
    with pytest.raises(ScreeningFailure, match="not configured"):
        asyncio.run(screener.screen("resume text", "job"))


def test_plain_text_and_empty_refs_resolve_without_fetching() -> None:
    screener = LLMResumeScreener(Settings())
    assert screener.resolve_resume_text("  Built React apps  ") == "Built React apps"
    assert screener.resolve_resume_text("") == MISSING_RESUME_TEXT


def test_local_asset_url_is_read_from_the_store(tmp_path: Path) -> None:
    store = _store(tmp_path)
    url = asyncio.run(store.upload("acme/candidates/c1/resume_cv.txt", b"Senior React engineer", content_type="text/plain"))

    screener = LLMResumeScreener(Settings(), asset_store=store)

    assert screener.resolve_resume_text(url) == "Senior React engineer"


def test_unreadable_resume_is_a_screening_failure(tmp_path: Path) -> None:
    store = _store(tmp_path)
    legacy = asyncio.run(store.upload("acme/candidates/c1/resume_cv.doc", b"\xd0\xcf\x11\xe0", content_type="application/msword"))
    blank = asyncio.run(store.upload("acme/candidates/c1/resume_blank.txt", b"   ", content_type="text/plain"))
    screener = LLMResumeScreener(Settings(), asset_store=store)

    with pytest.raises(ScreeningFailure, match="could not read"):
        screener.resolve_resume_text(legacy)
    with pytest.raises(ScreeningFailure, match="no extractable text"):
        screener.resolve_resume_text(blank)


def test_screen_sends_job_and_truncated_resume_to_the_model() -> None:
    provider = RecordingProvider({"score": 64, "verdict": "Review"})
    settings = Settings(screening_model="gemini-test", screening_max_resume_chars=12)
    screener = LLMResumeScreener(settings, provider=provider)

    raw = asyncio.run(screener.screen("React TypeScript Firebase Jest", "Senior React Engineer"))

    assert raw == {"score": 64, "verdict": "Review"}
    model, prompt = provider.prompts[0]
    assert model == "gemini-test"
    assert "Senior React Engineer" in prompt
    assert "React TypeSc" in prompt
    assert "Firebase" not in prompt
