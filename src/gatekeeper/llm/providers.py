from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from openai import OpenAI

from gatekeeper.config import Settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    timeout_sec: int


class LLMProvider:
    """Chat-completions client for any OpenAI-compatible endpoint (Gemini by default)."""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.client = OpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=float(config.timeout_sec),
            max_retries=1,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> LLMProvider:
        return cls(
            ProviderConfig(
                name="screening",
                base_url=settings.screening_base_url,
                api_key=settings.screening_api_key,
                timeout_sec=settings.screening_timeout_sec,
            )
        )

    def complete_json(self, *, model: str, prompt: str) -> dict[str, Any]:
        try:
            content = self._chat(model=model, prompt=prompt, json_mode=True)
        except Exception as exc:
            if not self._is_unsupported_json_mode(exc):
                raise
            logger.warning(
                "JSON response format rejected by provider=%s base_url=%s; retrying as plain text (%s)",
                self.config.name,
                self.config.base_url,
                exc,
            )
            content = self._chat(model=model, prompt=prompt, json_mode=False)
        return parse_json(content)

    def _chat(self, *, model: str, prompt: str, json_mode: bool) -> str:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = self.client.chat.completions.create(**kwargs)
        return self._extract_chat_text(response)

    @staticmethod
    def _extract_chat_text(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""

        message = getattr(choices[0], "message", None)
        if message is None:
            return ""

        content = getattr(message, "content", "")
        if isinstance(content, str):
            return content
        if content is None:
            return ""
        return str(content)

    @staticmethod
    def _is_unsupported_json_mode(exc: Exception) -> bool:
        if getattr(exc, "status_code", None) != 400:
            return False
        message = str(exc).lower()
        return "response_format" in message or "json" in message


def parse_json(content: str) -> dict[str, Any]:
    candidate = content.strip()
    if not candidate:
        return {}

    if "```" in candidate:
        for part in candidate.split("```"):
            part = part.strip()
            if part.startswith("json"):
                part = part[4:].strip()
            if part.startswith("{") and part.endswith("}"):
                candidate = part
                break

    try:
        value = json.loads(candidate)
        return value if isinstance(value, dict) else {}
    except json.JSONDecodeError:
        logger.warning("Failed to parse JSON model output")
        return {}
