from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import unquote, urlparse

import requests

from gatekeeper.config import Settings, get_settings
from gatekeeper.core.resume_text import extract_resume_text
from gatekeeper.errors import ScreeningFailure
from gatekeeper.llm.prompts import MISSING_RESUME_TEXT, SCREENING_PROMPT
from gatekeeper.llm.providers import LLMProvider
from gatekeeper.storage.assets import LocalAssetStore

logger = logging.getLogger(__name__)


class LLMResumeScreener:
    """Scores a resume against a job description with an OpenAI-compatible model.

    ``resume_ref`` is either an uploaded asset URL or resume text. Unreadable
    resumes raise ScreeningFailure so the applicant is asked to paste text.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        provider: LLMProvider | None = None,
        asset_store: LocalAssetStore | None = None,
    ):
        self.settings = settings or get_settings()
        self._provider = provider
        self.asset_store = asset_store

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            if not self.settings.screening_api_key:
                raise ScreeningFailure("screening provider is not configured")
            self._provider = LLMProvider.from_settings(self.settings)
        return self._provider

    async def screen(self, resume_ref: str, job_description: str) -> dict[str, Any]:
        provider = self.provider
        resume_text = await asyncio.to_thread(self.resolve_resume_text, resume_ref)
        prompt = SCREENING_PROMPT.format(
            job_description=job_description.strip() or "(no description provided)",
            resume_text=resume_text[: self.settings.screening_max_resume_chars],
        )
        logger.info("Screening resume chars=%s", len(resume_text))
        return await asyncio.to_thread(provider.complete_json, model=self.settings.screening_model, prompt=prompt)

    def resolve_resume_text(self, resume_ref: str) -> str:
        ref = resume_ref.strip()
        if not ref:
            return MISSING_RESUME_TEXT
        if not ref.startswith(("http://", "https://")):
            return ref

        filename = unquote(urlparse(ref).path.rsplit("/", 1)[-1])
        try:
            data = self._fetch(ref)
            text = extract_resume_text(data, filename)
        except Exception as exc:
            raise ScreeningFailure(f"could not read resume {filename}: {exc}") from exc

        if not text.strip():
            raise ScreeningFailure(f"resume {filename} has no extractable text")
        return text

    def _fetch(self, url: str) -> bytes:
        if self.asset_store is not None:
            local_path = self.asset_store.path_for_url(url)
            if local_path is not None:
                return local_path.read_bytes()

        response = requests.get(url, timeout=self.settings.screening_timeout_sec)
        response.raise_for_status()
        return response.content
