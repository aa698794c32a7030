from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from gatekeeper.types import CandidatePatch, CandidateRecord, NewCandidate

ProgressCallback = Callable[[float], None]


class CandidateStore(Protocol):
    async def create_record(self, fields: NewCandidate) -> str: ...

    async def query_by_field(
        self,
        org_id: str,
        field: str,
        value: Any,
        *,
        job_id: str | None = None,
    ) -> list[CandidateRecord]: ...

    async def patch_record(self, org_id: str, candidate_id: str, fields: CandidatePatch) -> CandidateRecord: ...


class AssetStore(Protocol):
    async def upload(self, path: str, data: bytes, *, content_type: str) -> str: ...

    async def upload_with_progress(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        on_progress: ProgressCallback,
    ) -> str: ...


class ScreeningService(Protocol):
    async def screen(self, resume_ref: str, job_description: str) -> dict[str, Any]: ...


class Notifier(Protocol):
    async def send_application_receipt(self, email: str, job_title: str, candidate_name: str) -> None: ...
