from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import Session

from gatekeeper.core.events import EventBus
from gatekeeper.db.models import Candidate, Job
from gatekeeper.db.repositories import Repository
from gatekeeper.errors import RecordShapeError
from gatekeeper.types import (
    CandidateMetrics,
    CandidatePatch,
    CandidateRecord,
    JobPosting,
    NewCandidate,
    normalize_email,
)

logger = logging.getLogger(__name__)


def candidate_to_record(row: Candidate) -> CandidateRecord:
    try:
        return CandidateRecord(
            id=row.id,
            org_id=row.org_id,
            job_id=row.job_id,
            email=row.email,
            name=row.name,
            role=row.role,
            stage=row.stage,
            status=row.status,
            applied_at=row.applied_at,
            availability=row.availability,
            source=row.source,
            metrics=CandidateMetrics.model_validate(row.metrics_json or {}),
            resume_url=row.resume_url or "",
            video_url=row.video_url or "",
            thumbnail_url=row.thumbnail_url or "",
            resume_text=row.resume_text,
            manual_input=row.manual_input,
            score=row.score,
            ai_verdict=row.ai_verdict,
            match_reason=row.match_reason,
        )
    except ValidationError as exc:
        raise RecordShapeError(f"candidate {row.id} has an invalid shape: {exc}") from exc


def job_to_posting(row: Job) -> JobPosting:
    return JobPosting(
        id=row.id,
        org_id=row.org_id,
        title=row.title,
        department=row.department,
        location=row.location,
        type=row.type,
        description=row.description,
        status=row.status,
    )


def candidates_topic(org_id: str) -> str:
    return f"candidates:{org_id}"


class SqlCandidateStore:
    """Candidate store over SQLAlchemy.

    Each operation opens its own session and runs on a worker thread so the
    event loop stays responsive. Writes are announced on the event bus under
    ``candidates:{org_id}``.
    """

    def __init__(self, session_factory: Callable[[], Session], *, event_bus: EventBus | None = None):
        self.session_factory = session_factory
        self.event_bus = event_bus

    async def create_record(self, fields: NewCandidate) -> str:
        values = fields.model_dump()
        values["metrics_json"] = values.pop("metrics")
        record = await asyncio.to_thread(self._run, lambda repo: candidate_to_record(repo.create_candidate(values)))
        logger.info("Candidate created candidate_id=%s org_id=%s job_id=%s", record.id, record.org_id, record.job_id)
        await self._notify(record.org_id, "candidate.created", record)
        return record.id

    async def query_by_field(
        self,
        org_id: str,
        field: str,
        value: Any,
        *,
        job_id: str | None = None,
    ) -> list[CandidateRecord]:
        if field == "email" and isinstance(value, str):
            value = normalize_email(value)
        return await asyncio.to_thread(
            self._run,
            lambda repo: [
                candidate_to_record(row)
                for row in repo.list_candidates_by_field(org_id, field, value, job_id=job_id)
            ],
        )

    async def patch_record(self, org_id: str, candidate_id: str, fields: CandidatePatch) -> CandidateRecord:
        if not isinstance(fields, CandidatePatch):
            try:
                fields = CandidatePatch.model_validate(fields)
            except ValidationError as exc:
                raise RecordShapeError(f"invalid candidate patch: {exc}") from exc

        changes = fields.changes()
        record = await asyncio.to_thread(
            self._run,
            lambda repo: candidate_to_record(repo.update_candidate(org_id, candidate_id, changes)),
        )
        logger.info("Candidate patched candidate_id=%s fields=%s", candidate_id, sorted(changes))
        await self._notify(org_id, "candidate.patched", record, fields=sorted(changes))
        return record

    async def get_record(self, candidate_id: str) -> CandidateRecord | None:
        def load(repo: Repository) -> CandidateRecord | None:
            row = repo.get_candidate(candidate_id)
            return candidate_to_record(row) if row else None

        return await asyncio.to_thread(self._run, load)

    async def subscribe(self, org_id: str) -> AsyncIterator[dict[str, Any]]:
        if self.event_bus is None:
            raise RuntimeError("store was created without an event bus")
        async for event in self.event_bus.subscribe(candidates_topic(org_id)):
            yield event

    def _run(self, operation: Callable[[Repository], Any]) -> Any:
        with self.session_factory() as session:
            return operation(Repository(session))

    async def _notify(self, org_id: str, action: str, record: CandidateRecord, **extra: Any) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.publish(
            candidates_topic(org_id),
            {"action": action, "candidate": record.model_dump(), **extra},
        )
