from __future__ import annotations

import logging

from gatekeeper.errors import DuplicateApplicationError
from gatekeeper.interfaces import CandidateStore
from gatekeeper.types import CandidateRecord, normalize_email

logger = logging.getLogger(__name__)


class DuplicateApplicationGuard:
    """Read-then-decide check for a second application from one email to one job.

    There is no lock between this check and the record write; the database's
    unique constraint catches the submissions that race past it.
    """

    def __init__(self, store: CandidateStore):
        self.store = store

    async def find_existing(self, org_id: str, job_id: str, email: str) -> CandidateRecord | None:
        records = await self.store.query_by_field(org_id, "email", normalize_email(email))
        for record in records:
            if record.job_id == job_id:
                return record
        return None

    async def already_applied(self, org_id: str, job_id: str, email: str) -> bool:
        return await self.find_existing(org_id, job_id, email) is not None

    async def ensure_not_applied(self, org_id: str, job_id: str, email: str) -> None:
        existing = await self.find_existing(org_id, job_id, email)
        if existing is not None:
            logger.info("Duplicate application org_id=%s job_id=%s candidate_id=%s", org_id, job_id, existing.id)
            raise DuplicateApplicationError()
