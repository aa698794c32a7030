from __future__ import annotations

import asyncio

import pytest

from gatekeeper.core.duplicates import DuplicateApplicationGuard
from gatekeeper.db.session import SessionLocal
from gatekeeper.db.store import SqlCandidateStore
from gatekeeper.errors import DuplicateApplicationError
from gatekeeper.types import JobPosting, NewCandidate


def _seed_candidate(store: SqlCandidateStore, org_id: str, job_id: str, email: str) -> str:
    return asyncio.run(
        store.create_record(
            NewCandidate(
                org_id=org_id,
                job_id=job_id,
                email=email,
                name="Ada Lovelace",
                role="Engineer",
                applied_at="2026-10-19T09:00:00+00:00",
            )
        )
    )


def test_guard_finds_existing_application_case_insensitively(open_job: JobPosting) -> None:
    store = SqlCandidateStore(SessionLocal)
    candidate_id = _seed_candidate(store, open_job.org_id, open_job.id, "ada@example.com")
    guard = DuplicateApplicationGuard(store)

    existing = asyncio.run(guard.find_existing(open_job.org_id, open_job.id, "  ADA@Example.com "))

    assert existing is not None and existing.id == candidate_id
    assert asyncio.run(guard.already_applied(open_job.org_id, open_job.id, "ada@example.com"))
    with pytest.raises(DuplicateApplicationError, match="already applied"):
        asyncio.run(guard.ensure_not_applied(open_job.org_id, open_job.id, "ada@example.com"))


def test_same_email_may_apply_to_other_jobs(open_job: JobPosting) -> None:
    store = SqlCandidateStore(SessionLocal)
    _seed_candidate(store, "demo", "product-designer", "ada@example.com")
    _seed_candidate(store, open_job.org_id, open_job.id, "grace@example.com")
    guard = DuplicateApplicationGuard(store)

    assert not asyncio.run(guard.already_applied(open_job.org_id, open_job.id, "ada@example.com"))
    asyncio.run(guard.ensure_not_applied(open_job.org_id, open_job.id, "ada@example.com"))
