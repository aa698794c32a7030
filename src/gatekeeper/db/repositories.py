from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gatekeeper.db.models import Candidate, Job
from gatekeeper.errors import DuplicateApplicationError, RecordShapeError

QUERYABLE_CANDIDATE_FIELDS = {"email", "job_id", "stage"}


class Repository:
    def __init__(self, session: Session):
        self.session = session

    def create_job(
        self,
        *,
        org_id: str,
        title: str,
        description: str = "",
        department: str = "",
        location: str = "",
        type: str = "Full-time",
        status: str = "Open",
        job_id: str | None = None,
    ) -> Job:
        job = Job(
            org_id=org_id,
            title=title,
            description=description,
            department=department,
            location=location,
            type=type,
            status=status,
        )
        if job_id:
            job.id = job_id
        self.session.add(job)
        self.session.commit()
        self.session.refresh(job)
        return job

    def get_job(self, job_id: str, org_id: str | None = None) -> Job | None:
        job = self.session.get(Job, job_id)
        if job is None or (org_id is not None and job.org_id != org_id):
            return None
        return job

    def list_jobs(self, org_id: str, limit: int = 50) -> list[Job]:
        statement = select(Job).where(Job.org_id == org_id).order_by(Job.created_at.desc()).limit(limit)
        return list(self.session.scalars(statement).all())

    def create_candidate(self, values: dict[str, Any]) -> Candidate:
        candidate = Candidate(**values)
        self.session.add(candidate)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if self._is_duplicate(values):
                raise DuplicateApplicationError() from exc
            raise
        self.session.refresh(candidate)
        return candidate

    def get_candidate(self, candidate_id: str) -> Candidate | None:
        return self.session.get(Candidate, candidate_id)

    def list_candidates_by_field(
        self,
        org_id: str,
        field: str,
        value: Any,
        *,
        job_id: str | None = None,
    ) -> list[Candidate]:
        if field not in QUERYABLE_CANDIDATE_FIELDS:
            raise RecordShapeError(f"candidates cannot be queried by '{field}'")

        statement = select(Candidate).where(
            Candidate.org_id == org_id,
            getattr(Candidate, field) == value,
        )
        if job_id is not None:
            statement = statement.where(Candidate.job_id == job_id)
        statement = statement.order_by(Candidate.created_at.asc())
        return list(self.session.scalars(statement).all())

    def list_candidates(self, org_id: str, limit: int = 100) -> list[Candidate]:
        statement = (
            select(Candidate)
            .where(Candidate.org_id == org_id)
            .order_by(Candidate.created_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(statement).all())

    def update_candidate(self, org_id: str, candidate_id: str, values: dict[str, Any]) -> Candidate:
        candidate = self.session.get(Candidate, candidate_id)
        if candidate is None or candidate.org_id != org_id:
            raise ValueError(f"candidate {candidate_id} not found")

        for key, value in values.items():
            setattr(candidate, key, value)
        self.session.commit()
        self.session.refresh(candidate)
        return candidate

    def _is_duplicate(self, values: dict[str, Any]) -> bool:
        statement = select(Candidate.id).where(
            Candidate.org_id == values.get("org_id"),
            Candidate.job_id == values.get("job_id"),
            Candidate.email == values.get("email"),
        )
        return self.session.scalar(statement) is not None
