from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from gatekeeper.types import JobStatus


class JobCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    department: str = ""
    location: str = ""
    type: str = "Full-time"
    status: JobStatus = "Open"


class JobResponse(BaseModel):
    id: str
    org_id: str
    title: str
    department: str
    location: str
    type: str
    description: str
    status: str


class SubmissionResponse(BaseModel):
    submission_id: str
    step: int
    step_name: str
    phase: str
    is_submitting: bool
    error: str
    error_code: str
    notice: str
    upload_progress: float
    screening_progress: float
    manual_recovery: bool
    candidate_id: str | None = None
    screening: dict[str, Any] | None = None


class ManualResumeRequest(BaseModel):
    resume_text: str
