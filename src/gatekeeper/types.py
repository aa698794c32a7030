from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gatekeeper.errors import ApplicationValidationError, ScreeningFailure

Availability = Literal["Immediate", "2 Weeks Notice", "1 Month Notice", "Viewing Options"]
ApplicationSource = Literal["LinkedIn", "Referral", "Company Website", "Other"]
JobStatus = Literal["Open", "Closed", "Draft"]
Verdict = Literal["Proceed", "Reject", "Review"]

DEFAULT_ALLOWED_RESUME_EXTENSIONS = (".pdf", ".docx", ".doc")
DEFAULT_MAX_RESUME_BYTES = 5 * 1024 * 1024
MAX_VIDEO_SECONDS = 10

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(slots=True)
class ResumeFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()

    @classmethod
    def from_path(cls, path: Path, content_type: str = "") -> ResumeFile:
        return cls(
            filename=path.name,
            content_type=content_type or guess_resume_content_type(path.name),
            data=path.read_bytes(),
        )


@dataclass(slots=True)
class VideoClip:
    data: bytes
    mime_type: str
    duration_seconds: int = 0

    def __post_init__(self) -> None:
        self.duration_seconds = clamp_duration(self.duration_seconds)


@dataclass(slots=True)
class Thumbnail:
    data: bytes
    content_type: str = "image/jpeg"


def clamp_duration(seconds: int, maximum: int = MAX_VIDEO_SECONDS) -> int:
    return max(0, min(maximum, int(seconds)))


def intro_video_duration(time_left: int, maximum: int = MAX_VIDEO_SECONDS) -> int:
    """Seconds recorded, derived from the countdown value at stop."""
    return clamp_duration(maximum - time_left, maximum)


def guess_resume_content_type(filename: str) -> str:
    return {
        ".pdf": "application/pdf",
        ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ".doc": "application/msword",
        ".txt": "text/plain",
    }.get(Path(filename).suffix.lower(), "application/octet-stream")


@dataclass
class ApplicantDraft:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    availability: Availability = "Immediate"
    source: ApplicationSource = "LinkedIn"
    resume: ResumeFile | None = None
    video: VideoClip | None = None
    thumbnail: Thumbnail | None = None
    manual_resume_text: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}".strip()

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)

    @property
    def intro_video_duration(self) -> int:
        return self.video.duration_seconds if self.video else 0

    def validate(
        self,
        *,
        max_resume_bytes: int = DEFAULT_MAX_RESUME_BYTES,
        allowed_extensions: tuple[str, ...] | list[str] = DEFAULT_ALLOWED_RESUME_EXTENSIONS,
    ) -> None:
        if not self.first_name.strip():
            raise ApplicationValidationError("First name is required.")
        if not self.last_name.strip():
            raise ApplicationValidationError("Last name is required.")
        if not self.email.strip():
            raise ApplicationValidationError("Email address is required.")
        if not _EMAIL_RE.match(self.email.strip()):
            raise ApplicationValidationError("Please enter a valid email address.")
        if self.resume is None or not self.resume.data:
            raise ApplicationValidationError("Please upload your resume.")
        if self.resume.extension not in allowed_extensions:
            raise ApplicationValidationError(
                f"Resume must be one of: {', '.join(sorted(allowed_extensions))}."
            )
        if len(self.resume.data) > max_resume_bytes:
            raise ApplicationValidationError(
                f"Resume exceeds the {max_resume_bytes // (1024 * 1024)}MB limit."
            )


class JobPosting(BaseModel):
    id: str
    org_id: str
    title: str
    department: str = ""
    location: str = ""
    type: str = "Full-time"
    description: str = ""
    status: JobStatus = "Open"


class CandidateMetrics(BaseModel):
    intro_video_duration: int = Field(default=0, ge=0, le=MAX_VIDEO_SECONDS)


class NewCandidate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    org_id: str
    job_id: str
    email: str
    name: str
    role: str
    stage: str = "New"
    status: str = "New"
    applied_at: str
    availability: Availability = "Immediate"
    source: ApplicationSource = "LinkedIn"
    metrics: CandidateMetrics = Field(default_factory=CandidateMetrics)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        value = normalize_email(value)
        if not value:
            raise ValueError("email must not be empty")
        return value


class CandidatePatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resume_url: str | None = None
    video_url: str | None = None
    thumbnail_url: str | None = None
    resume_text: str | None = None
    manual_input: bool | None = None
    score: float | None = None
    ai_verdict: Verdict | None = None
    match_reason: str | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CandidateRecord(BaseModel):
    id: str
    org_id: str
    job_id: str
    email: str
    name: str
    role: str
    stage: str = "New"
    status: str = "New"
    applied_at: str
    availability: str = "Immediate"
    source: str = "LinkedIn"
    metrics: CandidateMetrics = Field(default_factory=CandidateMetrics)
    resume_url: str = ""
    video_url: str = ""
    thumbnail_url: str = ""
    resume_text: str | None = None
    manual_input: bool | None = None
    score: float | None = None
    ai_verdict: str | None = None
    match_reason: str | None = None


class ScreeningResult(BaseModel):
    score: float
    verdict: Verdict | None = None
    reasoning: str = ""
    missing_skills: list[str] = Field(default_factory=list)
    match_reason: str = ""


def parse_screening_result(raw: Any) -> ScreeningResult:
    if not isinstance(raw, Mapping) or not raw:
        raise ScreeningFailure("screening returned an empty or malformed result")

    score = raw.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ScreeningFailure("screening result has no numeric score")
    if not math.isfinite(score):
        raise ScreeningFailure(f"screening result has a non-finite score: {score}")

    verdict = raw.get("verdict")
    missing = raw.get("missingSkills", raw.get("missing_skills", []))
    return ScreeningResult(
        score=float(score),
        verdict=verdict if verdict in {"Proceed", "Reject", "Review"} else None,
        reasoning=str(raw.get("reasoning", "") or ""),
        missing_skills=[str(item) for item in missing] if isinstance(missing, list) else [],
        match_reason=str(raw.get("matchReason", raw.get("match_reason", "")) or ""),
    )
