from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import JSON, Boolean, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gatekeeper.db.base import Base, TimestampMixin


def new_id() -> str:
    return uuid.uuid4().hex


class Job(TimestampMixin, Base):
    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    org_id: Mapped[str] = mapped_column(String(120), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    location: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    type: Mapped[str] = mapped_column(String(80), default="Full-time", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="Open", nullable=False)


class Candidate(TimestampMixin, Base):
    __tablename__ = "candidates"
    __table_args__ = (UniqueConstraint("org_id", "job_id", "email", name="uq_candidate_org_job_email"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    org_id: Mapped[str] = mapped_column(String(120), index=True, nullable=False)
    job_id: Mapped[str] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    stage: Mapped[str] = mapped_column(String(40), default="New", nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="New", nullable=False)
    applied_at: Mapped[str] = mapped_column(String(40), nullable=False)
    availability: Mapped[str] = mapped_column(String(40), default="Immediate", nullable=False)
    source: Mapped[str] = mapped_column(String(40), default="LinkedIn", nullable=False)
    metrics_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    resume_url: Mapped[str] = mapped_column(String(1000), default="", nullable=False)
    video_url: Mapped[str] = mapped_column(String(1000), default="", nullable=False)
    thumbnail_url: Mapped[str] = mapped_column(String(1000), default="", nullable=False)
    resume_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    manual_input: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    ai_verdict: Mapped[str | None] = mapped_column(String(40), nullable=True)
    match_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
