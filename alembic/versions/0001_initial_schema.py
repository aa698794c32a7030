"""Initial schema: job postings and candidate records

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "jobs",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("org_id", sa.String(120), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("department", sa.String(255), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("type", sa.String(80), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(40), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_jobs_org_id", "jobs", ["org_id"])

    op.create_table(
        "candidates",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("org_id", sa.String(120), nullable=False),
        sa.Column("job_id", sa.String(64), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(255), nullable=False),
        sa.Column("stage", sa.String(40), nullable=False),
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("applied_at", sa.String(40), nullable=False),
        sa.Column("availability", sa.String(40), nullable=False),
        sa.Column("source", sa.String(40), nullable=False),
        sa.Column("metrics_json", sa.JSON(), nullable=False),
        sa.Column("resume_url", sa.String(1000), nullable=False),
        sa.Column("video_url", sa.String(1000), nullable=False),
        sa.Column("thumbnail_url", sa.String(1000), nullable=False),
        sa.Column("resume_text", sa.Text(), nullable=True),
        sa.Column("manual_input", sa.Boolean(), nullable=True),
        sa.Column("score", sa.Float(), nullable=True),
        sa.Column("ai_verdict", sa.String(40), nullable=True),
        sa.Column("match_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "job_id", "email", name="uq_candidate_org_job_email"),
    )
    op.create_index("ix_candidates_org_id", "candidates", ["org_id"])
    op.create_index("ix_candidates_job_id", "candidates", ["job_id"])
    op.create_index("ix_candidates_email", "candidates", ["email"])


def downgrade() -> None:
    op.drop_index("ix_candidates_email", table_name="candidates")
    op.drop_index("ix_candidates_job_id", table_name="candidates")
    op.drop_index("ix_candidates_org_id", table_name="candidates")
    op.drop_table("candidates")
    op.drop_index("ix_jobs_org_id", table_name="jobs")
    op.drop_table("jobs")
