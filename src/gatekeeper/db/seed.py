from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from gatekeeper.db.models import Job

DEMO_ORG_ID = "demo"

DEFAULT_JOBS: list[dict[str, str]] = [
    {
        "id": "senior-react-engineer",
        "title": "Senior React Engineer",
        "department": "Engineering",
        "location": "Remote, US",
        "type": "Full-time",
        "description": (
            "Build and own the candidate-facing web experience.\n"
            "Requirements: 5+ years of React and TypeScript, experience with Firebase or similar "
            "backends, strong testing habits, and clear written communication."
        ),
    },
    {
        "id": "product-designer",
        "title": "Product Designer",
        "department": "Design",
        "location": "New York, NY",
        "type": "Full-time",
        "description": (
            "Shape end-to-end hiring workflows for recruiters and candidates.\n"
            "Requirements: portfolio of shipped SaaS products, Figma, user research, design systems."
        ),
    },
]


def seed_jobs(session: Session, org_id: str = DEMO_ORG_ID) -> int:
    inserted = 0
    for item in DEFAULT_JOBS:
        exists = session.scalar(select(Job.id).where(Job.id == item["id"]))
        if exists:
            continue
        session.add(Job(org_id=org_id, status="Open", **item))
        inserted += 1

    session.commit()
    return inserted
