from __future__ import annotations

from pathlib import Path

from gatekeeper.config import get_settings
from gatekeeper.db.base import Base
from gatekeeper.db.session import SessionLocal, engine
from gatekeeper.db import models  # noqa: F401
from gatekeeper.db.seed import seed_jobs


def ensure_data_directories() -> None:
    settings = get_settings()
    paths: list[Path] = [
        settings.data_dir,
        settings.asset_dir,
    ]
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)


def init_database(seed: bool = True) -> dict[str, int]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)

    inserted = 0
    if seed:
        with SessionLocal() as session:
            inserted = seed_jobs(session)
    return {"seeded_jobs": inserted}
