from __future__ import annotations

import os
import tempfile
from pathlib import Path

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="gatekeeper-tests-"))
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'gatekeeper.db'}"
os.environ["DATA_DIR"] = str(_TEST_ROOT)
os.environ["ASSET_DIR"] = str(_TEST_ROOT / "assets")
os.environ["ASSET_BASE_URL"] = "http://testserver/assets"
os.environ["SCREENING_API_KEY"] = ""
os.environ["RESEND_API_KEY"] = ""

import pytest  # noqa: E402

from fakes import FakeNotifier, FakeScreening, RecordingAssetStore  # noqa: E402
from gatekeeper.config import Settings  # noqa: E402
from gatekeeper.core.events import EventBus  # noqa: E402
from gatekeeper.core.runtime import Services, build_services  # noqa: E402
from gatekeeper.db.base import Base  # noqa: E402
from gatekeeper.db.repositories import Repository  # noqa: E402
from gatekeeper.db.seed import seed_jobs  # noqa: E402
from gatekeeper.db.session import SessionLocal, engine  # noqa: E402
from gatekeeper.db.store import job_to_posting  # noqa: E402
from gatekeeper.types import ApplicantDraft, JobPosting, ResumeFile  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed_jobs(session)
    yield


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        asset_dir=tmp_path / "assets",
        asset_base_url="http://testserver/assets",
        upload_chunk_size=4,
        recording_tick_sec=0.01,
        screening_timeout_sec=2,
        screening_progress_interval_ms=5,
    )


@pytest.fixture
def make_services(settings: Settings):
    def factory(
        *,
        screening: FakeScreening | None = None,
        notifier: FakeNotifier | None = None,
        fail_on: set[str] | None = None,
        events: list[str] | None = None,
    ) -> Services:
        return build_services(
            SessionLocal,
            settings=settings,
            event_bus=EventBus(),
            assets=RecordingAssetStore(settings=settings, fail_on=fail_on, events=events),
            screener=screening or FakeScreening(),
            notifier=notifier or FakeNotifier(),
        )

    return factory


@pytest.fixture
def open_job() -> JobPosting:
    with SessionLocal() as session:
        job = Repository(session).create_job(
            org_id="acme",
            title="Senior React Engineer",
            description="5+ years of React and TypeScript.",
            department="Engineering",
            location="Remote",
        )
        return job_to_posting(job)


@pytest.fixture
def draft() -> ApplicantDraft:
    return ApplicantDraft(
        first_name="Ada",
        last_name="Lovelace",
        email="  Ada@Example.com ",
        resume=ResumeFile(filename="ada_cv.pdf", content_type="application/pdf", data=b"%PDF-1.4 resume"),
    )
