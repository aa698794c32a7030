from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from gatekeeper.config import Settings, get_settings
from gatekeeper.core.capture import CaptureSession, MediaConstraints, MediaDevices
from gatekeeper.core.events import EventBus
from gatekeeper.core.screening import ScreeningOrchestrator
from gatekeeper.core.submission import ApplicationSubmission
from gatekeeper.core.thumbnails import ThumbnailExtractor
from gatekeeper.core.uploads import AssetUploadCoordinator
from gatekeeper.db.store import SqlCandidateStore
from gatekeeper.interfaces import CandidateStore, Notifier, ScreeningService
from gatekeeper.llm.screener import LLMResumeScreener
from gatekeeper.notifications.email import ResendNotifier
from gatekeeper.storage.assets import LocalAssetStore
from gatekeeper.types import ApplicantDraft, JobPosting


@dataclass
class Services:
    """Collaborators shared by every submission built from one process or app."""

    settings: Settings
    event_bus: EventBus
    store: CandidateStore
    assets: LocalAssetStore
    screener: ScreeningService
    notifier: Notifier


def build_services(
    session_factory: Callable[[], Session],
    *,
    settings: Settings | None = None,
    event_bus: EventBus | None = None,
    store: CandidateStore | None = None,
    assets: LocalAssetStore | None = None,
    screener: ScreeningService | None = None,
    notifier: Notifier | None = None,
) -> Services:
    settings = settings or get_settings()
    event_bus = event_bus or EventBus()
    assets = assets or LocalAssetStore(settings=settings)
    return Services(
        settings=settings,
        event_bus=event_bus,
        store=store or SqlCandidateStore(session_factory, event_bus=event_bus),
        assets=assets,
        screener=screener or LLMResumeScreener(settings, asset_store=assets),
        notifier=notifier or ResendNotifier(settings),
    )


def build_thumbnail_extractor(settings: Settings | None = None) -> ThumbnailExtractor:
    settings = settings or get_settings()
    return ThumbnailExtractor(
        width=settings.thumbnail_width,
        quality=settings.thumbnail_quality,
        seek_sec=settings.thumbnail_seek_sec,
        seek_ratio=settings.thumbnail_seek_ratio,
    )


def build_capture(devices: MediaDevices, settings: Settings | None = None) -> CaptureSession:
    settings = settings or get_settings()
    return CaptureSession(
        devices,
        max_seconds=settings.recording_max_seconds,
        tick_sec=settings.recording_tick_sec,
        constraints=MediaConstraints(
            width=settings.recording_width,
            height=settings.recording_height,
            facing_mode=settings.recording_facing_mode,
        ),
        thumbnail_extractor=build_thumbnail_extractor(settings),
    )


def build_submission(
    services: Services,
    *,
    org_id: str,
    job: JobPosting,
    draft: ApplicantDraft | None = None,
    capture: CaptureSession | None = None,
    submission_id: str | None = None,
) -> ApplicationSubmission:
    settings = services.settings
    return ApplicationSubmission(
        org_id=org_id,
        job=job,
        store=services.store,
        uploads=AssetUploadCoordinator(services.assets),
        screening=ScreeningOrchestrator(
            services.screener,
            timeout_sec=settings.screening_timeout_sec,
            pulse_interval_sec=settings.screening_progress_interval_ms / 1000,
        ),
        notifier=services.notifier,
        event_bus=services.event_bus,
        capture=capture,
        draft=draft,
        max_resume_bytes=settings.max_resume_bytes,
        allowed_extensions=settings.resume_extension_list,
        submission_id=submission_id,
    )
