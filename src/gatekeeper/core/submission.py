from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any, Literal

from gatekeeper.core.capture import CaptureSession
from gatekeeper.core.duplicates import DuplicateApplicationGuard
from gatekeeper.core.events import EventBus
from gatekeeper.core.screening import ScreeningOrchestrator
from gatekeeper.core.uploads import AssetUploadCoordinator, MediaUrls
from gatekeeper.errors import (
    ApplicationValidationError,
    DuplicateApplicationError,
    InvalidTransition,
    ScreeningFailure,
)
from gatekeeper.interfaces import CandidateStore, Notifier
from gatekeeper.types import (
    DEFAULT_ALLOWED_RESUME_EXTENSIONS,
    DEFAULT_MAX_RESUME_BYTES,
    ApplicantDraft,
    CandidateMetrics,
    CandidatePatch,
    JobPosting,
    NewCandidate,
    ScreeningResult,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Failed to submit application. Please try again."
MANUAL_TEXT_REQUIRED = "Please paste your resume text to continue."
SCREENING_FALLBACK = "We couldn't read your resume automatically. Please paste its text below to finish applying."

Phase = Literal["idle", "checking", "uploading", "parsing", "finalizing", "manual_recovery", "done"]


class SubmissionStep(IntEnum):
    DESCRIPTION = 0
    DETAILS = 1
    SUBMITTING = 2
    SUCCESS = 3


@dataclass(frozen=True, slots=True)
class SubmissionState:
    step: SubmissionStep = SubmissionStep.DESCRIPTION
    phase: Phase = "idle"
    is_submitting: bool = False
    error: str = ""
    error_code: str = ""
    notice: str = ""
    upload_progress: float = 0.0
    screening_progress: float = 0.0
    manual_recovery: bool = False
    candidate_id: str | None = None
    screening: ScreeningResult | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "step": int(self.step),
            "step_name": self.step.name.lower(),
            "phase": self.phase,
            "is_submitting": self.is_submitting,
            "error": self.error,
            "error_code": self.error_code,
            "notice": self.notice,
            "upload_progress": round(self.upload_progress, 1),
            "screening_progress": round(self.screening_progress, 1),
            "manual_recovery": self.manual_recovery,
            "candidate_id": self.candidate_id,
            "screening": self.screening.model_dump() if self.screening else None,
        }


StateListener = Callable[[SubmissionState], None]


class ApplicationSubmission:
    """Drives one applicant from the role description to a committed candidate record.

    Order of a submit: validate, duplicate check, pre-create the record,
    upload the resume, screen it, upload video and thumbnail, patch the asset
    URLs in one update, then notify. A failed screening parks the submission
    in manual recovery until pasted resume text is supplied.
    """

    def __init__(
        self,
        *,
        org_id: str,
        job: JobPosting,
        store: CandidateStore,
        uploads: AssetUploadCoordinator,
        screening: ScreeningOrchestrator,
        notifier: Notifier | None = None,
        event_bus: EventBus | None = None,
        capture: CaptureSession | None = None,
        draft: ApplicantDraft | None = None,
        max_resume_bytes: int = DEFAULT_MAX_RESUME_BYTES,
        allowed_extensions: tuple[str, ...] | list[str] = DEFAULT_ALLOWED_RESUME_EXTENSIONS,
        clock: Callable[[], datetime] | None = None,
        submission_id: str | None = None,
    ):
        self.id = submission_id or uuid.uuid4().hex
        self.org_id = org_id
        self.job = job
        self.store = store
        self.uploads = uploads
        self.screening = screening
        self.guard = DuplicateApplicationGuard(store)
        self.notifier = notifier
        self.event_bus = event_bus
        self.capture = capture
        self.draft = draft or ApplicantDraft()
        self.max_resume_bytes = max_resume_bytes
        self.allowed_extensions = tuple(allowed_extensions)
        self.clock = clock or (lambda: datetime.now(UTC))

        self.state = SubmissionState()
        self._listeners: list[StateListener] = []
        self._resume_url = ""
        self._media: MediaUrls | None = None
        self._receipt_sent = False

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def begin(self) -> SubmissionState:
        if self.state.step == SubmissionStep.DESCRIPTION:
            self._set(step=SubmissionStep.DETAILS)
        return self.state

    async def close(self) -> None:
        if self.state.is_submitting:
            raise InvalidTransition("cannot close while the application is being submitted")
        if self.capture is not None:
            await self.capture.close()

    async def submit(self) -> SubmissionState:
        if self.state.is_submitting:
            return self.state
        if self.state.step != SubmissionStep.DETAILS:
            raise InvalidTransition(f"cannot submit from step {self.state.step.name}")

        self._collect_capture()
        try:
            self.draft.validate(
                max_resume_bytes=self.max_resume_bytes,
                allowed_extensions=self.allowed_extensions,
            )
        except ApplicationValidationError as exc:
            self._set(error=str(exc), error_code="validation")
            return self.state

        self._set(
            step=SubmissionStep.SUBMITTING,
            phase="checking",
            is_submitting=True,
            error="",
            error_code="",
            notice="",
            upload_progress=0.0,
            screening_progress=0.0,
        )
        try:
            await self._run_submission()
        except ApplicationValidationError as exc:
            self._set(step=SubmissionStep.DETAILS, phase="idle", error=str(exc), error_code=_error_code(exc))
        except Exception:
            logger.exception("Submission failed org_id=%s job_id=%s", self.org_id, self.job.id)
            self._set(step=SubmissionStep.DETAILS, phase="idle", error=GENERIC_ERROR, error_code="unexpected")
        finally:
            self._set(is_submitting=False)

        if self.state.step == SubmissionStep.SUCCESS:
            await self._send_receipt()
        return self.state

    async def submit_manual_resume(self, text: str) -> SubmissionState:
        if not self.state.manual_recovery:
            raise InvalidTransition("manual resume entry is only available after screening fails")
        if self.state.is_submitting:
            return self.state

        self.draft.manual_resume_text = text
        if not text.strip():
            self._set(error=MANUAL_TEXT_REQUIRED, error_code="validation")
            return self.state

        self._set(is_submitting=True, phase="finalizing", error="", error_code="")
        try:
            await self._finalize_manual(text.strip())
        except Exception:
            logger.exception("Manual resume finalization failed org_id=%s job_id=%s", self.org_id, self.job.id)
            self._set(phase="manual_recovery", error=GENERIC_ERROR, error_code="unexpected")
        finally:
            self._set(is_submitting=False)

        if self.state.step == SubmissionStep.SUCCESS:
            await self._send_receipt()
        return self.state

    async def _run_submission(self) -> None:
        draft = self.draft
        await self.guard.ensure_not_applied(self.org_id, self.job.id, draft.email)

        candidate_id = await self.store.create_record(
            NewCandidate(
                org_id=self.org_id,
                job_id=self.job.id,
                email=draft.email,
                name=draft.full_name,
                role=self.job.title,
                applied_at=self.clock().isoformat(),
                availability=draft.availability,
                source=draft.source,
                metrics=CandidateMetrics(intro_video_duration=draft.intro_video_duration),
            )
        )
        self._set(candidate_id=candidate_id, phase="uploading")
        logger.info("Candidate pre-created candidate_id=%s job_id=%s", candidate_id, self.job.id)

        self._resume_url = await self.uploads.upload_resume(
            self.org_id,
            candidate_id,
            draft.resume,
            on_progress=lambda value: self._set(upload_progress=value),
        )

        self._set(phase="parsing")
        try:
            result = await self.screening.run(
                self._resume_url,
                self.job.description,
                on_progress=lambda value: self._set(screening_progress=value),
            )
        except ScreeningFailure:
            logger.info("Screening failed; waiting for manual resume candidate_id=%s", candidate_id)
            self._set(phase="manual_recovery", manual_recovery=True, notice=SCREENING_FALLBACK)
            return

        self._set(screening=result, phase="finalizing")
        media = await self._upload_media(candidate_id)
        await self.store.patch_record(
            self.org_id,
            candidate_id,
            CandidatePatch(
                resume_url=self._resume_url,
                video_url=media.video_url,
                thumbnail_url=media.thumbnail_url,
                score=result.score,
                ai_verdict=result.verdict,
                match_reason=result.match_reason or None,
            ),
        )
        self._set(step=SubmissionStep.SUCCESS, phase="done")

    async def _finalize_manual(self, text: str) -> None:
        record = await self.guard.find_existing(self.org_id, self.job.id, self.draft.email)
        if record is None:
            raise LookupError(f"no candidate record for job {self.job.id} to attach resume text to")

        media = await self._upload_media(record.id)
        await self.store.patch_record(
            self.org_id,
            record.id,
            CandidatePatch(
                resume_url=self._resume_url or record.resume_url,
                video_url=media.video_url,
                thumbnail_url=media.thumbnail_url,
                resume_text=text,
                manual_input=True,
            ),
        )
        self._set(candidate_id=record.id, step=SubmissionStep.SUCCESS, phase="done", notice="")

    async def _upload_media(self, candidate_id: str) -> MediaUrls:
        if self._media is None:
            self._media = await self.uploads.upload_media(
                self.org_id,
                candidate_id,
                self.draft.video,
                self.draft.thumbnail,
            )
        return self._media

    async def _send_receipt(self) -> None:
        if self._receipt_sent or self.notifier is None:
            return
        self._receipt_sent = True
        try:
            await self.notifier.send_application_receipt(
                self.draft.normalized_email,
                self.job.title,
                self.draft.full_name,
            )
        except Exception as exc:
            logger.warning("Application receipt failed email=%s: %s", self.draft.normalized_email, exc)

    def _collect_capture(self) -> None:
        capture = self.capture
        if capture is None:
            return
        ready = capture.state == "ready" and capture.clip is not None
        self.draft.video = capture.clip if ready else None
        self.draft.thumbnail = capture.thumbnail if ready else None

    def _set(self, **changes: Any) -> None:
        self.state = replace(self.state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception:
                logger.warning("State listener failed", exc_info=True)
        if self.event_bus is not None:
            self.event_bus.publish_nowait(f"submission:{self.id}", self.state.as_dict())


def _error_code(exc: Exception) -> str:
    return "duplicate" if isinstance(exc, DuplicateApplicationError) else "validation"
