from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import get_args

import typer
import uvicorn

from gatekeeper.api.app import create_app
from gatekeeper.config import get_settings
from gatekeeper.core.capture import CaptureSession
from gatekeeper.core.devices import OpenCVMediaDevices
from gatekeeper.core.runtime import Services, build_capture, build_services, build_submission, build_thumbnail_extractor
from gatekeeper.core.submission import ApplicationSubmission, SubmissionState, SubmissionStep
from gatekeeper.db.init import init_database
from gatekeeper.db.repositories import Repository
from gatekeeper.db.seed import DEMO_ORG_ID
from gatekeeper.db.session import SessionLocal
from gatekeeper.db.store import candidate_to_record, job_to_posting
from gatekeeper.errors import CapturePermissionError
from gatekeeper.logging_config import configure_logging
from gatekeeper.types import (
    ApplicantDraft,
    ApplicationSource,
    Availability,
    JobPosting,
    ResumeFile,
    VideoClip,
    normalize_email,
)

app = typer.Typer(help="Gatekeeper CLI")
jobs_app = typer.Typer(help="Job posting commands")
candidates_app = typer.Typer(help="Candidate record commands")

app.add_typer(jobs_app, name="jobs")
app.add_typer(candidates_app, name="candidates")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


@app.command("init")
def init_cmd(seed: bool = typer.Option(True, "--seed/--no-seed")) -> None:
    """Initialize database, directories, and demo job postings."""
    configure_logging()
    result = init_database(seed=seed)
    typer.echo(json.dumps({"ok": True, **result}, indent=2))


@jobs_app.command("create")
def jobs_create(
    title: str = typer.Option(..., "--title"),
    org_id: str = typer.Option(DEMO_ORG_ID, "--org-id"),
    description: str = typer.Option("", "--description"),
    department: str = typer.Option("", "--department"),
    location: str = typer.Option("", "--location"),
    job_type: str = typer.Option("Full-time", "--type"),
    status: str = typer.Option("Open", "--status"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        job = Repository(db).create_job(
            org_id=org_id,
            title=title,
            description=description,
            department=department,
            location=location,
            type=job_type,
            status=status,
        )
        typer.echo(json.dumps(job_to_posting(job).model_dump(), indent=2))


@jobs_app.command("list")
def jobs_list(
    org_id: str = typer.Option(DEMO_ORG_ID, "--org-id"),
    limit: int = typer.Option(20, "--limit"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        jobs = Repository(db).list_jobs(org_id, limit=limit)
        typer.echo(json.dumps([job_to_posting(job).model_dump() for job in jobs], indent=2))


@candidates_app.command("list")
def candidates_list(
    org_id: str = typer.Option(DEMO_ORG_ID, "--org-id"),
    email: str | None = typer.Option(None, "--email"),
    job_id: str | None = typer.Option(None, "--job-id"),
    limit: int = typer.Option(100, "--limit"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        if email:
            rows = repo.list_candidates_by_field(org_id, "email", normalize_email(email), job_id=job_id)
        elif job_id:
            rows = repo.list_candidates_by_field(org_id, "job_id", job_id)
        else:
            rows = repo.list_candidates(org_id, limit=limit)
        typer.echo(json.dumps([candidate_to_record(row).model_dump() for row in rows], indent=2))


@app.command("apply")
def apply_cmd(
    job_id: str = typer.Option(..., "--job-id"),
    first_name: str = typer.Option(..., "--first-name"),
    last_name: str = typer.Option(..., "--last-name"),
    email: str = typer.Option(..., "--email"),
    resume: Path = typer.Option(..., "--resume", exists=True, readable=True, dir_okay=False),
    org_id: str = typer.Option(DEMO_ORG_ID, "--org-id"),
    availability: str = typer.Option("Immediate", "--availability"),
    source: str = typer.Option("LinkedIn", "--source"),
    video: Path | None = typer.Option(None, "--video", exists=True, readable=True, dir_okay=False),
    video_seconds: int = typer.Option(0, "--video-seconds"),
    record: bool = typer.Option(False, "--record", help="Record the intro video from the webcam."),
    resume_text_file: Path | None = typer.Option(
        None,
        "--resume-text-file",
        exists=True,
        readable=True,
        dir_okay=False,
        help="Resume text used if automatic screening fails.",
    ),
) -> None:
    """Submit an application end to end: upload, screen, and record the candidate."""
    configure_logging()
    ensure_initialized()
    if availability not in get_args(Availability):
        raise typer.BadParameter(f"availability must be one of {', '.join(get_args(Availability))}")
    if source not in get_args(ApplicationSource):
        raise typer.BadParameter(f"source must be one of {', '.join(get_args(ApplicationSource))}")
    if video is not None and record:
        raise typer.BadParameter("use either --video or --record, not both")

    with SessionLocal() as db:
        row = Repository(db).get_job(job_id, org_id=org_id)
        if not row:
            raise typer.BadParameter(f"job {job_id} not found in org {org_id}")
        job = job_to_posting(row)

    draft = ApplicantDraft(
        first_name=first_name,
        last_name=last_name,
        email=email,
        availability=availability,
        source=source,
        resume=ResumeFile.from_path(resume),
    )
    services = build_services(SessionLocal)
    state, submission_id = asyncio.run(
        _apply(
            services,
            org_id=org_id,
            job=job,
            draft=draft,
            video=video,
            video_seconds=video_seconds,
            record=record,
            resume_text_file=resume_text_file,
        )
    )
    typer.echo(json.dumps({"submission_id": submission_id, **state.as_dict()}, indent=2))
    if state.step != SubmissionStep.SUCCESS:
        raise typer.Exit(code=1)


async def _apply(
    services: Services,
    *,
    org_id: str,
    job: JobPosting,
    draft: ApplicantDraft,
    video: Path | None,
    video_seconds: int,
    record: bool,
    resume_text_file: Path | None,
) -> tuple[SubmissionState, str]:
    capture = None
    if record:
        capture = await _record_intro(services)
    elif video is not None:
        draft.video = VideoClip(
            data=video.read_bytes(),
            mime_type="video/mp4" if video.suffix.lower() == ".mp4" else "video/webm",
            duration_seconds=video_seconds,
        )
        draft.thumbnail = await build_thumbnail_extractor(services.settings)(draft.video)

    submission = build_submission(services, org_id=org_id, job=job, draft=draft, capture=capture)
    submission.add_listener(_echo_phase())
    submission.begin()
    try:
        state = await submission.submit()
        if state.manual_recovery:
            state = await _recover_manually(submission, resume_text_file)
    finally:
        if not submission.state.is_submitting:
            await submission.close()
    return state, submission.id


async def _record_intro(services: Services) -> CaptureSession | None:
    settings = services.settings
    devices = OpenCVMediaDevices(camera_index=settings.camera_index, fps=settings.camera_fps)
    capture = build_capture(devices, settings)
    try:
        await capture.start_recording()
    except CapturePermissionError as exc:
        typer.echo(f"{exc} Continuing without an intro video.", err=True)
        return None

    typer.echo(f"Recording for up to {capture.max_seconds} seconds...", err=True)
    while capture.state in ("recording", "stopped"):
        await asyncio.sleep(capture.tick_sec / 2)
    if capture.state != "ready":
        typer.echo("No video was captured. Continuing without an intro video.", err=True)
    return capture


async def _recover_manually(submission: ApplicationSubmission, resume_text_file: Path | None) -> SubmissionState:
    typer.echo(submission.state.notice, err=True)
    text = resume_text_file.read_text(encoding="utf-8") if resume_text_file else ""
    while True:
        if not text.strip():
            text = typer.prompt("Resume text")
        state = await submission.submit_manual_resume(text)
        if state.step == SubmissionStep.SUCCESS or state.error_code != "validation":
            return state
        typer.echo(state.error, err=True)
        text = ""


def _echo_phase():
    last = {"phase": ""}

    def listener(state: SubmissionState) -> None:
        if state.phase != last["phase"]:
            last["phase"] = state.phase
            typer.echo(f"[{state.step.name.lower()}] {state.phase}", err=True)

    return listener


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
