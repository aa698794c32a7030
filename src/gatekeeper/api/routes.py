from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from gatekeeper.api.deps import get_db, get_services, get_submissions
from gatekeeper.api.schemas import JobCreateRequest, JobResponse, ManualResumeRequest, SubmissionResponse
from gatekeeper.core.pending import PendingSubmissions
from gatekeeper.core.runtime import Services, build_submission, build_thumbnail_extractor
from gatekeeper.core.submission import ApplicationSubmission, SubmissionState, SubmissionStep
from gatekeeper.db.repositories import Repository
from gatekeeper.db.store import candidate_to_record, candidates_topic, job_to_posting
from gatekeeper.errors import InvalidTransition
from gatekeeper.types import (
    ApplicantDraft,
    ApplicationSource,
    Availability,
    CandidateRecord,
    ResumeFile,
    VideoClip,
    guess_resume_content_type,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

ERROR_STATUS = {"duplicate": 409, "validation": 422, "unexpected": 500}
SUBMISSION_ID_PATTERN = r"^[A-Za-z0-9_-]{8,64}$"


def _submission_response(submission: ApplicationSubmission, status_code: int) -> JSONResponse:
    payload = SubmissionResponse(submission_id=submission.id, **submission.state.as_dict())
    return JSONResponse(payload.model_dump(), status_code=status_code)


def _raise_for_state(state: SubmissionState) -> None:
    if state.error_code:
        raise HTTPException(status_code=ERROR_STATUS.get(state.error_code, 500), detail=state.error)


@router.post("/orgs/{org_id}/jobs", response_model=JobResponse, status_code=201)
def create_job(org_id: str, payload: JobCreateRequest, db: Session = Depends(get_db)) -> JobResponse:
    job = Repository(db).create_job(org_id=org_id, **payload.model_dump())
    return JobResponse(**job_to_posting(job).model_dump())


@router.get("/orgs/{org_id}/jobs", response_model=list[JobResponse])
def list_jobs(org_id: str, db: Session = Depends(get_db)) -> list[JobResponse]:
    return [JobResponse(**job_to_posting(job).model_dump()) for job in Repository(db).list_jobs(org_id)]


@router.get("/orgs/{org_id}/jobs/{job_id}", response_model=JobResponse)
def get_job(org_id: str, job_id: str, db: Session = Depends(get_db)) -> JobResponse:
    job = Repository(db).get_job(job_id, org_id=org_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse(**job_to_posting(job).model_dump())


@router.post("/orgs/{org_id}/jobs/{job_id}/applications", response_model=SubmissionResponse)
async def submit_application(
    org_id: str,
    job_id: str,
    first_name: str = Form(""),
    last_name: str = Form(""),
    email: str = Form(""),
    availability: Availability = Form("Immediate"),
    source: ApplicationSource = Form("LinkedIn"),
    video_seconds: int = Form(0),
    submission_id: str | None = Form(None, pattern=SUBMISSION_ID_PATTERN),
    resume: UploadFile | None = File(None),
    video: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    submissions: PendingSubmissions = Depends(get_submissions),
) -> JSONResponse:
    row = Repository(db).get_job(job_id, org_id=org_id)
    if not row:
        raise HTTPException(status_code=404, detail="Job not found")
    job = job_to_posting(row)
    if job.status != "Open":
        raise HTTPException(status_code=409, detail="This position is not accepting applications.")
    if submission_id and submission_id in submissions:
        raise HTTPException(status_code=409, detail="Submission id is already in use.")

    draft = ApplicantDraft(
        first_name=first_name,
        last_name=last_name,
        email=email,
        availability=availability,
        source=source,
    )
    if resume is not None and resume.filename:
        draft.resume = ResumeFile(
            filename=resume.filename,
            content_type=resume.content_type or guess_resume_content_type(resume.filename),
            data=await resume.read(),
        )
    if video is not None and video.filename:
        data = await video.read()
        if data:
            clip = VideoClip(data=data, mime_type=video.content_type or "video/webm", duration_seconds=video_seconds)
            draft.video = clip
            draft.thumbnail = await build_thumbnail_extractor(services.settings)(clip)

    # A client-chosen id lets the caller open the events stream before submitting.
    submission = build_submission(services, org_id=org_id, job=job, draft=draft, submission_id=submission_id)
    submission.begin()
    state = await submission.submit()
    _raise_for_state(state)

    if state.manual_recovery:
        await submissions.park(submission)
        logger.info("Submission awaiting manual resume submission_id=%s", submission.id)
        return _submission_response(submission, 202)
    return _submission_response(submission, 201)


@router.post("/submissions/{submission_id}/manual-resume", response_model=SubmissionResponse)
async def submit_manual_resume(
    submission_id: str,
    payload: ManualResumeRequest,
    submissions: PendingSubmissions = Depends(get_submissions),
) -> JSONResponse:
    await submissions.evict_expired()
    submission = submissions.get(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    try:
        state = await submission.submit_manual_resume(payload.resume_text)
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    _raise_for_state(state)

    if state.step == SubmissionStep.SUCCESS:
        submissions.pop(submission_id)
    return _submission_response(submission, 200)


@router.get("/orgs/{org_id}/candidates", response_model=list[CandidateRecord])
async def list_candidates(
    org_id: str,
    email: str | None = None,
    job_id: str | None = None,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> list[CandidateRecord]:
    if email:
        return await services.store.query_by_field(org_id, "email", email, job_id=job_id)
    repo = Repository(db)
    if job_id:
        rows = repo.list_candidates_by_field(org_id, "job_id", job_id)
    else:
        rows = repo.list_candidates(org_id)
    return [candidate_to_record(row) for row in rows]


@router.get("/orgs/{org_id}/candidates/{candidate_id}", response_model=CandidateRecord)
def get_candidate(org_id: str, candidate_id: str, db: Session = Depends(get_db)) -> CandidateRecord:
    row = Repository(db).get_candidate(candidate_id)
    if not row or row.org_id != org_id:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return candidate_to_record(row)


@router.websocket("/submissions/{submission_id}/events")
async def stream_submission_events(websocket: WebSocket, submission_id: str) -> None:
    await websocket.accept()
    event_bus = websocket.app.state.services.event_bus
    try:
        async for event in event_bus.subscribe(f"submission:{submission_id}"):
            await websocket.send_json(event)
    except WebSocketDisconnect:
        return


@router.websocket("/orgs/{org_id}/candidates/stream")
async def stream_candidate_events(websocket: WebSocket, org_id: str) -> None:
    await websocket.accept()
    event_bus = websocket.app.state.services.event_bus
    try:
        async for event in event_bus.subscribe(candidates_topic(org_id)):
            await websocket.send_json(event)
    except WebSocketDisconnect:
        return
