from __future__ import annotations

import time

from fastapi.testclient import TestClient

from fakes import FakeNotifier, FakeScreening
from gatekeeper.api.app import create_app
from gatekeeper.db.repositories import Repository
from gatekeeper.db.session import SessionLocal
from gatekeeper.types import JobPosting

FORM = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "Ada@Example.com",
    "availability": "2 Weeks Notice",
    "source": "Referral",
}
RESUME = {"resume": ("ada_cv.pdf", b"%PDF-1.4 resume body", "application/pdf")}


def _apply(client: TestClient, job: JobPosting, form: dict | None = None, files: dict | None = None):
    return client.post(
        f"/api/orgs/{job.org_id}/jobs/{job.id}/applications",
        data=form if form is not None else FORM,
        files=files if files is not None else RESUME,
    )


def test_application_is_screened_and_recorded(make_services, open_job: JobPosting) -> None:
    notifier = FakeNotifier()
    client = TestClient(create_app(make_services(notifier=notifier)))

    resp = _apply(client, open_job)

    assert resp.status_code == 201
    body = resp.json()
    assert body["step"] == 3
    assert body["step_name"] == "success"
    assert body["screening"]["score"] == 82

    candidates = client.get("/api/orgs/acme/candidates", params={"email": "ada@example.com"}).json()
    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate["id"] == body["candidate_id"]
    assert candidate["availability"] == "2 Weeks Notice"
    assert candidate["source"] == "Referral"
    assert candidate["score"] == 82
    assert candidate["ai_verdict"] == "Proceed"
    assert candidate["video_url"] == ""
    assert candidate["thumbnail_url"] == ""
    assert notifier.sent == [("ada@example.com", "Senior React Engineer", "Ada Lovelace")]

    asset = client.get(candidate["resume_url"])
    assert asset.status_code == 200
    assert asset.content == b"%PDF-1.4 resume body"

    single = client.get(f"/api/orgs/acme/candidates/{candidate['id']}")
    assert single.status_code == 200
    assert client.get(f"/api/orgs/other/candidates/{candidate['id']}").status_code == 404


def test_second_application_with_same_email_is_rejected(make_services, open_job: JobPosting) -> None:
    client = TestClient(create_app(make_services()))
    assert _apply(client, open_job).status_code == 201

    resp = _apply(client, open_job, form={**FORM, "email": "  ada@EXAMPLE.com "})

    assert resp.status_code == 409
    assert resp.json()["detail"] == "You have already applied for this position with this email."
    assert len(client.get("/api/orgs/acme/candidates").json()) == 1


def test_validation_errors_return_422_without_writing(make_services, open_job: JobPosting) -> None:
    client = TestClient(create_app(make_services()))

    missing_name = _apply(client, open_job, form={**FORM, "first_name": " "})
    assert missing_name.status_code == 422
    assert missing_name.json()["detail"] == "First name is required."

    missing_resume = _apply(client, open_job, files={})
    assert missing_resume.status_code == 422
    assert missing_resume.json()["detail"] == "Please upload your resume."

    wrong_type = _apply(client, open_job, files={"resume": ("cv.png", b"png", "image/png")})
    assert wrong_type.status_code == 422

    assert client.get("/api/orgs/acme/candidates").json() == []


def test_unknown_or_closed_job(make_services, open_job: JobPosting) -> None:
    client = TestClient(create_app(make_services()))
    with SessionLocal() as session:
        closed = Repository(session).create_job(org_id="acme", title="Old role", status="Closed")
        closed_id = closed.id

    assert client.post("/api/orgs/acme/jobs/nope/applications", data=FORM, files=RESUME).status_code == 404
    assert client.post(f"/api/orgs/acme/jobs/{closed_id}/applications", data=FORM, files=RESUME).status_code == 409


def test_manual_resume_recovers_failed_screening(make_services, open_job: JobPosting) -> None:
    notifier = FakeNotifier()
    services = make_services(screening=FakeScreening({"verdict": "Proceed"}), notifier=notifier)
    client = TestClient(create_app(services))

    resp = _apply(
        client,
        open_job,
        form={**FORM, "video_seconds": "6"},
        files={**RESUME, "video": ("intro.webm", b"not really a webm", "video/webm")},
    )

    assert resp.status_code == 202
    pending = resp.json()
    assert pending["manual_recovery"] is True
    assert pending["phase"] == "manual_recovery"
    assert pending["notice"]
    assert notifier.sent == []

    # Asset URLs are only written once the submission completes.
    record = client.get("/api/orgs/acme/candidates").json()[0]
    assert record["resume_url"] == ""
    assert record["video_url"] == ""
    assert record["metrics"]["intro_video_duration"] == 6

    url = f"/api/submissions/{pending['submission_id']}/manual-resume"
    empty = client.post(url, json={"resume_text": "   "})
    assert empty.status_code == 422

    done = client.post(url, json={"resume_text": "Ten years of React."})
    assert done.status_code == 200
    assert done.json()["step_name"] == "success"

    candidates = client.get("/api/orgs/acme/candidates").json()
    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate["resume_text"] == "Ten years of React."
    assert candidate["manual_input"] is True
    assert candidate["resume_url"].endswith("resume_ada_cv.pdf")
    assert candidate["video_url"].endswith("intro_video.webm")
    assert candidate["thumbnail_url"] == ""
    assert candidate["score"] is None
    assert notifier.sent == [("ada@example.com", "Senior React Engineer", "Ada Lovelace")]

    assert client.post(url, json={"resume_text": "again"}).status_code == 404


def test_abandoned_manual_recoveries_expire(make_services, open_job: JobPosting) -> None:
    services = make_services(screening=FakeScreening({"verdict": "Proceed"}))
    services.settings = services.settings.model_copy(update={"manual_recovery_ttl_sec": 0})
    app = create_app(services)
    client = TestClient(app)

    first = _apply(client, open_job, form={**FORM, "email": "first@example.com"})
    second = _apply(client, open_job, form={**FORM, "email": "second@example.com"})

    assert first.status_code == 202
    assert second.status_code == 202
    assert len(app.state.submissions) == 1
    assert first.json()["submission_id"] not in app.state.submissions
    assert second.json()["submission_id"] in app.state.submissions

    url = f"/api/submissions/{first.json()['submission_id']}/manual-resume"
    assert client.post(url, json={"resume_text": "Ten years of React."}).status_code == 404


def test_events_stream_shows_progress_of_the_initial_submit(make_services, open_job: JobPosting) -> None:
    services = make_services()
    submission_id = "client-chosen-0001"
    topic = f"submission:{submission_id}"

    with TestClient(create_app(services)) as client:
        with client.websocket_connect(f"/api/submissions/{submission_id}/events") as ws:
            deadline = time.monotonic() + 2
            while services.event_bus.subscriber_count(topic) == 0:
                assert time.monotonic() < deadline
                time.sleep(0.01)

            resp = _apply(client, open_job, form={**FORM, "submission_id": submission_id})
            assert resp.status_code == 201
            assert resp.json()["submission_id"] == submission_id

            events: list[dict] = []
            while True:
                event = ws.receive_json()
                events.append(event)
                if event["phase"] == "done" and not event["is_submitting"]:
                    break

    phases: list[str] = []
    for event in events:
        if not phases or phases[-1] != event["phase"]:
            phases.append(event["phase"])
    assert phases == ["idle", "checking", "uploading", "parsing", "finalizing", "done"]
    uploading = [event["upload_progress"] for event in events if event["phase"] == "uploading"]
    assert uploading[-1] == 100.0
    assert len(uploading) > 2


def test_client_submission_id_must_be_well_formed(make_services, open_job: JobPosting) -> None:
    client = TestClient(create_app(make_services()))
    resp = _apply(client, open_job, form={**FORM, "submission_id": "../x"})
    assert resp.status_code == 422
    assert client.get("/api/orgs/acme/candidates").json() == []


def test_unknown_submission_for_manual_resume(make_services) -> None:
    client = TestClient(create_app(make_services()))
    assert client.post("/api/submissions/missing/manual-resume", json={"resume_text": "x"}).status_code == 404
