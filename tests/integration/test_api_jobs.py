from fastapi.testclient import TestClient

from gatekeeper.api.app import create_app


def test_health(make_services) -> None:
    client = TestClient(create_app(make_services()))
    assert client.get("/health").json() == {"status": "ok"}


def test_job_create_list_and_get(make_services) -> None:
    client = TestClient(create_app(make_services()))

    create_resp = client.post(
        "/api/orgs/acme/jobs",
        json={"title": "Data Engineer", "description": "Python and SQL", "department": "Data"},
    )
    assert create_resp.status_code == 201
    job = create_resp.json()
    assert job["org_id"] == "acme"
    assert job["status"] == "Open"

    list_resp = client.get("/api/orgs/acme/jobs")
    assert list_resp.status_code == 200
    assert [item["id"] for item in list_resp.json()] == [job["id"]]

    get_resp = client.get(f"/api/orgs/acme/jobs/{job['id']}")
    assert get_resp.json()["title"] == "Data Engineer"


def test_job_lookup_is_scoped_to_org(make_services) -> None:
    client = TestClient(create_app(make_services()))

    assert client.get("/api/orgs/demo/jobs/senior-react-engineer").status_code == 200
    assert client.get("/api/orgs/acme/jobs/senior-react-engineer").status_code == 404


def test_job_title_is_required(make_services) -> None:
    client = TestClient(create_app(make_services()))
    assert client.post("/api/orgs/acme/jobs", json={"title": ""}).status_code == 422
