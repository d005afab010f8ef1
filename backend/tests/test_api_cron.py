"""Integration tests for the scheduler endpoints and operational surface."""

from datetime import timedelta

from app.models.assignment import AssignmentCandidate
from app.platform.config import settings
from app.platform.middleware import match_rate_rule
from app.shared.utils import utcnow
from tests.conftest import (
    TestingSessionLocal,
    admin_headers,
    approved_developer_headers,
    auth_headers,
    create_project_via_api,
    create_skill_in_db,
)


def _overdue_candidate(client):
    skill_id = create_skill_in_db()
    client_headers, _ = auth_headers(client)
    approved_developer_headers(client, [skill_id])
    project = create_project_via_api(client, client_headers, [skill_id]).json()
    batch = client.post(
        f"/api/v1/projects/{project['id']}/batches/generate",
        json={"fresher_count": 0, "mid_count": 1, "expert_count": 0},
        headers=client_headers,
    ).json()
    candidate_id = batch["candidates"][0]["id"]
    db = TestingSessionLocal()
    try:
        candidate = db.get(AssignmentCandidate, candidate_id)
        candidate.acceptance_deadline = utcnow() - timedelta(minutes=1)
        db.commit()
    finally:
        db.close()
    return client_headers, project, candidate_id


def test_expire_candidates_sweep(client):
    client_headers, project, candidate_id = _overdue_candidate(client)

    resp = client.post("/api/v1/cron/expire-candidates")
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["expired_count"] == 1
    assert body["message"] == "Expired 1 candidates"

    view = client.get(f"/api/v1/projects/{project['id']}/assignment", headers=client_headers).json()
    assert view["candidates"][0]["response_status"] == "expired"
    assert view["candidates"][0]["status_text_for_client"] == "no response"

    # GET works too, and a second sweep has nothing left to do
    again = client.get("/api/v1/cron/expire-candidates")
    assert again.status_code == 200
    assert again.json()["data"]["expired_count"] == 0


def test_cron_secret_enforced(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

    assert client.post("/api/v1/cron/expire-candidates").status_code == 401
    wrong = client.post("/api/v1/cron/expire-candidates", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 401
    ok = client.post("/api/v1/cron/expire-candidates", headers={"Authorization": "Bearer s3cret"})
    assert ok.status_code == 200


def test_cron_runs_visible_to_admins_only(client):
    client.post("/api/v1/cron/expire-candidates", headers={"X-Request-ID": "sweep-123"})
    admin = admin_headers(client)
    regular, _ = auth_headers(client)

    runs = client.get("/api/v1/cron/runs", headers=admin)
    assert runs.status_code == 200
    assert runs.json()[0]["job"] == "expire-candidates"
    assert runs.json()[0]["status"] == "succeeded"
    assert runs.json()[0]["details"]["correlation_id"] == "sweep-123"

    assert client.get("/api/v1/cron/runs", headers=regular).status_code == 403


def test_health_and_request_headers(client):
    resp = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert resp.status_code == 200
    assert resp.json()["database"] is True
    assert resp.json()["celery_enabled"] is False
    assert resp.headers["X-Request-ID"] == "abc-123"
    assert "X-Process-Time-Ms" in resp.headers
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_billing_packages_listed_after_provisioning(client):
    headers, _ = auth_headers(client)
    quota = client.get("/api/v1/billing/quotas", headers=headers)
    assert quota.status_code == 200
    assert quota.json()["connects_remaining"] == 25

    packages = client.get("/api/v1/billing/packages", headers=headers).json()
    assert [p["name"] for p in packages] == ["Free Plan"]


def test_rate_rules_match_only_limited_routes():
    assert match_rate_rule("/api/v1/auth/jwt/login").bucket == "auth"
    assert match_rate_rule("/api/v1/assignments/7/accept").bucket == "assignment_response"
    assert match_rate_rule("/api/v1/assignments/7") is None
    assert match_rate_rule("/api/v1/projects") is None


def test_cron_rate_limited_per_ip(client):
    for _ in range(30):
        assert client.get("/api/v1/cron/expire-candidates").status_code == 200
    blocked = client.get("/api/v1/cron/expire-candidates")
    assert blocked.status_code == 429
    assert blocked.headers["Retry-After"] == "60"
