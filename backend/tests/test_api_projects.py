"""Integration tests for the client project API (/api/v1/projects/...)."""

from unittest.mock import patch

import pytest

from app.models.assignment import AssignmentBatch, AssignmentCandidate
from app.platform.config import settings
from tests.conftest import (
    TestingSessionLocal,
    approved_developer_headers,
    auth_headers,
    create_project_via_api,
    create_skill_in_db,
)


def _generate(client, headers, project_id, **selection):
    body = selection or {"fresher_count": 0, "mid_count": 1, "expert_count": 0}
    return client.post(f"/api/v1/projects/{project_id}/batches/generate", json=body, headers=headers)


# ===== Project posting =====


def test_create_and_list_projects(client):
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)

    resp = create_project_via_api(client, headers, [skill_id, skill_id], title="  Landing page  ")
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["title"] == "Landing page"
    assert data["status"] == "submitted"
    assert data["skills_required"] == [skill_id]
    assert data["current_batch_id"] is None

    listed = client.get("/api/v1/projects", headers=headers)
    assert listed.status_code == 200
    assert [p["id"] for p in listed.json()] == [data["id"]]


def test_create_project_unknown_skill_400(client):
    headers, _ = auth_headers(client)
    resp = create_project_via_api(client, headers, [424242])
    assert resp.status_code == 400
    assert "Unknown skill" in resp.json()["detail"]


def test_create_project_requires_skills_422(client):
    headers, _ = auth_headers(client)
    resp = client.post("/api/v1/projects", json={"title": "No skills", "skills_required": []}, headers=headers)
    assert resp.status_code == 422


def test_developer_cannot_post_projects(client):
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client, role="developer", developer_level="MID")
    resp = create_project_via_api(client, headers, [skill_id])
    assert resp.status_code == 403


def test_unauthenticated_401(client):
    assert client.get("/api/v1/projects").status_code == 401


def test_other_clients_project_403_and_missing_404(client):
    skill_id = create_skill_in_db()
    owner, _ = auth_headers(client)
    stranger, _ = auth_headers(client)
    project = create_project_via_api(client, owner, [skill_id]).json()

    assert client.get(f"/api/v1/projects/{project['id']}", headers=stranger).status_code == 403
    assert client.get("/api/v1/projects/99999", headers=owner).status_code == 404
    assert _generate(client, stranger, project["id"]).status_code == 403


# ===== Batches =====


def test_generate_batch_and_view_assignment(client):
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)
    _, mid_id = approved_developer_headers(client, [skill_id], level="MID")
    _, expert_id = approved_developer_headers(client, [skill_id], level="EXPERT")
    project = create_project_via_api(client, headers, [skill_id]).json()

    resp = _generate(client, headers, project["id"], fresher_count=0, mid_count=1, expert_count=1)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["batch"]["batch_number"] == 1
    assert data["batch"]["batch_type"] == "AUTO_ROTATION"
    assert data["can_generate_more"] is True
    # Experts are listed first
    assert [c["developer_id"] for c in data["candidates"]] == [expert_id, mid_id]

    view = client.get(f"/api/v1/projects/{project['id']}/assignment", headers=headers)
    assert view.status_code == 200
    body = view.json()
    assert body["project"]["status"] == "assigning"
    assert body["batch"]["id"] == data["batch"]["id"]
    assert {c["status_text_for_client"] for c in body["candidates"]} == {"developer is checking"}


def test_generate_batch_out_of_range_selection_400(client):
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)
    project = create_project_via_api(client, headers, [skill_id]).json()

    resp = _generate(client, headers, project["id"], fresher_count=11)
    assert resp.status_code == 400


def test_generate_without_body_uses_defaults(client):
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)
    project = create_project_via_api(client, headers, [skill_id]).json()

    resp = client.post(f"/api/v1/projects/{project['id']}/batches/generate", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["batch"]["selection"] == {"fresherCount": 5, "midCount": 5, "expertCount": 3}
    assert resp.json()["candidates"] == []


def test_refresh_replaces_current_batch(client):
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)
    _, first_dev = approved_developer_headers(client, [skill_id])
    _, second_dev = approved_developer_headers(client, [skill_id])
    project = create_project_via_api(client, headers, [skill_id]).json()

    first = _generate(client, headers, project["id"]).json()
    assert [c["developer_id"] for c in first["candidates"]] == [first_dev]

    resp = client.post(
        f"/api/v1/projects/{project['id']}/batches/refresh",
        json={"fresher_count": 0, "mid_count": 1, "expert_count": 0},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["replaced_batch_id"] == first["batch"]["id"]
    assert [c["developer_id"] for c in data["candidates"]] == [second_dev]


def test_connect_quota_exhausted_402(client, monkeypatch):
    monkeypatch.setattr(settings, "FREE_PLAN_CONNECTS_PER_MONTH", 0)
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)
    project = create_project_via_api(client, headers, [skill_id]).json()

    resp = _generate(client, headers, project["id"])
    assert resp.status_code == 402


# ===== Manual invites =====


def test_manual_invite_flow(client):
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)
    dev_headers, dev_id = approved_developer_headers(client, [], level="EXPERT")
    project = create_project_via_api(client, headers, [skill_id]).json()

    resp = client.post(
        f"/api/v1/projects/{project['id']}/invites/manual",
        json={"developer_id": dev_id, "message": "Your portfolio fits this", "title": "Landing page", "budget": 800},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    invite = resp.json()
    assert invite["source"] == "MANUAL_INVITE"
    assert invite["acceptance_deadline"] is None

    invitations = client.get("/api/v1/developers/me/invitations", headers=dev_headers).json()
    assert [i["id"] for i in invitations] == [invite["id"]]
    assert invitations[0]["project_title"] == project["title"]
    assert invitations[0]["invite_metadata"]["title"] == "Landing page"

    quota = client.get("/api/v1/billing/quotas", headers=headers).json()
    assert quota["connects_used"] == 1


def test_manual_invite_rejects_long_message_400(client):
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)
    _, dev_id = approved_developer_headers(client, [])
    project = create_project_via_api(client, headers, [skill_id]).json()

    resp = client.post(
        f"/api/v1/projects/{project['id']}/invites/manual",
        json={"developer_id": dev_id, "message": "x" * 301},
        headers=headers,
    )
    assert resp.status_code == 400


def test_manual_invite_unknown_developer_404(client):
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)
    project = create_project_via_api(client, headers, [skill_id]).json()

    resp = client.post(
        f"/api/v1/projects/{project['id']}/invites/manual",
        json={"developer_id": 99999, "message": "Hello"},
        headers=headers,
    )
    assert resp.status_code == 404


def test_manual_invite_not_saved_when_billing_fails(client, monkeypatch):
    from app.components.rotation import service as rotation_service

    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)
    _, dev_id = approved_developer_headers(client, [])
    project = create_project_via_api(client, headers, [skill_id]).json()

    def broken_billing(db, client_id, count=1):
        raise RuntimeError("billing store unavailable")

    monkeypatch.setattr(rotation_service, "consume_connect", broken_billing)
    with patch("app.components.rotation.service.dispatch_candidate_invitations") as dispatch:
        with pytest.raises(RuntimeError):
            client.post(
                f"/api/v1/projects/{project['id']}/invites/manual",
                json={"developer_id": dev_id, "message": "Hello"},
                headers=headers,
            )
    dispatch.assert_not_called()

    db = TestingSessionLocal()
    try:
        assert db.query(AssignmentCandidate).filter(AssignmentCandidate.project_id == project["id"]).count() == 0
        assert db.query(AssignmentBatch).filter(AssignmentBatch.project_id == project["id"]).count() == 0
    finally:
        db.close()


def test_manual_invite_refused_once_last_connect_spent(client, monkeypatch):
    monkeypatch.setattr(settings, "FREE_PLAN_CONNECTS_PER_MONTH", 1)
    skill_id = create_skill_in_db()
    headers, _ = auth_headers(client)
    _, first_dev = approved_developer_headers(client, [])
    _, second_dev = approved_developer_headers(client, [])
    project = create_project_via_api(client, headers, [skill_id]).json()
    # Both invites pass the up-front check; only one connect is left to spend
    monkeypatch.setattr("app.domains.projects.routes.can_use_connect", lambda db, client_id: True)

    url = f"/api/v1/projects/{project['id']}/invites/manual"
    first = client.post(url, json={"developer_id": first_dev, "message": "Hello"}, headers=headers)
    second = client.post(url, json={"developer_id": second_dev, "message": "Hello"}, headers=headers)

    assert first.status_code == 201, first.text
    assert second.status_code == 402
    quota = client.get("/api/v1/billing/quotas", headers=headers).json()
    assert quota["connects_used"] == 1
