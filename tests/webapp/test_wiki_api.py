"""Wiki JSON API のテスト"""

import pytest


def _headers(actor_id, role, **extra):
    headers = {"X-Wiki-Actor-Id": str(actor_id), "X-Wiki-Actor-Role": role}
    for key, value in extra.items():
        headers[f"X-Wiki-Actor-{key}"] = str(value)
    return headers


MODERATOR = _headers(4, "moderator", Name="mod")
EDITOR = _headers(2, "editor", Name="ed")
OTHER_EDITOR = _headers(3, "editor", Name="ed2")
VIEWER = _headers(1, "viewer")


@pytest.fixture
def test_page(client):
    response = client.post(
        "/api/wiki/pages",
        json={"namespace": "main", "title": "Test", "slug": "Test", "content": "Hello"},
        headers=MODERATOR,
    )
    assert response.status_code == 201
    return response.get_json()["page"]


def test_create_and_read_page(client, test_page):
    assert test_page["current_revision"] == 1
    assert test_page["protection_level"] == "none"

    response = client.get("/api/wiki/pages/main/Test")

    assert response.status_code == 200
    assert response.get_json()["content"] == "Hello"


def test_editor_creation_is_queued(client):
    response = client.post(
        "/api/wiki/pages", json={"title": "Draft", "content": "Body"}, headers=EDITOR
    )

    assert response.status_code == 202
    body = response.get_json()
    assert body["result"] == "queued"
    assert body["submission"]["type"] == "create"
    assert body["submission"]["status"] == "pending"


def test_missing_actor_is_unauthorized(client):
    response = client.post("/api/wiki/pages", json={"title": "Draft", "content": "Body"})

    assert response.status_code == 401
    assert response.get_json()["status"] == "error"


def test_invalid_actor_header_is_rejected(client):
    response = client.post(
        "/api/wiki/pages",
        json={"title": "Draft", "content": "Body"},
        headers=_headers(2, "superuser"),
    )

    assert response.status_code == 400


def test_unknown_page_is_not_found(client):
    response = client.get("/api/wiki/pages/main/Nope")

    assert response.status_code == 404
    assert response.get_json()["code"] == "not_found"


def test_request_validation_error(client):
    response = client.post("/api/wiki/pages", json={"title": "No body"}, headers=MODERATOR)

    assert response.status_code == 422
    assert "content" in response.get_json()["errors"]["json"]


def test_direct_edit_and_stale_conflict(client, test_page):
    first = client.put(
        "/api/wiki/pages/main/Test",
        json={"content": "Hello World", "expected_revision": 1},
        headers=EDITOR,
    )
    stale = client.put(
        "/api/wiki/pages/main/Test",
        json={"content": "Hi there", "expected_revision": 1},
        headers=OTHER_EDITOR,
    )

    assert first.status_code == 200
    assert first.get_json()["page"]["current_revision"] == 2
    assert stale.status_code == 409
    body = stale.get_json()
    assert body["code"] == "revision_conflict"
    assert (body["expected"], body["actual"]) == (1, 2)


def test_viewer_cannot_edit(client, test_page):
    response = client.put("/api/wiki/pages/main/Test", json={"content": "x"}, headers=VIEWER)

    assert response.status_code == 403
    assert response.get_json()["code"] == "permission_denied"


def test_submission_review_flow(client, test_page):
    protect = client.post(
        "/api/wiki/pages/main/Test/protect", json={"level": "full"}, headers=MODERATOR
    )
    assert protect.status_code == 200
    assert protect.get_json()["current_revision"] == 2

    s1 = client.put("/api/wiki/pages/main/Test", json={"content": "Hello World"}, headers=EDITOR)
    s2 = client.put("/api/wiki/pages/main/Test", json={"content": "Hi there"}, headers=OTHER_EDITOR)
    assert s1.status_code == 202
    assert s2.status_code == 202
    s1_id = s1.get_json()["submission"]["id"]
    s2_id = s2.get_json()["submission"]["id"]

    listing = client.get("/api/wiki/submissions", headers=MODERATOR).get_json()
    assert [item["id"] for item in listing["items"]] == [s1_id, s2_id]
    assert listing["counts"]["pending"] == 2

    approved = client.post(
        f"/api/wiki/submissions/{s1_id}/review", json={"decision": "approve"}, headers=MODERATOR
    )
    assert approved.status_code == 200
    assert approved.get_json()["page"]["content"] == "Hello World"
    assert approved.get_json()["submission"]["status"] == "approved"

    conflict = client.post(
        f"/api/wiki/submissions/{s2_id}/review", json={"decision": "approve"}, headers=MODERATOR
    )
    assert conflict.status_code == 409
    assert (conflict.get_json()["expected"], conflict.get_json()["actual"]) == (2, 3)

    pending = client.get("/api/wiki/submissions?status=pending", headers=MODERATOR).get_json()
    assert [item["id"] for item in pending["items"]] == [s2_id]

    forbidden = client.get("/api/wiki/submissions", headers=EDITOR)
    assert forbidden.status_code == 403


def test_lease_endpoints(client, test_page):
    acquired = client.post("/api/wiki/pages/main/Test/lease", json={"ttl": 60}, headers=EDITOR)
    assert acquired.status_code == 200
    assert acquired.get_json()["held"] is True
    assert acquired.get_json()["lease"]["holder_id"] == 2

    blocked = client.post("/api/wiki/pages/main/Test/lease", json={}, headers=OTHER_EDITOR)
    assert blocked.status_code == 423
    assert blocked.get_json()["holder_id"] == 2

    status = client.get("/api/wiki/pages/main/Test/lease").get_json()
    assert status["held"] is True
    assert 0 < status["remaining_seconds"] <= 60

    denied = client.delete("/api/wiki/pages/main/Test/lease", headers=OTHER_EDITOR)
    assert denied.status_code == 403

    released = client.delete("/api/wiki/pages/main/Test/lease", headers=EDITOR)
    assert released.get_json() == {"released": True}
    again = client.delete("/api/wiki/pages/main/Test/lease", headers=EDITOR)
    assert again.get_json() == {"released": False}


def test_history_and_revision_detail(client, test_page):
    for content in ("two", "three"):
        client.put("/api/wiki/pages/main/Test", json={"content": content}, headers=EDITOR)

    history = client.get("/api/wiki/pages/main/Test/history?limit=2").get_json()
    detail = client.get("/api/wiki/pages/main/Test/revisions/2").get_json()

    assert [item["revision_number"] for item in history["items"]] == [3, 2]
    assert history["has_more"] is True
    assert "content" not in history["items"][0]
    assert detail["revision"]["content"] == "two"
    assert detail["previous"]["content"] == "Hello"


def test_revert_move_delete_restore(client, test_page):
    client.put("/api/wiki/pages/main/Test", json={"content": "vandalism"}, headers=EDITOR)

    reverted = client.post(
        "/api/wiki/pages/main/Test/revert", json={"revision": 1}, headers=MODERATOR
    )
    assert reverted.get_json()["content"] == "Hello"

    moved = client.post(
        "/api/wiki/pages/main/Test/move",
        json={"new_title": "Renamed", "new_slug": "Renamed"},
        headers=MODERATOR,
    )
    assert moved.get_json()["slug"] == "Renamed"

    deleted = client.delete("/api/wiki/pages/main/Renamed?reason=cleanup", headers=MODERATOR)
    assert deleted.get_json()["is_deleted"] is True
    assert client.get("/api/wiki/pages/main/Renamed").status_code == 404

    history_id = test_page["id"]
    restored = client.post(f"/api/wiki/pages/{history_id}/restore", headers=MODERATOR)
    assert restored.status_code == 200
    assert client.get("/api/wiki/pages/main/Renamed").status_code == 200


def test_revision_by_id_survives_delete(client, test_page):
    history = client.get("/api/wiki/pages/main/Test/history").get_json()
    revision_id = history["items"][0]["id"]
    client.delete("/api/wiki/pages/main/Test", headers=MODERATOR)

    response = client.get(f"/api/wiki/revisions/{revision_id}")

    assert response.status_code == 200
    assert response.get_json()["content"] == "Hello"


def test_recent_changes_feed(client, test_page):
    client.put("/api/wiki/pages/main/Test", json={"content": "two"}, headers=EDITOR)
    client.post(
        "/api/wiki/pages", json={"title": "Gone", "content": "Bye"}, headers=MODERATOR
    )
    client.delete("/api/wiki/pages/main/Gone", headers=MODERATOR)

    feed = client.get("/api/wiki/recent").get_json()
    edits = client.get("/api/wiki/recent?edit_type=edit&author_id=2").get_json()
    paged = client.get("/api/wiki/recent?limit=1").get_json()

    assert feed["total"] == 2
    assert feed["limit"] == 50
    assert feed["has_more"] is False
    assert [item["revision"]["revision_number"] for item in feed["items"]] == [2, 1]
    assert feed["items"][0]["page"] == {"id": test_page["id"], "namespace": "main", "slug": "Test", "title": "Test"}
    assert "content" not in feed["items"][0]["revision"]
    assert [item["revision"]["author_id"] for item in edits["items"]] == [2]
    assert paged["has_more"] is True
    assert client.get("/api/wiki/recent?edit_type=rename").status_code == 422


def test_sweep_leases_command(app, test_page):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["wiki", "sweep-leases"])

    assert result.exit_code == 0
    assert "Cleared 0 expired lease(s)." in result.output
