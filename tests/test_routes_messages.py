"""Tests for messages blueprint - create, edit, list and error responses."""

from unittest.mock import patch


def _post(client, **body):
    payload = {"sender": "alice", "receiver": "bob", "content": "hello"}
    payload.update(body)
    return client.post("/api/messages", json=payload)


def test_create_message(client):
    resp = _post(client)
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["sender"] == "alice"
    assert data["content"] == "hello"
    assert "updatedAt" in data
    assert "createdAt" in data


def test_create_message_with_aware_timestamp(client, tmp_db):
    resp = _post(client, timestamp="2026-10-19T12:00:00+02:00")
    assert resp.status_code == 201
    stored = tmp_db.messages_repo.get_message(resp.get_json()["id"])
    assert stored.timestamp.isoformat() == "2026-10-19T10:00:00"


def test_create_message_validation_error(client):
    resp = _post(client, content="   ")
    assert resp.status_code == 400
    data = resp.get_json()
    assert data["error"] == "Validation failed"
    assert data["details"][0]["field"] == "content"


def test_create_message_missing_field(client):
    resp = client.post("/api/messages", json={"sender": "alice"})
    assert resp.status_code == 400
    fields = {d["field"] for d in resp.get_json()["details"]}
    assert fields == {"receiver", "content"}


def test_create_message_requires_body(client):
    resp = client.post("/api/messages", data="", content_type="application/json")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Request body is required"


def test_create_without_broadcast_hook(app, client):
    app.message_service.hub = None
    with patch.object(app.hub, "broadcast") as mock_broadcast:
        resp = _post(client)
    assert resp.status_code == 201
    mock_broadcast.assert_not_called()


def test_update_message(client):
    created = _post(client).get_json()
    resp = client.patch(f"/api/messages/{created['id']}", json={"content": "edited"})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["content"] == "edited"
    assert data["updatedAt"] >= created["updatedAt"]


def test_update_unknown_message(client):
    resp = client.patch("/api/messages/missing", json={"content": "x"})
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Message not found"


def test_list_messages(client):
    _post(client, content="one")
    _post(client, content="two")
    resp = client.get("/api/messages?limit=1")
    assert resp.status_code == 200
    data = resp.get_json()
    assert len(data) == 1
    assert data[0]["content"] == "two"


def test_list_messages_bad_limit(client):
    assert client.get("/api/messages?limit=abc").status_code == 400
    assert client.get("/api/messages?limit=0").status_code == 400
    assert client.get("/api/messages?limit=101").status_code == 400


def test_unknown_route_returns_json_404(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json() == {"error": "Not found", "status": 404}


def test_wrong_method_returns_json_405(client):
    resp = client.delete("/api/messages")
    assert resp.status_code == 405
    assert resp.get_json()["status"] == 405
