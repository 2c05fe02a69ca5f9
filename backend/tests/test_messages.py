"""
Internal message tests.
"""

from businesshub.models import Message


def _send(client, headers, **extra):
    body = {"subject": "Printer down", "content": "Reception printer is offline", "sender_email": "desk@example.com"}
    body.update(extra)
    return client.post("/api/messages", json=body, headers=headers)


def test_create_defaults(client, user_a, user_headers):
    resp = _send(client, user_headers)
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["sender"] == user_a.display_name
    assert data["sender_user_id"] == user_a.id
    assert data["category"] == "General"
    assert data["status"] == "sent"


def test_explicit_sender_kept(client, user_headers):
    resp = _send(client, user_headers, sender="Front Desk", category="Support")
    assert resp.get_json()["sender"] == "Front Desk"
    assert resp.get_json()["category"] == "Support"


def test_missing_subject(client, db_session, user_headers):
    resp = client.post(
        "/api/messages",
        json={"content": "x", "sender_email": "a@example.com"},
        headers=user_headers,
    )
    assert resp.status_code == 400
    assert "subject" in resp.get_json()["error"]
    assert db_session.query(Message).count() == 0


def test_update_status(client, user_headers):
    message_id = _send(client, user_headers).get_json()["id"]

    resp = client.put(f"/api/messages/{message_id}", json={"status": "read"}, headers=user_headers)
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "read"


def test_invalid_status(client, user_headers):
    message_id = _send(client, user_headers).get_json()["id"]

    resp = client.put(f"/api/messages/{message_id}", json={"status": "deleted"}, headers=user_headers)
    assert resp.status_code == 400


def test_content_cannot_change(client, user_headers):
    message_id = _send(client, user_headers).get_json()["id"]

    resp = client.put(f"/api/messages/{message_id}", json={"content": "edited"}, headers=user_headers)
    assert resp.status_code == 400


def test_list_search_and_delete(client, user_headers):
    _send(client, user_headers)
    other_id = _send(client, user_headers, subject="Invoice query", content="Please resend").get_json()["id"]

    resp = client.get("/api/messages?search=invoice", headers=user_headers)
    assert [m["id"] for m in resp.get_json()["items"]] == [other_id]

    assert client.delete(f"/api/messages/{other_id}", headers=user_headers).status_code == 200
    assert client.get("/api/messages", headers=user_headers).get_json()["count"] == 1


def test_tenant_scoped(client, user_headers, admin_b_headers):
    message_id = _send(client, user_headers).get_json()["id"]

    assert client.get(f"/api/messages/{message_id}", headers=admin_b_headers).status_code == 404
    assert client.get("/api/messages", headers=admin_b_headers).get_json()["count"] == 0
