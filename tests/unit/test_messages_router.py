from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from apps.api_gateway.main import app


@pytest.fixture()
def client(settings, seed):
    settings.app_env = "dev"
    settings.auth_mode = "none"
    settings.dev_user_header = "X-User-Id"
    seed.user("alice")
    seed.user("bob")
    seed.user("carol")
    return TestClient(app)


def _as(user_id: str) -> dict[str, str]:
    return {"X-User-Id": user_id}


def test_send_and_read_history(client) -> None:
    sent = client.post("/v1/messages/bob", json={"content": "hi bob"}, headers=_as("alice"))
    assert sent.status_code == 201
    data = sent.json()["data"]
    assert data["participants"] == ["alice", "bob"]
    assert data["sender"]["id"] == "alice"
    assert data["recipient"]["id"] == "bob"
    assert data["read"] is False

    client.post("/v1/messages/alice", json={"content": "hi alice"}, headers=_as("bob"))

    as_alice = client.get("/v1/messages/with/bob", headers=_as("alice")).json()["data"]
    as_bob = client.get("/v1/messages/with/alice", headers=_as("bob")).json()["data"]
    assert [m["content"] for m in as_alice] == ["hi bob", "hi alice"]
    assert as_alice == as_bob

    limited = client.get("/v1/messages/with/bob?limit=1", headers=_as("alice")).json()["data"]
    assert [m["content"] for m in limited] == ["hi alice"]


def test_invalid_before_cursor_is_ignored(client) -> None:
    client.post("/v1/messages/bob", json={"content": "one"}, headers=_as("alice"))
    resp = client.get("/v1/messages/with/bob?before=not-a-date", headers=_as("alice"))
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 1


def test_send_validation_errors(client) -> None:
    empty = client.post("/v1/messages/bob", json={"content": "  "}, headers=_as("alice"))
    assert empty.status_code == 400
    assert empty.json()["code"] == "invalid_request"

    ghost = client.post("/v1/messages/ghost", json={"content": "boo"}, headers=_as("alice"))
    assert ghost.status_code == 404

    to_self = client.post("/v1/messages/alice", json={"content": "me"}, headers=_as("alice"))
    assert to_self.status_code == 400


def test_conversations_summary(client) -> None:
    client.post("/v1/messages/bob", json={"content": "to bob"}, headers=_as("alice"))
    client.post("/v1/messages/alice", json={"content": "from carol"}, headers=_as("carol"))

    resp = client.get("/v1/messages/conversations", headers=_as("alice"))
    assert resp.status_code == 200
    items = resp.json()["data"]
    assert {c["counterpart_id"] for c in items} == {"bob", "carol"}
    by_id = {c["counterpart_id"]: c for c in items}
    assert by_id["carol"]["last_message"]["content"] == "from carol"
    assert by_id["bob"]["counterpart_name"] == "Bob"
