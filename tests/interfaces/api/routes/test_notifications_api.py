"""Integration tests for the notification REST endpoints and websocket."""

from __future__ import annotations

from datetime import timedelta
import os
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[4]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

SECRET_KEY = "test-secret"
os.environ.setdefault("SECRET_KEY", SECRET_KEY)
os.environ.setdefault("NOTIFICATION_CLEANUP_INTERVAL_MINUTES", "0")

from app.config import Settings
from app.domain.exceptions import TransientStoreError
from app.infrastructure.security import create_access_token
from main import create_app


def _token(user_id: str) -> str:
    return create_access_token(user_id, secret_key=SECRET_KEY, expires_delta=timedelta(minutes=5))


def _auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {_token(user_id)}"}


@pytest.fixture()
def app(tmp_path):
    settings = Settings(
        database_url=f"sqlite:///{tmp_path / 'notifications.db'}",
        secret_key=SECRET_KEY,
        notification_cleanup_interval_minutes=0,
    )
    return create_app(settings)


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def _create(client: TestClient, user_id: str = "u1", **payload) -> dict:
    body = {"type": "NEW_MESSAGE", **payload}
    response = client.post("/api/notifications/test", json=body, headers=_auth(user_id))
    assert response.status_code == 201, response.text
    return response.json()


def test_requires_bearer_token(client: TestClient) -> None:
    assert client.get("/api/notifications/").status_code == 401

    response = client.get(
        "/api/notifications/", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_notification_rest_flow(client: TestClient) -> None:
    """Create, list, read, dismiss and delete notifications over HTTP."""

    first = _create(client, title="Hello", message="First message")
    second = _create(client, type="security_alert", priority="HIGH")
    _create(client, user_id="u2")

    assert first["status"] == "UNREAD"
    assert first["title"] == "Hello"
    assert second["title"] == "Security Alert"
    assert second["priority"] == "HIGH"

    page = client.get("/api/notifications/?page=0&size=1", headers=_auth("u1")).json()
    assert page["total"] == 2
    assert page["has_next"] is True
    assert [item["id"] for item in page["items"]] == [second["id"]]

    unread_count = client.get("/api/notifications/unread/count", headers=_auth("u1")).json()
    assert unread_count == {"count": 2}

    response = client.put(f"/api/notifications/{first['id']}/read", headers=_auth("u1"))
    assert response.status_code == 200
    detail = client.get(f"/api/notifications/{first['id']}", headers=_auth("u1")).json()
    assert detail["status"] == "READ"
    assert detail["read_at"] is not None

    repeat = client.put(f"/api/notifications/{first['id']}/read", headers=_auth("u1"))
    assert repeat.status_code == 200
    again = client.get(f"/api/notifications/{first['id']}", headers=_auth("u1")).json()
    assert again["read_at"] == detail["read_at"]

    unread = client.get("/api/notifications/unread", headers=_auth("u1")).json()
    assert [item["id"] for item in unread] == [second["id"]]

    by_type = client.get("/api/notifications/type/SECURITY_ALERT", headers=_auth("u1")).json()
    assert [item["id"] for item in by_type] == [second["id"]]
    by_priority = client.get("/api/notifications/priority/high", headers=_auth("u1")).json()
    assert [item["id"] for item in by_priority] == [second["id"]]

    recent = client.get("/api/notifications/recent?hours=1", headers=_auth("u1")).json()
    assert {item["id"] for item in recent} == {first["id"], second["id"]}
    active = client.get("/api/notifications/active", headers=_auth("u1")).json()
    assert len(active) == 2

    response = client.put(f"/api/notifications/{second['id']}/dismiss", headers=_auth("u1"))
    assert response.status_code == 200
    assert client.get("/api/notifications/unread/count", headers=_auth("u1")).json() == {"count": 0}

    response = client.delete(f"/api/notifications/{first['id']}", headers=_auth("u1"))
    assert response.status_code == 200
    missing = client.get(f"/api/notifications/{first['id']}", headers=_auth("u1"))
    assert missing.status_code == 404

    everything = client.get("/api/notifications/all", headers=_auth("u1")).json()
    assert [item["id"] for item in everything] == [second["id"]]


def test_foreign_and_missing_notifications_look_the_same(client: TestClient) -> None:
    created = _create(client, user_id="u1")

    foreign = client.put(f"/api/notifications/{created['id']}/read", headers=_auth("u2"))
    missing = client.put("/api/notifications/99999/read", headers=_auth("u2"))

    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json()
    assert client.get(f"/api/notifications/{created['id']}", headers=_auth("u2")).status_code == 404
    assert client.put(f"/api/notifications/{created['id']}/dismiss", headers=_auth("u2")).status_code == 404
    assert client.delete(f"/api/notifications/{created['id']}", headers=_auth("u2")).status_code == 404

    still_unread = client.get(f"/api/notifications/{created['id']}", headers=_auth("u1")).json()
    assert still_unread["status"] == "UNREAD"


def test_mark_all_read_reports_updated_count(client: TestClient) -> None:
    for _ in range(3):
        _create(client)
    _create(client, user_id="u2")

    response = client.put("/api/notifications/read-all", headers=_auth("u1"))

    assert response.status_code == 200
    assert response.json()["updated"] == 3
    assert client.get("/api/notifications/unread/count", headers=_auth("u1")).json() == {"count": 0}
    assert client.get("/api/notifications/unread/count", headers=_auth("u2")).json() == {"count": 1}


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "NOT_A_TYPE"},
        {"type": "NEW_MESSAGE", "priority": "URGENT"},
    ],
)
def test_invalid_creation_is_rejected(client: TestClient, payload: dict) -> None:
    response = client.post("/api/notifications/test", json=payload, headers=_auth("u1"))

    assert response.status_code == 400


def test_unknown_filter_values_are_rejected(client: TestClient) -> None:
    assert client.get("/api/notifications/type/NOPE", headers=_auth("u1")).status_code == 400
    assert client.get("/api/notifications/priority/NOPE", headers=_auth("u1")).status_code == 400


def test_websocket_rejects_missing_or_invalid_token(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/notifications/ws"):
            pass

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/notifications/ws?token=invalid"):
            pass


def test_websocket_streams_and_acknowledges(client: TestClient) -> None:
    existing = _create(client)

    with client.websocket_connect(f"/api/notifications/ws?token={_token('u1')}") as websocket:
        init = websocket.receive_json()
        assert init["type"] == "init"
        assert init["data"]["unread_count"] == 1
        assert [item["id"] for item in init["data"]["notifications"]] == [existing["id"]]

        created = _create(client, type="TASK_ASSIGNED")
        pushed = websocket.receive_json()
        assert pushed["type"] == "notification"
        assert pushed["data"]["id"] == created["id"]
        assert pushed["data"]["type"] == "TASK_ASSIGNED"

        websocket.send_json({"type": "mark-read", "notification_id": existing["id"]})
        replies = [websocket.receive_json(), websocket.receive_json()]
        by_type = {reply["type"]: reply["data"] for reply in replies}
        assert by_type["notification-ack"] == {
            "action": "MARKED_READ",
            "notification_id": existing["id"],
            "success": True,
        }
        assert by_type["notification-update"]["action"] == "READ"
        assert by_type["notification-update"]["notification_id"] == existing["id"]

        websocket.send_json({"type": "ping"})
        pong = websocket.receive_json()
        assert pong["type"] == "pong"
        assert pong["data"]["unread_count"] == 1
        assert pong["data"]["timestamp"]


def test_websocket_rejects_foreign_notification(client: TestClient) -> None:
    foreign = _create(client, user_id="u2")

    with client.websocket_connect(f"/api/notifications/ws?token={_token('u1')}") as websocket:
        websocket.receive_json()

        websocket.send_json({"type": "dismiss", "notification_id": foreign["id"]})
        ack = websocket.receive_json()
        assert ack["type"] == "notification-ack"
        assert ack["data"]["action"] == "DISMISSED"
        assert ack["data"]["success"] is False

        websocket.send_json({"type": "mark-read"})
        invalid = websocket.receive_json()
        assert invalid["data"]["success"] is False
        assert invalid["data"]["notification_id"] is None

    status = client.get(f"/api/notifications/{foreign['id']}", headers=_auth("u2")).json()["status"]
    assert status == "UNREAD"


def test_websocket_mark_all_read(client: TestClient) -> None:
    _create(client)
    _create(client)

    with client.websocket_connect(f"/api/notifications/ws?token={_token('u1')}") as websocket:
        websocket.receive_json()

        websocket.send_json({"type": "mark-all-read"})
        replies = [websocket.receive_json(), websocket.receive_json()]
        by_type = {reply["type"]: reply["data"] for reply in replies}

        assert by_type["notification-ack"]["action"] == "ALL_MARKED_READ"
        assert by_type["notification-ack"]["success"] is True
        assert by_type["notification-update"]["action"] == "ALL_READ"
        assert by_type["notification-update"]["count"] == 2


def _store_down(*args, **kwargs):
    raise TransientStoreError("Notification store is unavailable")


def test_store_outage_returns_service_unavailable(app, client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(app.state.notification_service, "get_unread_count", _store_down)
    monkeypatch.setattr(app.state.notification_service, "mark_read", _store_down)

    assert client.get("/api/notifications/unread/count", headers=_auth("u1")).status_code == 503
    assert client.put("/api/notifications/1/read", headers=_auth("u1")).status_code == 503


def test_websocket_reports_store_outage_and_stays_open(app, client: TestClient, monkeypatch) -> None:
    service = app.state.notification_service
    existing = _create(client)

    with client.websocket_connect(f"/api/notifications/ws?token={_token('u1')}") as websocket:
        websocket.receive_json()

        monkeypatch.setattr(service, "get_unread_count", _store_down)
        monkeypatch.setattr(service, "get_unread", _store_down)
        monkeypatch.setattr(service, "mark_dismissed", _store_down)

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {
            "type": "error",
            "data": {"message": "Notification store unavailable"},
        }

        websocket.send_json({"type": "subscribe"})
        assert websocket.receive_json()["type"] == "error"

        websocket.send_json({"type": "dismiss", "notification_id": existing["id"]})
        ack = websocket.receive_json()
        assert ack["data"]["action"] == "DISMISSED"
        assert ack["data"]["success"] is False
        assert ack["data"]["error"] == "Notification store unavailable"

        monkeypatch.undo()
        websocket.send_json({"type": "ping"})
        pong = websocket.receive_json()
        assert pong["type"] == "pong"
        assert pong["data"]["unread_count"] == 1
