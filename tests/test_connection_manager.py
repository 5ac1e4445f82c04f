"""Tests for websocket connection tracking and realtime publishing."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
import sys
import threading

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.domain.entities import Notification, NotificationStatus, NotificationType
from app.domain.exceptions import DeliveryError
from app.infrastructure.notifications import (
    NEW_NOTIFICATION_EVENT,
    NOTIFICATION_UPDATE_EVENT,
    NotificationConnectionManager,
    NotificationPublisher,
    serialize_notification,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeSession:
    def __init__(self, fail: bool = False) -> None:
        self.accepted = False
        self.sent: list[dict] = []
        self.fail = fail

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)


def _notification(**overrides) -> Notification:
    values = {
        "id": 7,
        "user_id": "u1",
        "type": NotificationType.NEW_MESSAGE,
        "title": "New Message",
        "message": "Hi",
        "created_at": NOW,
        "metadata": {"sent_at": NOW, "tags": [NOW]},
    }
    values.update(overrides)
    return Notification(**values)


def test_connect_registers_and_disconnect_removes():
    manager = NotificationConnectionManager()
    first, second = FakeSession(), FakeSession()

    async def scenario():
        await manager.connect("u1", first)
        await manager.connect("u1", second)

    asyncio.run(scenario())

    assert first.accepted and second.accepted
    assert manager.connection_count("u1") == 2
    manager.disconnect("u1", first)
    assert manager.connection_count("u1") == 1
    manager.disconnect("u1", second)
    assert manager.connection_count("u1") == 0
    assert manager.connected_users() == []
    manager.disconnect("u1", second)


def test_send_to_user_reaches_only_that_user():
    manager = NotificationConnectionManager()
    mine, other = FakeSession(), FakeSession()
    manager.register("u1", mine)
    manager.register("u2", other)

    delivered = asyncio.run(manager.send_to_user("u1", {"type": "ping"}))

    assert delivered == 1
    assert mine.sent == [{"type": "ping"}]
    assert other.sent == []


def test_failed_session_is_dropped_without_affecting_others():
    manager = NotificationConnectionManager()
    healthy, broken = FakeSession(), FakeSession(fail=True)
    manager.register("u1", healthy)
    manager.register("u1", broken)

    delivered = asyncio.run(manager.send_to_user("u1", {"type": "x"}))

    assert delivered == 1
    assert healthy.sent == [{"type": "x"}]
    assert manager.connection_count("u1") == 1


def test_send_without_sessions_is_a_no_op():
    manager = NotificationConnectionManager()

    assert asyncio.run(manager.send_to_user("nobody", {"type": "x"})) == 0


def test_serialize_notification_is_json_ready():
    payload = serialize_notification(_notification(status=NotificationStatus.READ, read_at=NOW))

    assert payload["type"] == "NEW_MESSAGE"
    assert payload["status"] == "READ"
    assert payload["priority"] == "MEDIUM"
    assert payload["created_at"] == NOW.isoformat()
    assert payload["read_at"] == NOW.isoformat()
    assert payload["dismissed_at"] is None
    assert payload["metadata"] == {"sent_at": NOW.isoformat(), "tags": [NOW.isoformat()]}


def test_publisher_delivers_from_event_loop_in_order():
    manager = NotificationConnectionManager()
    session = FakeSession()
    manager.register("u1", session)
    publisher = NotificationPublisher(manager)
    notification = _notification()

    async def scenario():
        publisher.publish_new("u1", notification)
        publisher.publish_update("u1", notification, action="READ")
        publisher.publish_bulk("u1", count=3)
        publisher.publish_deletion("u1", 7)
        for _ in range(10):
            await asyncio.sleep(0)

    asyncio.run(scenario())

    assert [message["type"] for message in session.sent] == [
        NEW_NOTIFICATION_EVENT,
        NOTIFICATION_UPDATE_EVENT,
        NOTIFICATION_UPDATE_EVENT,
        NOTIFICATION_UPDATE_EVENT,
    ]
    assert session.sent[0]["data"]["id"] == 7
    assert session.sent[1]["data"]["action"] == "READ"
    assert session.sent[1]["data"]["notification_id"] == 7
    assert session.sent[2]["data"] == {
        "action": "ALL_READ",
        "count": 3,
        "timestamp": session.sent[2]["data"]["timestamp"],
    }
    assert session.sent[3]["data"]["action"] == "DELETED"


def test_publisher_uses_bound_loop_from_plain_threads():
    manager = NotificationConnectionManager()
    session = FakeSession()
    manager.register("u1", session)
    publisher = NotificationPublisher(manager)

    async def scenario():
        publisher.bind_loop(asyncio.get_running_loop())
        worker = threading.Thread(target=publisher.publish_new, args=("u1", _notification()))
        worker.start()
        await asyncio.get_running_loop().run_in_executor(None, worker.join)
        for _ in range(10):
            await asyncio.sleep(0)

    asyncio.run(scenario())

    assert len(session.sent) == 1
    assert session.sent[0]["type"] == NEW_NOTIFICATION_EVENT


def test_publisher_skips_users_without_sessions():
    publisher = NotificationPublisher(NotificationConnectionManager())

    publisher.publish_new("u1", _notification())
    publisher.publish_new("", _notification())


def test_publisher_without_loop_raises_delivery_error():
    manager = NotificationConnectionManager()
    manager.register("u1", FakeSession())
    publisher = NotificationPublisher(manager)

    with pytest.raises(DeliveryError):
        publisher.publish_new("u1", _notification())
