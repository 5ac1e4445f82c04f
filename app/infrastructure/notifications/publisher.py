"""Utility helpers to push notifications to websocket subscribers."""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime
from typing import Any

from anyio import from_thread

from app.domain.entities import Notification
from app.domain.exceptions import DeliveryError
from app.utils import isoformat_or_none, now_in_app_timezone

from .manager import NotificationConnectionManager

logger = logging.getLogger(__name__)

NEW_NOTIFICATION_EVENT = "notification"
NOTIFICATION_UPDATE_EVENT = "notification-update"

ACTION_READ = "READ"
ACTION_DISMISSED = "DISMISSED"
ACTION_ALL_READ = "ALL_READ"
ACTION_DELETED = "DELETED"


class NotificationPublisher:
    """Serialize notification events and schedule their delivery.

    Publishing never waits for the websocket sends: the send runs as a task on
    the event loop that owns the connections. Calls made from the loop thread
    create the task directly, calls from AnyIO worker threads (FastAPI sync
    endpoints) hop into the loop through :mod:`anyio.from_thread`, and any
    other thread falls back to the loop bound with :meth:`bind_loop`.
    """

    def __init__(self, manager: NotificationConnectionManager) -> None:
        self._manager = manager
        self._loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[asyncio.Task[Any]] = set()

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        """Remember the loop that serves websocket connections."""

        self._loop = loop

    def publish_new(self, user_id: str, notification: Notification) -> None:
        """Push a freshly created ``notification`` to the sessions of ``user_id``."""

        self._dispatch(
            user_id,
            {"type": NEW_NOTIFICATION_EVENT, "data": serialize_notification(notification)},
        )

    def publish_update(self, user_id: str, notification: Notification, *, action: str) -> None:
        """Tell the sessions of ``user_id`` that one notification changed state."""

        self._dispatch(
            user_id,
            _update_message(
                action,
                notification_id=notification.id,
                notification=serialize_notification(notification),
            ),
        )

    def publish_bulk(self, user_id: str, *, action: str = ACTION_ALL_READ, count: int = 0) -> None:
        """Signal a bulk change; clients are expected to re-fetch their list."""

        self._dispatch(user_id, _update_message(action, count=count))

    def publish_deletion(self, user_id: str, notification_id: int) -> None:
        self._dispatch(user_id, _update_message(ACTION_DELETED, notification_id=notification_id))

    def _dispatch(self, user_id: str, message: dict[str, Any]) -> None:
        if not user_id:
            return
        if self._manager.connection_count(user_id) == 0:
            logger.debug("No live sessions for user %s; skipping realtime event", user_id)
            return
        self._schedule_send(user_id, message)

    def _schedule_send(self, user_id: str, message: dict[str, Any]) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            self._start_delivery(user_id, message)
            return

        try:
            from_thread.run_sync(self._start_delivery, user_id, message)
            return
        except RuntimeError:
            # Not an AnyIO worker thread.
            pass

        loop = self._loop
        if loop is None or loop.is_closed():
            raise DeliveryError(f"No event loop available to notify user {user_id}")
        asyncio.run_coroutine_threadsafe(self._deliver(user_id, message), loop)

    def _start_delivery(self, user_id: str, message: dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(user_id, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, user_id: str, message: dict[str, Any]) -> None:
        try:
            delivered = await self._manager.send_to_user(user_id, message)
        except Exception:
            logger.exception("Failed to deliver %s event to user %s", message.get("type"), user_id)
            return
        logger.debug(
            "Delivered %s event to %s session(s) of user %s",
            message.get("type"),
            delivered,
            user_id,
        )


def _update_message(action: str, **fields: Any) -> dict[str, Any]:
    data = {"action": action, **fields, "timestamp": now_in_app_timezone().isoformat()}
    return {"type": NOTIFICATION_UPDATE_EVENT, "data": data}


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the JSON-serializable representation of ``notification``."""

    metadata = copy.deepcopy(notification.metadata or {})
    _normalize_datetime_values(metadata)
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type.name,
        "title": notification.title,
        "message": notification.message,
        "status": notification.status.name,
        "priority": notification.priority.name,
        "created_at": isoformat_or_none(notification.created_at),
        "read_at": isoformat_or_none(notification.read_at),
        "dismissed_at": isoformat_or_none(notification.dismissed_at),
        "expires_at": isoformat_or_none(notification.expires_at),
        "related_entity_id": notification.related_entity_id,
        "action_url": notification.action_url,
        "metadata": metadata,
    }


def _normalize_datetime_values(data: dict[str, Any] | list[Any]) -> None:
    """Convert ``datetime`` instances nested inside ``data`` into ISO strings."""

    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, datetime):
                data[key] = value.isoformat()
            elif isinstance(value, (dict, list)):
                _normalize_datetime_values(value)
    elif isinstance(data, list):
        for index, item in enumerate(data):
            if isinstance(item, datetime):
                data[index] = item.isoformat()
            elif isinstance(item, (dict, list)):
                _normalize_datetime_values(item)


__all__ = [
    "ACTION_ALL_READ",
    "ACTION_DELETED",
    "ACTION_DISMISSED",
    "ACTION_READ",
    "NEW_NOTIFICATION_EVENT",
    "NOTIFICATION_UPDATE_EVENT",
    "NotificationPublisher",
    "serialize_notification",
]
