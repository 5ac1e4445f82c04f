"""Connection management helpers for notification websockets."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Any, DefaultDict, Protocol, Set

logger = logging.getLogger(__name__)


class NotificationSession(Protocol):
    """The part of a websocket session the manager relies on."""

    async def accept(self) -> None: ...

    async def send_json(self, data: Any) -> None: ...


class NotificationConnectionManager:
    """Manage active websocket connections grouped by user.

    Registration and removal may happen from any thread; sends happen on the
    event loop and are serialized per user so each session receives a user's
    events in the order they were scheduled.
    """

    def __init__(self) -> None:
        self._connections: DefaultDict[str, Set[NotificationSession]] = defaultdict(set)
        self._registry_lock = threading.Lock()
        self._send_locks: dict[str, asyncio.Lock] = {}

    async def connect(self, user_id: str, websocket: NotificationSession) -> None:
        """Accept the websocket connection and register it for ``user_id``."""

        await websocket.accept()
        self.register(user_id, websocket)

    def register(self, user_id: str, websocket: NotificationSession) -> None:
        with self._registry_lock:
            self._connections[user_id].add(websocket)
            total = len(self._connections[user_id])
        logger.info("User %s connected to notifications (%s sessions)", user_id, total)

    def disconnect(self, user_id: str, websocket: NotificationSession) -> None:
        """Remove ``websocket`` from the pool for ``user_id``."""

        with self._registry_lock:
            connections = self._connections.get(user_id)
            if connections is None:
                return
            connections.discard(websocket)
            if not connections:
                self._connections.pop(user_id, None)
                self._send_locks.pop(user_id, None)
        logger.info("User %s disconnected from notifications", user_id)

    def connection_count(self, user_id: str) -> int:
        with self._registry_lock:
            return len(self._connections.get(user_id, ()))

    def connected_users(self) -> list[str]:
        with self._registry_lock:
            return list(self._connections)

    def _snapshot(self, user_id: str) -> list[NotificationSession]:
        with self._registry_lock:
            return list(self._connections.get(user_id, ()))

    def _send_lock(self, user_id: str) -> asyncio.Lock:
        with self._registry_lock:
            lock = self._send_locks.get(user_id)
            if lock is None:
                lock = self._send_locks[user_id] = asyncio.Lock()
            return lock

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        """Send ``message`` to every active connection for ``user_id``.

        Returns the number of sessions that received the message. Sessions
        that fail are dropped from the registry.
        """

        if not self._snapshot(user_id):
            return 0

        delivered = 0
        async with self._send_lock(user_id):
            for connection in self._snapshot(user_id):
                try:
                    await connection.send_json(message)
                except Exception:
                    logger.warning(
                        "Dropping notification session of user %s after a failed send",
                        user_id,
                        exc_info=True,
                    )
                    self.disconnect(user_id, connection)
                else:
                    delivered += 1
        return delivered


__all__ = ["NotificationConnectionManager", "NotificationSession"]
