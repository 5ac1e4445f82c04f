"""State machine governing the status of a single notification.

Every function here is pure: it only inspects or mutates the given
:class:`Notification` and receives the current time explicitly. Transitions
that are not allowed, or that were already applied, are no-ops reported by a
``False`` return value rather than errors, which keeps repeated client
requests idempotent.

``read_at`` and ``dismissed_at`` are stamped only the first time the matching
transition happens and are never cleared afterwards.
"""

from __future__ import annotations

from datetime import datetime

from app.domain.entities.notification import Notification, NotificationStatus

_ALLOWED_TRANSITIONS: dict[NotificationStatus, frozenset[NotificationStatus]] = {
    NotificationStatus.UNREAD: frozenset(
        {NotificationStatus.READ, NotificationStatus.DISMISSED, NotificationStatus.ARCHIVED}
    ),
    NotificationStatus.READ: frozenset(
        {NotificationStatus.DISMISSED, NotificationStatus.ARCHIVED}
    ),
    NotificationStatus.DISMISSED: frozenset({NotificationStatus.ARCHIVED}),
    NotificationStatus.ARCHIVED: frozenset(),
}


def can_transition(current: NotificationStatus, target: NotificationStatus) -> bool:
    """Return ``True`` when ``current`` may move to ``target``."""

    return target in _ALLOWED_TRANSITIONS[current]


def mark_read(notification: Notification, *, now: datetime) -> bool:
    """Move an unread notification to ``READ``."""

    if not can_transition(notification.status, NotificationStatus.READ):
        return False
    notification.status = NotificationStatus.READ
    if notification.read_at is None:
        notification.read_at = now
    return True


def mark_dismissed(notification: Notification, *, now: datetime) -> bool:
    """Dismiss an unread or read notification."""

    if not can_transition(notification.status, NotificationStatus.DISMISSED):
        return False
    notification.status = NotificationStatus.DISMISSED
    if notification.dismissed_at is None:
        notification.dismissed_at = now
    return True


def archive(notification: Notification) -> bool:
    """Archive a notification. Reserved for maintenance cleanup."""

    if not can_transition(notification.status, NotificationStatus.ARCHIVED):
        return False
    notification.status = NotificationStatus.ARCHIVED
    return True


def is_unread(notification: Notification) -> bool:
    return notification.status is NotificationStatus.UNREAD


def is_expired(notification: Notification, *, now: datetime) -> bool:
    """Return ``True`` when ``expires_at`` is set and already in the past."""

    return notification.expires_at is not None and now > notification.expires_at


def is_active(notification: Notification, *, now: datetime) -> bool:
    return not is_expired(notification, now=now)


__all__ = [
    "archive",
    "can_transition",
    "is_active",
    "is_expired",
    "is_unread",
    "mark_dismissed",
    "mark_read",
]
