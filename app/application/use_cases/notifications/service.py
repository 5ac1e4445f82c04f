"""Use cases for creating, querying and updating user notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Protocol

from app.domain import lifecycle
from app.domain.entities import (
    CleanupReport,
    Notification,
    NotificationPage,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)
from app.domain.exceptions import NotificationValidationError
from app.infrastructure.notifications import (
    ACTION_ALL_READ,
    ACTION_DISMISSED,
    ACTION_READ,
)
from app.infrastructure.repositories import NotificationRepository
from app.utils import ensure_app_timezone, now_in_app_timezone

logger = logging.getLogger(__name__)

DEFAULT_RECENT_WINDOW = timedelta(hours=24)
DEFAULT_RETENTION = timedelta(days=30)
DEFAULT_ARCHIVE_AFTER = timedelta(days=7)
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class RealtimePublisher(Protocol):
    """Realtime channel the service pushes state changes to."""

    def publish_new(self, user_id: str, notification: Notification) -> None: ...

    def publish_update(
        self, user_id: str, notification: Notification, *, action: str
    ) -> None: ...

    def publish_bulk(self, user_id: str, *, action: str = ..., count: int = ...) -> None: ...

    def publish_deletion(self, user_id: str, notification_id: int) -> None: ...


class NotificationService:
    """Orchestrate the notification store, lifecycle rules and realtime channel.

    Every user-facing operation receives the acting ``user_id`` explicitly.
    Operations on a notification the user does not own behave exactly as if
    the notification did not exist.
    """

    def __init__(
        self,
        repository: NotificationRepository,
        publisher: RealtimePublisher,
        *,
        clock: Callable[[], datetime] = now_in_app_timezone,
        recent_window: timedelta = DEFAULT_RECENT_WINDOW,
        retention: timedelta = DEFAULT_RETENTION,
        archive_after: timedelta = DEFAULT_ARCHIVE_AFTER,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        self._repository = repository
        self._publisher = publisher
        self._clock = clock
        self.recent_window = recent_window
        self.retention = retention
        self.archive_after = archive_after
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def now(self) -> datetime:
        """Current time according to the service clock."""

        return ensure_app_timezone(self._clock())

    # -- creation ---------------------------------------------------------------

    def create(
        self,
        user_id: str,
        notification_type: NotificationType | str,
        title: str | None = None,
        message: str | None = None,
        priority: NotificationPriority | str | None = None,
        *,
        related_entity_id: str | None = None,
        action_url: str | None = None,
        expires_at: datetime | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> Notification:
        """Persist a new notification and push it to the user's live sessions.

        Missing or blank ``title``/``message`` fall back to the defaults of the
        notification type. Realtime delivery is best effort: the stored
        notification is returned even when publishing fails.
        """

        notification = self._build(
            user_id,
            notification_type,
            title,
            message,
            priority,
            related_entity_id=related_entity_id,
            action_url=action_url,
            expires_at=expires_at,
            metadata=metadata,
        )
        saved = self._repository.save(notification)
        logger.info(
            "Created %s notification %s for user %s", saved.type.name, saved.id, user_id
        )
        self._publish(self._publisher.publish_new, saved.user_id, saved)
        return saved

    def _build(
        self,
        user_id: str,
        notification_type: NotificationType | str,
        title: str | None,
        message: str | None,
        priority: NotificationPriority | str | None,
        *,
        related_entity_id: str | None,
        action_url: str | None,
        expires_at: datetime | None,
        metadata: Mapping[str, Any] | None,
    ) -> Notification:
        if not isinstance(user_id, str) or not user_id.strip():
            raise NotificationValidationError("User ID is required")
        if notification_type is None:
            raise NotificationValidationError("Notification type is required")
        try:
            resolved_type = NotificationType.parse(notification_type)
        except ValueError as exc:
            raise NotificationValidationError(str(exc)) from exc
        try:
            resolved_priority = (
                NotificationPriority.parse(priority)
                if priority is not None
                else NotificationPriority.MEDIUM
            )
        except ValueError as exc:
            raise NotificationValidationError(str(exc)) from exc

        resolved_title = (title or "").strip() or resolved_type.title
        resolved_message = (message or "").strip() or resolved_type.default_message

        return Notification(
            id=None,
            user_id=user_id,
            type=resolved_type,
            title=resolved_title,
            message=resolved_message,
            status=NotificationStatus.UNREAD,
            priority=resolved_priority,
            created_at=self.now(),
            expires_at=ensure_app_timezone(expires_at),
            related_entity_id=related_entity_id,
            action_url=action_url,
            metadata=dict(metadata or {}),
        )

    # -- queries ----------------------------------------------------------------

    def get(self, notification_id: int, user_id: str) -> Notification | None:
        """Return the notification when it exists and belongs to ``user_id``."""

        notification = self._repository.get(notification_id)
        if notification is None or not notification.is_owned_by(user_id):
            return None
        return notification

    def get_page(self, user_id: str, page: int = 0, size: int | None = None) -> NotificationPage:
        page = max(page, 0)
        size = self.default_page_size if size is None else size
        size = min(max(size, 1), self.max_page_size)
        return self._repository.list_page_for_user(user_id, page=page, size=size)

    def get_all(self, user_id: str) -> Sequence[Notification]:
        return self._repository.list_for_user(user_id)

    def get_unread(self, user_id: str) -> Sequence[Notification]:
        return self._repository.list_by_status(user_id, NotificationStatus.UNREAD)

    def get_unread_count(self, user_id: str) -> int:
        return self._repository.count_by_status(user_id, NotificationStatus.UNREAD)

    def get_recent(self, user_id: str, window: timedelta | None = None) -> Sequence[Notification]:
        """Return notifications created within ``window`` (24 hours by default)."""

        since = self.now() - (self.recent_window if window is None else window)
        return self._repository.list_created_after(user_id, since)

    def get_active(self, user_id: str) -> Sequence[Notification]:
        """Return notifications that have not expired yet."""

        return self._repository.list_active(user_id, now=self.now())

    def get_by_type(
        self, user_id: str, notification_type: NotificationType | str
    ) -> Sequence[Notification]:
        return self._repository.list_by_type(user_id, NotificationType.parse(notification_type))

    def get_by_priority(
        self, user_id: str, priority: NotificationPriority | str
    ) -> Sequence[Notification]:
        return self._repository.list_by_priority(user_id, NotificationPriority.parse(priority))

    def get_recent_high_priority_unread(
        self, user_id: str, window: timedelta | None = None
    ) -> Sequence[Notification]:
        since = self.now() - (self.recent_window if window is None else window)
        return self._repository.list_recent_high_priority_unread(user_id, since)

    # -- state changes ----------------------------------------------------------

    def mark_read(self, notification_id: int, user_id: str) -> bool:
        """Mark a notification as read. ``False`` when missing or not owned."""

        return self._transition(
            notification_id,
            user_id,
            partial(lifecycle.mark_read, now=self.now()),
            action=ACTION_READ,
        )

    def mark_dismissed(self, notification_id: int, user_id: str) -> bool:
        """Dismiss a notification. ``False`` when missing or not owned."""

        return self._transition(
            notification_id,
            user_id,
            partial(lifecycle.mark_dismissed, now=self.now()),
            action=ACTION_DISMISSED,
        )

    def _transition(
        self,
        notification_id: int,
        user_id: str,
        apply: Callable[[Notification], bool],
        *,
        action: str,
    ) -> bool:
        try:
            outcome = self._repository.transition(notification_id, user_id=user_id, apply=apply)
        except PermissionError:
            logger.warning(
                "User %s attempted to change notification %s that doesn't belong to them",
                user_id,
                notification_id,
            )
            return False
        if outcome is None:
            return False

        notification, changed = outcome
        if changed:
            logger.info(
                "Notification %s is now %s for user %s",
                notification_id,
                notification.status.name,
                user_id,
            )
            self._publish(self._publisher.publish_update, user_id, notification, action=action)
        return True

    def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification of ``user_id`` as read.

        Returns how many notifications changed. A single bulk event is
        published instead of one event per notification.
        """

        changed = self._repository.transition_by_status(
            user_id,
            NotificationStatus.UNREAD,
            apply=partial(lifecycle.mark_read, now=self.now()),
        )
        self._publish(
            self._publisher.publish_bulk, user_id, action=ACTION_ALL_READ, count=len(changed)
        )
        logger.info("Marked %s notifications as read for user %s", len(changed), user_id)
        return len(changed)

    def delete(self, notification_id: int, user_id: str) -> bool:
        """Delete a notification owned by ``user_id``."""

        if not self._repository.delete(notification_id, user_id=user_id):
            logger.warning(
                "User %s could not delete notification %s (missing or not owned)",
                user_id,
                notification_id,
            )
            return False
        logger.info("Deleted notification %s for user %s", notification_id, user_id)
        self._publish(self._publisher.publish_deletion, user_id, notification_id)
        return True

    # -- maintenance ------------------------------------------------------------

    def cleanup(
        self,
        older_than: timedelta | None = None,
        *,
        archive_after: timedelta | None = None,
    ) -> CleanupReport:
        """Archive long-dismissed notifications and delete old ones for all users.

        Deletion is by age of ``created_at`` and ignores status. No realtime
        events are published.
        """

        now = self.now()
        archive_cutoff = now - (self.archive_after if archive_after is None else archive_after)
        stale = self._repository.transition_dismissed_before(
            archive_cutoff, apply=lifecycle.archive
        )

        cutoff = now - (self.retention if older_than is None else older_than)
        deleted = self._repository.delete_older_than(cutoff)
        logger.info(
            "Notification cleanup archived %s and deleted %s created before %s",
            len(stale),
            deleted,
            cutoff.isoformat(),
        )
        return CleanupReport(archived=len(stale), deleted=deleted)

    @staticmethod
    def _publish(send: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        try:
            send(*args, **kwargs)
        except Exception:
            logger.exception("Realtime delivery failed for user %s", args[0] if args else None)


__all__ = ["NotificationService", "RealtimePublisher"]
