"""Persistence helpers for notification entities."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, TypeVar

from sqlalchemy import or_
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Query, Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from app.domain.entities import (
    Notification,
    NotificationPage,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)
from app.domain.exceptions import TransientStoreError
from app.infrastructure.models import NotificationModel
from app.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)

logger = logging.getLogger(__name__)

_MAX_TRANSITION_ATTEMPTS = 3
_TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)

_T = TypeVar("_T")


class NotificationRepository:
    """Provide CRUD and query operations for :class:`Notification` objects.

    Every public method runs in its own short-lived session obtained from
    ``session_factory``.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except _TRANSIENT_ERRORS as exc:
            session.rollback()
            raise TransientStoreError("Notification store is unavailable") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -- writes -----------------------------------------------------------------

    def save(self, notification: Notification) -> Notification:
        """Insert ``notification`` or update the stored copy with the same id."""

        with self._session_scope() as session:
            model = self._attach(session, notification)
            session.commit()
            session.refresh(model)
            return self._to_entity(model)

    def save_all(self, notifications: Iterable[Notification]) -> list[Notification]:
        """Persist ``notifications`` in a single transaction.

        Stored notifications that were deleted in the meantime are skipped and
        left out of the returned list.
        """

        pending = list(notifications)
        if not pending:
            return []
        with self._session_scope() as session:
            ids = [n.id for n in pending if n.id is not None]
            existing = {}
            if ids:
                rows = (
                    session.query(NotificationModel)
                    .filter(NotificationModel.id.in_(ids))
                    .all()
                )
                existing = {row.id: row for row in rows}
            models = []
            for notification in pending:
                if notification.id is not None and notification.id not in existing:
                    logger.debug("Skipping notification %s, it no longer exists", notification.id)
                    continue
                models.append(self._attach(session, notification, existing=existing))
            session.commit()
            return [self._to_entity(model) for model in models]

    def transition(
        self,
        notification_id: int,
        *,
        user_id: str,
        apply: Callable[[Notification], bool],
    ) -> tuple[Notification, bool] | None:
        """Atomically read, check ownership, mutate and persist one notification.

        ``apply`` receives the freshest copy and returns whether it changed it.
        Returns ``None`` when the notification does not exist and raises
        :class:`PermissionError` when it belongs to another user. A concurrent
        writer detected through the ``version`` column causes the whole
        read-modify-write to be retried.
        """

        def work(session: Session) -> tuple[Notification, bool] | None:
            model = (
                session.query(NotificationModel)
                .filter(NotificationModel.id == notification_id)
                .with_for_update()
                .one_or_none()
            )
            if model is None:
                return None
            if model.user_id != user_id:
                raise PermissionError(
                    f"Notification {notification_id} is not owned by {user_id}"
                )
            notification = self._to_entity(model)
            changed = apply(notification)
            if changed:
                self._apply_entity_to_model(model, notification)
                session.commit()
                session.refresh(model)
                notification = self._to_entity(model)
            return notification, changed

        return self._retry_on_conflict(work, subject=f"notification {notification_id}")

    def transition_by_status(
        self,
        user_id: str,
        status: NotificationStatus,
        *,
        apply: Callable[[Notification], bool],
    ) -> list[Notification]:
        """Apply ``apply`` to every notification of ``user_id`` currently in ``status``.

        Rows are locked and re-read inside one transaction, so a notification
        that another request moved out of ``status`` or deleted is left alone.
        Returns the notifications that ``apply`` changed.
        """

        def matching(session: Session) -> Query:
            return self._for_user(session, user_id).filter(
                NotificationModel.status == status.name
            )

        return self._transition_matching(
            matching, apply, subject=f"{status.name} notifications of user {user_id}"
        )

    def transition_dismissed_before(
        self, cutoff: datetime, *, apply: Callable[[Notification], bool]
    ) -> list[Notification]:
        """Apply ``apply`` to notifications of any user dismissed before ``cutoff``."""

        def matching(session: Session) -> Query:
            return session.query(NotificationModel).filter(
                NotificationModel.status == NotificationStatus.DISMISSED.name,
                NotificationModel.dismissed_at < ensure_app_naive_datetime(cutoff),
            )

        return self._transition_matching(matching, apply, subject="dismissed notifications")

    def _transition_matching(
        self,
        matching: Callable[[Session], Query],
        apply: Callable[[Notification], bool],
        *,
        subject: str,
    ) -> list[Notification]:
        def work(session: Session) -> list[Notification]:
            changed = []
            for model in matching(session).with_for_update().all():
                notification = self._to_entity(model)
                if apply(notification):
                    self._apply_entity_to_model(model, notification)
                    changed.append(model)
            if not changed:
                return []
            session.commit()
            return [self._to_entity(model) for model in changed]

        return self._retry_on_conflict(work, subject=subject)

    def _retry_on_conflict(self, work: Callable[[Session], _T], *, subject: str) -> _T:
        """Run ``work`` in a fresh session, retrying when a concurrent write wins."""

        for attempt in range(1, _MAX_TRANSITION_ATTEMPTS + 1):
            try:
                with self._session_scope() as session:
                    return work(session)
            except StaleDataError as exc:
                if attempt == _MAX_TRANSITION_ATTEMPTS:
                    raise TransientStoreError(
                        f"Gave up updating {subject} after {attempt} concurrent writes"
                    ) from exc
                logger.debug(
                    "Concurrent update on %s, retrying (%s/%s)",
                    subject,
                    attempt,
                    _MAX_TRANSITION_ATTEMPTS,
                )
        raise AssertionError("unreachable")  # pragma: no cover

    def delete(self, notification_id: int, *, user_id: str) -> bool:
        """Delete a notification owned by ``user_id``; ``False`` when none matched."""

        with self._session_scope() as session:
            deleted = (
                session.query(NotificationModel)
                .filter(
                    NotificationModel.id == notification_id,
                    NotificationModel.user_id == user_id,
                )
                .delete(synchronize_session=False)
            )
            session.commit()
            return deleted > 0

    def delete_older_than(self, cutoff: datetime) -> int:
        """Remove every notification created before ``cutoff``, for all users."""

        with self._session_scope() as session:
            deleted = (
                session.query(NotificationModel)
                .filter(NotificationModel.created_at < ensure_app_naive_datetime(cutoff))
                .delete(synchronize_session=False)
            )
            session.commit()
            return deleted

    # -- reads ------------------------------------------------------------------

    def get(self, notification_id: int) -> Notification | None:
        with self._session_scope() as session:
            model = session.get(NotificationModel, notification_id)
            return self._to_entity(model) if model else None

    def list_page_for_user(self, user_id: str, *, page: int, size: int) -> NotificationPage:
        with self._session_scope() as session:
            query = self._for_user(session, user_id)
            total = query.count()
            models = self._ordered(query).offset(page * size).limit(size).all()
            return NotificationPage(
                items=[self._to_entity(model) for model in models],
                total=total,
                page=page,
                size=size,
            )

    def list_for_user(self, user_id: str) -> Sequence[Notification]:
        with self._session_scope() as session:
            return self._fetch(self._for_user(session, user_id))

    def list_by_status(
        self, user_id: str, status: NotificationStatus
    ) -> Sequence[Notification]:
        with self._session_scope() as session:
            query = self._for_user(session, user_id).filter(
                NotificationModel.status == status.name
            )
            return self._fetch(query)

    def count_by_status(self, user_id: str, status: NotificationStatus) -> int:
        with self._session_scope() as session:
            return (
                self._for_user(session, user_id)
                .filter(NotificationModel.status == status.name)
                .count()
            )

    def list_active(self, user_id: str, *, now: datetime) -> Sequence[Notification]:
        """Return notifications without an expiry or expiring after ``now``."""

        with self._session_scope() as session:
            query = self._for_user(session, user_id).filter(
                or_(
                    NotificationModel.expires_at.is_(None),
                    NotificationModel.expires_at > ensure_app_naive_datetime(now),
                )
            )
            return self._fetch(query)

    def list_by_type(
        self, user_id: str, notification_type: NotificationType
    ) -> Sequence[Notification]:
        with self._session_scope() as session:
            query = self._for_user(session, user_id).filter(
                NotificationModel.type == notification_type.name
            )
            return self._fetch(query)

    def list_by_priority(
        self, user_id: str, priority: NotificationPriority
    ) -> Sequence[Notification]:
        with self._session_scope() as session:
            query = self._for_user(session, user_id).filter(
                NotificationModel.priority == priority.name
            )
            return self._fetch(query)

    def list_created_after(self, user_id: str, since: datetime) -> Sequence[Notification]:
        with self._session_scope() as session:
            query = self._for_user(session, user_id).filter(
                NotificationModel.created_at > ensure_app_naive_datetime(since)
            )
            return self._fetch(query)

    def list_by_related_entity(self, related_entity_id: str) -> Sequence[Notification]:
        with self._session_scope() as session:
            query = session.query(NotificationModel).filter(
                NotificationModel.related_entity_id == related_entity_id
            )
            return self._fetch(query)

    def list_recent_high_priority_unread(
        self, user_id: str, since: datetime
    ) -> Sequence[Notification]:
        with self._session_scope() as session:
            query = self._for_user(session, user_id).filter(
                NotificationModel.status == NotificationStatus.UNREAD.name,
                NotificationModel.priority == NotificationPriority.HIGH.name,
                NotificationModel.created_at >= ensure_app_naive_datetime(since),
            )
            return self._fetch(query)

    # -- mapping ----------------------------------------------------------------

    @staticmethod
    def _for_user(session: Session, user_id: str) -> Query:
        return session.query(NotificationModel).filter(NotificationModel.user_id == user_id)

    @staticmethod
    def _ordered(query: Query) -> Query:
        return query.order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        )

    def _fetch(self, query: Query) -> list[Notification]:
        return [self._to_entity(model) for model in self._ordered(query).all()]

    def _attach(
        self,
        session: Session,
        notification: Notification,
        *,
        existing: dict[int, NotificationModel] | None = None,
    ) -> NotificationModel:
        if notification.id is None:
            model = NotificationModel()
            model.created_at = ensure_app_naive_datetime(
                notification.created_at or now_in_app_timezone()
            )
            self._apply_entity_to_model(model, notification)
            session.add(model)
            return model

        model = (existing or {}).get(notification.id) or session.get(
            NotificationModel, notification.id
        )
        if model is None:
            msg = f"Notification with id {notification.id} not found"
            raise ValueError(msg)
        self._apply_entity_to_model(model, notification)
        return model

    @staticmethod
    def _apply_entity_to_model(model: NotificationModel, notification: Notification) -> None:
        model.user_id = notification.user_id
        model.type = notification.type.name
        model.title = notification.title
        model.message = notification.message
        model.status = notification.status.name
        model.priority = notification.priority.name
        model.read_at = ensure_app_naive_datetime(notification.read_at)
        model.dismissed_at = ensure_app_naive_datetime(notification.dismissed_at)
        model.expires_at = ensure_app_naive_datetime(notification.expires_at)
        model.related_entity_id = notification.related_entity_id
        model.action_url = notification.action_url
        model.extra = dict(notification.metadata or {})

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            user_id=model.user_id,
            type=NotificationType[model.type],
            title=model.title,
            message=model.message,
            status=NotificationStatus[model.status],
            priority=NotificationPriority[model.priority],
            created_at=ensure_app_timezone(model.created_at),
            read_at=ensure_app_timezone(model.read_at),
            dismissed_at=ensure_app_timezone(model.dismissed_at),
            expires_at=ensure_app_timezone(model.expires_at),
            related_entity_id=model.related_entity_id,
            action_url=model.action_url,
            metadata=dict(model.extra or {}),
        )


__all__ = ["NotificationRepository"]
