"""Domain entities exposed by the application."""

from .notification import (
    CleanupReport,
    Notification,
    NotificationPage,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)

__all__ = [
    "CleanupReport",
    "Notification",
    "NotificationPage",
    "NotificationPriority",
    "NotificationStatus",
    "NotificationType",
]
