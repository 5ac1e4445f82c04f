"""Aggregate application use cases."""

from .notifications import NotificationEventPublisher, NotificationService

__all__ = [
    "NotificationEventPublisher",
    "NotificationService",
]
