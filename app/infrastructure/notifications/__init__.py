"""Realtime notification helpers for the infrastructure layer."""

from .manager import NotificationConnectionManager, NotificationSession
from .publisher import (
    ACTION_ALL_READ,
    ACTION_DELETED,
    ACTION_DISMISSED,
    ACTION_READ,
    NEW_NOTIFICATION_EVENT,
    NOTIFICATION_UPDATE_EVENT,
    NotificationPublisher,
    serialize_notification,
)

__all__ = [
    "ACTION_ALL_READ",
    "ACTION_DELETED",
    "ACTION_DISMISSED",
    "ACTION_READ",
    "NEW_NOTIFICATION_EVENT",
    "NOTIFICATION_UPDATE_EVENT",
    "NotificationConnectionManager",
    "NotificationPublisher",
    "NotificationSession",
    "serialize_notification",
]
