"""Pydantic schemas exposed by the HTTP interface."""

from .notification import (
    NotificationActionResponse,
    NotificationCreateRequest,
    NotificationPageRead,
    NotificationRead,
    UnreadCountRead,
)

__all__ = [
    "NotificationActionResponse",
    "NotificationCreateRequest",
    "NotificationPageRead",
    "NotificationRead",
    "UnreadCountRead",
]
