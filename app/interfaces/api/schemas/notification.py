"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    id: int
    user_id: str
    type: str
    title: str
    message: str
    status: str
    priority: str
    created_at: datetime
    read_at: datetime | None = None
    dismissed_at: datetime | None = None
    expires_at: datetime | None = None
    related_entity_id: str | None = None
    action_url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class NotificationPageRead(BaseModel):
    """One page of notifications, newest first."""

    items: list[NotificationRead]
    total: int
    page: int
    size: int
    total_pages: int
    has_next: bool


class NotificationCreateRequest(BaseModel):
    """Payload used to create a notification for the authenticated user."""

    type: str = Field(..., min_length=1, description="Notification type name")
    title: str | None = Field(default=None, max_length=200)
    message: str | None = None
    priority: str | None = Field(default=None, description="LOW, MEDIUM or HIGH")
    related_entity_id: str | None = Field(default=None, max_length=100)
    action_url: str | None = Field(default=None, max_length=500)
    expires_at: datetime | None = None
    metadata: dict[str, Any] | None = None


class UnreadCountRead(BaseModel):
    count: int


class NotificationActionResponse(BaseModel):
    """Confirmation returned by state-changing endpoints."""

    message: str
    updated: int | None = None


__all__ = [
    "NotificationActionResponse",
    "NotificationCreateRequest",
    "NotificationPageRead",
    "NotificationRead",
    "UnreadCountRead",
]
