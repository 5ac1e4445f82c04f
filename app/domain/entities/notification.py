"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from math import ceil
from typing import Any


class _NamedEnum(Enum):
    """Enum whose members can be parsed from their (case-insensitive) name."""

    @classmethod
    def parse(cls, value: Any):
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_")
            member = cls.__members__.get(key)
            if member is not None:
                return member
        raise ValueError(f"Unknown {cls.__name__}: {value!r}")


class NotificationType(_NamedEnum):
    """Domain categories a notification may belong to."""

    CV_REVIEW_COMPLETE = ("CV Review Complete", "Your CV review has been completed")
    CV_REVIEW_STARTED = ("CV Review Started", "Your CV review has been started")
    NEW_MESSAGE = ("New Message", "You have received a new message")
    APPLICATION_STATUS_UPDATED = (
        "Application Status Updated",
        "Your application status has been updated",
    )
    PROFILE_UPDATE_REMINDER = (
        "Profile Update Reminder",
        "Please update your profile information",
    )
    NEW_FEEDBACK_RECEIVED = ("New Feedback Received", "You have received new feedback")
    TASK_COMPLETED = ("Task Completed", "A task has been completed")
    TASK_ASSIGNED = ("Task Assigned", "A new task has been assigned to you")
    SUCCESS_STORY_APPROVED = (
        "Success Story Approved",
        "Your success story has been approved",
    )
    SUCCESS_STORY_REJECTED = (
        "Success Story Rejected",
        "Your success story needs revision",
    )
    SYSTEM_ANNOUNCEMENT = ("System Announcement", "Important system announcement")
    SKILL_ASSESSMENT_COMPLETE = (
        "Skill Assessment Complete",
        "Your skill assessment has been completed",
    )
    SYSTEM_MAINTENANCE = ("System Maintenance", "System maintenance notification")
    SECURITY_ALERT = ("Security Alert", "Security alert notification")
    SYSTEM_NOTIFICATION = ("System Notification", "General system notification")
    JOB_RECOMMENDATION = ("New Job Recommendation", "We found a job that matches your profile")
    INTERVIEW_SCHEDULED = ("Interview Scheduled", "Your interview has been scheduled")

    def __init__(self, title: str, default_message: str) -> None:
        self.title = title
        self.default_message = default_message


class NotificationStatus(_NamedEnum):
    """Lifecycle states of a notification."""

    UNREAD = ("Unread", "Notification has not been read yet")
    READ = ("Read", "Notification has been read")
    DISMISSED = ("Dismissed", "Notification has been dismissed by user")
    ARCHIVED = ("Archived", "Notification has been archived")

    def __init__(self, label: str, description: str) -> None:
        self.label = label
        self.description = description


class NotificationPriority(_NamedEnum):
    """Display priority of a notification."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass
class Notification:
    """Information message delivered to a specific user."""

    id: int | None
    user_id: str
    type: NotificationType
    title: str
    message: str
    status: NotificationStatus = NotificationStatus.UNREAD
    priority: NotificationPriority = NotificationPriority.MEDIUM
    created_at: datetime | None = None
    read_at: datetime | None = None
    dismissed_at: datetime | None = None
    expires_at: datetime | None = None
    related_entity_id: str | None = None
    action_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def is_owned_by(self, user_id: str) -> bool:
        """Return ``True`` when ``user_id`` owns the notification."""

        return bool(user_id) and self.user_id == user_id


@dataclass
class NotificationPage:
    """A slice of a user's notifications, newest first."""

    items: list[Notification]
    total: int
    page: int
    size: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return ceil(self.total / self.size)

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages


@dataclass(frozen=True)
class CleanupReport:
    """Outcome of a maintenance cleanup run."""

    archived: int
    deleted: int


__all__ = [
    "CleanupReport",
    "Notification",
    "NotificationPage",
    "NotificationPriority",
    "NotificationStatus",
    "NotificationType",
]
