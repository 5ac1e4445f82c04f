"""Templates that turn domain events into notification drafts.

Each event kind maps to a pure function ``build(fields) -> NotificationDraft``.
Templates only read the event fields they know about and substitute friendly
fallbacks for missing ones, so producers may send partial events.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from app.domain.entities import NotificationPriority, NotificationType

HIGH_SCORE_THRESHOLD = 80


@dataclass(frozen=True)
class NotificationDraft:
    """Everything the service needs to create a notification for one event."""

    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    related_entity_id: str | None = None
    action_url: str | None = None
    ttl: timedelta | None = None
    expires_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def resolve_expiry(self, now: datetime) -> datetime | None:
        """Absolute expiry wins over the relative ``ttl``."""

        if self.expires_at is not None:
            return self.expires_at
        if self.ttl is not None:
            return now + self.ttl
        return None


@dataclass(frozen=True)
class EventTemplate:
    """Notification type (fixed or derived from the event) and draft builder."""

    type: NotificationType | Callable[[Mapping[str, Any]], NotificationType]
    build: Callable[[Mapping[str, Any]], NotificationDraft]

    def resolve_type(self, fields: Mapping[str, Any]) -> NotificationType:
        if isinstance(self.type, NotificationType):
            return self.type
        return self.type(fields)


def _text(fields: Mapping[str, Any], key: str, fallback: str) -> str:
    value = fields.get(key)
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


def _preview(value: Any, limit: int, fallback: str) -> str:
    if value is None or not str(value).strip():
        return fallback
    text = str(value)
    return text[:limit] + "..." if len(text) > limit else text


def _optional_id(fields: Mapping[str, Any], key: str) -> str | None:
    value = fields.get(key)
    return str(value) if value not in (None, "") else None


def _link(prefix: str, entity_id: str | None) -> str:
    return f"{prefix}/{entity_id}" if entity_id else prefix


def _score(fields: Mapping[str, Any], key: str) -> int:
    try:
        return int(fields.get(key) or 0)
    except (TypeError, ValueError):
        return 0


def _cv_review_completed(fields: Mapping[str, Any]) -> NotificationDraft:
    cv_id = _optional_id(fields, "cv_id")
    reviewer = _text(fields, "reviewer_name", "")
    return NotificationDraft(
        title="CV Review Complete",
        message=(
            f"Your CV review has been completed by {reviewer or 'our team'}. "
            "Check your feedback now!"
        ),
        priority=NotificationPriority.HIGH,
        related_entity_id=cv_id,
        action_url=_link("/dashboard/cv-reviews", cv_id),
        metadata={
            "cv_id": cv_id,
            "reviewer_name": reviewer or "System",
            "feedback_preview": _preview(fields.get("feedback"), 100, "No feedback provided"),
        },
    )


def _new_message(fields: Mapping[str, Any]) -> NotificationDraft:
    conversation_id = _optional_id(fields, "conversation_id")
    sender_name = _text(fields, "sender_name", "Unknown User")
    return NotificationDraft(
        title="New Message",
        message=f"You have a new message from {sender_name}",
        related_entity_id=conversation_id,
        action_url=_link("/messages", conversation_id),
        ttl=timedelta(days=7),
        metadata={
            "sender_id": _optional_id(fields, "sender_id"),
            "sender_name": sender_name,
            "message_preview": _preview(fields.get("message_preview"), 50, "New message"),
            "conversation_id": conversation_id or "",
        },
    )


def _application_status_updated(fields: Mapping[str, Any]) -> NotificationDraft:
    application_id = _optional_id(fields, "application_id")
    new_status = _text(fields, "new_status", "")
    lowered = new_status.lower()
    decisive = any(word in lowered for word in ("accept", "offer", "reject", "decline"))
    priority = (
        NotificationPriority.HIGH if decisive or not new_status else NotificationPriority.MEDIUM
    )
    job_title = _text(fields, "job_title", "")
    company_name = _text(fields, "company_name", "")
    return NotificationDraft(
        title="Application Status Updated",
        message=(
            f"Your application for {job_title or 'a position'} at "
            f"{company_name or 'the company'} has been {lowered or 'updated'}"
        ),
        priority=priority,
        related_entity_id=application_id,
        action_url=_link("/dashboard/applications", application_id),
        metadata={
            "job_title": job_title or "Unknown Position",
            "company_name": company_name or "Unknown Company",
            "new_status": new_status or "Unknown",
            "application_id": application_id or "",
        },
    )


def _profile_update_reminder(fields: Mapping[str, Any]) -> NotificationDraft:
    return NotificationDraft(
        title="Complete Your Profile",
        message=(
            "Your profile is incomplete. Complete it now to increase your chances "
            "of getting hired!"
        ),
        related_entity_id=_optional_id(fields, "user_id"),
        action_url="/profile/edit",
        ttl=timedelta(days=3),
        metadata={"reminder_type": "PROFILE_COMPLETION"},
    )


def _job_recommendation(fields: Mapping[str, Any]) -> NotificationDraft:
    job_id = _optional_id(fields, "job_id")
    match = _score(fields, "match_percentage")
    job_title = _text(fields, "job_title", "")
    company_name = _text(fields, "company_name", "")
    return NotificationDraft(
        title="New Job Recommendation",
        message=(
            f"We found a {match}% match for you: {job_title or 'a great position'} "
            f"at {company_name or 'an amazing company'}"
        ),
        priority=(
            NotificationPriority.HIGH
            if match >= HIGH_SCORE_THRESHOLD
            else NotificationPriority.MEDIUM
        ),
        related_entity_id=job_id,
        action_url=_link("/jobs", job_id),
        ttl=timedelta(days=14),
        metadata={
            "job_title": job_title or "Unknown Position",
            "company_name": company_name or "Unknown Company",
            "job_id": job_id or "",
            "match_percentage": match,
        },
    )


def _interview_scheduled(fields: Mapping[str, Any]) -> NotificationDraft:
    interview_id = _optional_id(fields, "interview_id")
    scheduled_for = fields.get("interview_at")
    when = scheduled_for.isoformat() if isinstance(scheduled_for, datetime) else None
    job_title = _text(fields, "job_title", "")
    company_name = _text(fields, "company_name", "")
    return NotificationDraft(
        title="Interview Scheduled",
        message=(
            f"Your interview for {job_title or 'a position'} at "
            f"{company_name or 'the company'} has been scheduled for {when or 'soon'}"
        ),
        priority=NotificationPriority.HIGH,
        related_entity_id=interview_id,
        action_url=_link("/dashboard/interviews", interview_id),
        metadata={
            "job_title": job_title or "Unknown Position",
            "company_name": company_name or "Unknown Company",
            "interview_at": when or "",
            "interview_id": interview_id or "",
        },
    )


def _skill_assessment_complete(fields: Mapping[str, Any]) -> NotificationDraft:
    assessment_id = _optional_id(fields, "assessment_id")
    score = _score(fields, "score")
    skill_name = _text(fields, "skill_name", "")
    return NotificationDraft(
        title="Skill Assessment Complete",
        message=f"You scored {score}% on your {skill_name or 'skill'} assessment. Great job!",
        priority=(
            NotificationPriority.HIGH
            if score >= HIGH_SCORE_THRESHOLD
            else NotificationPriority.MEDIUM
        ),
        related_entity_id=assessment_id,
        action_url=_link("/dashboard/assessments", assessment_id),
        metadata={
            "skill_name": skill_name or "Unknown Skill",
            "score": score,
            "assessment_id": assessment_id or "",
        },
    )


def _system_maintenance(fields: Mapping[str, Any]) -> NotificationDraft:
    scheduled_at = fields.get("scheduled_at")
    scheduled = scheduled_at if isinstance(scheduled_at, datetime) else None
    return NotificationDraft(
        title=_text(fields, "title", "System Maintenance"),
        message=_text(
            fields,
            "message",
            "Scheduled system maintenance will occur soon. Please save your work.",
        ),
        action_url="/dashboard",
        # Visible until two hours after the maintenance window opens.
        expires_at=scheduled + timedelta(hours=2) if scheduled else None,
        ttl=None if scheduled else timedelta(hours=2),
        metadata={
            "maintenance_type": "SYSTEM_MAINTENANCE",
            "scheduled_at": scheduled.isoformat() if scheduled else "",
        },
    )


def _security_alert(fields: Mapping[str, Any]) -> NotificationDraft:
    return NotificationDraft(
        title="Security Alert",
        message=_text(
            fields,
            "alert_message",
            "We detected unusual activity on your account. Please review your security settings.",
        ),
        priority=NotificationPriority.HIGH,
        action_url="/profile/security",
        metadata={"alert_type": _text(fields, "alert_type", "GENERAL_SECURITY")},
    )


def _system_notification(fields: Mapping[str, Any]) -> NotificationDraft:
    try:
        priority = NotificationPriority.parse(fields.get("priority") or "MEDIUM")
    except ValueError:
        priority = NotificationPriority.MEDIUM
    return NotificationDraft(
        title=_text(fields, "title", "System Notification"),
        message=_text(fields, "message", "You have a new system notification."),
        priority=priority,
        action_url=_text(fields, "action_url", "/dashboard"),
        ttl=timedelta(days=30),
        metadata={"notification_type": "SYSTEM_NOTIFICATION"},
    )


def _success_story_type(fields: Mapping[str, Any]) -> NotificationType:
    if fields.get("approved"):
        return NotificationType.SUCCESS_STORY_APPROVED
    return NotificationType.SUCCESS_STORY_REJECTED


def _success_story_reviewed(fields: Mapping[str, Any]) -> NotificationDraft:
    story_id = _optional_id(fields, "story_id")
    approved = bool(fields.get("approved"))
    story_title = _text(fields, "story_title", "your success story")
    if approved:
        message = f"Great news! '{story_title}' has been approved and is now public."
    else:
        reason = _text(fields, "reason", "")
        message = f"'{story_title}' needs revision before it can be published."
        if reason:
            message = f"{message} Reason: {reason}"
    return NotificationDraft(
        title="Success Story Approved" if approved else "Success Story Rejected",
        message=message,
        priority=NotificationPriority.MEDIUM if approved else NotificationPriority.HIGH,
        related_entity_id=story_id,
        action_url=_link("/success-stories", story_id),
        metadata={"story_id": story_id or "", "approved": approved},
    )


CV_REVIEW_COMPLETED = "cv_review_completed"
NEW_MESSAGE = "new_message"
APPLICATION_STATUS_UPDATED = "application_status_updated"
PROFILE_UPDATE_REMINDER = "profile_update_reminder"
JOB_RECOMMENDATION = "job_recommendation"
INTERVIEW_SCHEDULED = "interview_scheduled"
SKILL_ASSESSMENT_COMPLETE = "skill_assessment_complete"
SYSTEM_MAINTENANCE = "system_maintenance"
SECURITY_ALERT = "security_alert"
SYSTEM_NOTIFICATION = "system_notification"
SUCCESS_STORY_REVIEWED = "success_story_reviewed"


EVENT_TEMPLATES: dict[str, EventTemplate] = {
    CV_REVIEW_COMPLETED: EventTemplate(NotificationType.CV_REVIEW_COMPLETE, _cv_review_completed),
    NEW_MESSAGE: EventTemplate(NotificationType.NEW_MESSAGE, _new_message),
    APPLICATION_STATUS_UPDATED: EventTemplate(
        NotificationType.APPLICATION_STATUS_UPDATED, _application_status_updated
    ),
    PROFILE_UPDATE_REMINDER: EventTemplate(
        NotificationType.PROFILE_UPDATE_REMINDER, _profile_update_reminder
    ),
    JOB_RECOMMENDATION: EventTemplate(NotificationType.JOB_RECOMMENDATION, _job_recommendation),
    INTERVIEW_SCHEDULED: EventTemplate(NotificationType.INTERVIEW_SCHEDULED, _interview_scheduled),
    SKILL_ASSESSMENT_COMPLETE: EventTemplate(
        NotificationType.SKILL_ASSESSMENT_COMPLETE, _skill_assessment_complete
    ),
    SYSTEM_MAINTENANCE: EventTemplate(NotificationType.SYSTEM_MAINTENANCE, _system_maintenance),
    SECURITY_ALERT: EventTemplate(NotificationType.SECURITY_ALERT, _security_alert),
    SYSTEM_NOTIFICATION: EventTemplate(NotificationType.SYSTEM_NOTIFICATION, _system_notification),
    SUCCESS_STORY_REVIEWED: EventTemplate(_success_story_type, _success_story_reviewed),
}


def resolve_template(
    kind: str, fields: Mapping[str, Any]
) -> tuple[NotificationType, NotificationDraft]:
    """Return the notification type and draft for an event of ``kind``.

    Raises :class:`KeyError` for unknown kinds.
    """

    template = EVENT_TEMPLATES[kind]
    return template.resolve_type(fields), template.build(fields)


__all__ = [
    "APPLICATION_STATUS_UPDATED",
    "CV_REVIEW_COMPLETED",
    "EVENT_TEMPLATES",
    "EventTemplate",
    "INTERVIEW_SCHEDULED",
    "JOB_RECOMMENDATION",
    "NEW_MESSAGE",
    "NotificationDraft",
    "PROFILE_UPDATE_REMINDER",
    "SECURITY_ALERT",
    "SKILL_ASSESSMENT_COMPLETE",
    "SUCCESS_STORY_REVIEWED",
    "SYSTEM_MAINTENANCE",
    "SYSTEM_NOTIFICATION",
    "resolve_template",
]
