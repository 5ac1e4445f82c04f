"""Utility helpers to generate and dispatch domain notifications.

Producers call these after their own state change has been committed. A
failure to notify is logged and swallowed, so it never undoes the domain
operation that triggered it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from app.domain.entities import Notification

from . import templates
from .service import NotificationService

logger = logging.getLogger(__name__)


class NotificationEventPublisher:
    """Translate domain events into :meth:`NotificationService.create` calls."""

    def __init__(self, service: NotificationService) -> None:
        self._service = service

    def publish(self, kind: str, user_id: str, /, **fields: Any) -> Notification | None:
        """Create the notification for an event of ``kind`` addressed to ``user_id``.

        Returns ``None`` when the event could not be turned into a notification.
        """

        if kind not in templates.EVENT_TEMPLATES:
            logger.error("No notification template registered for event '%s'", kind)
            return None

        try:
            notification_type, draft = templates.resolve_template(kind, fields)
            notification = self._service.create(
                user_id,
                notification_type,
                draft.title,
                draft.message,
                draft.priority,
                related_entity_id=draft.related_entity_id,
                action_url=draft.action_url,
                expires_at=draft.resolve_expiry(self._service.now()),
                metadata=draft.metadata,
            )
        except Exception:
            logger.exception("Failed to publish '%s' notification for user %s", kind, user_id)
            return None

        logger.info(
            "Published '%s' notification %s for user %s", kind, notification.id, user_id
        )
        return notification

    def publish_cv_review_completed(
        self,
        user_id: str,
        *,
        cv_id: str,
        reviewer_name: str | None = None,
        feedback: str | None = None,
    ) -> Notification | None:
        return self.publish(
            templates.CV_REVIEW_COMPLETED,
            user_id,
            cv_id=cv_id,
            reviewer_name=reviewer_name,
            feedback=feedback,
        )

    def publish_new_message(
        self,
        user_id: str,
        *,
        sender_id: str | None,
        sender_name: str | None = None,
        message_preview: str | None = None,
        conversation_id: str | None = None,
    ) -> Notification | None:
        return self.publish(
            templates.NEW_MESSAGE,
            user_id,
            sender_id=sender_id,
            sender_name=sender_name,
            message_preview=message_preview,
            conversation_id=conversation_id,
        )

    def publish_application_status_updated(
        self,
        user_id: str,
        *,
        application_id: str | None,
        new_status: str | None,
        job_title: str | None = None,
        company_name: str | None = None,
    ) -> Notification | None:
        return self.publish(
            templates.APPLICATION_STATUS_UPDATED,
            user_id,
            application_id=application_id,
            new_status=new_status,
            job_title=job_title,
            company_name=company_name,
        )

    def publish_profile_update_reminder(self, user_id: str) -> Notification | None:
        return self.publish(templates.PROFILE_UPDATE_REMINDER, user_id, user_id=user_id)

    def publish_job_recommendation(
        self,
        user_id: str,
        *,
        job_id: str | None,
        match_percentage: int,
        job_title: str | None = None,
        company_name: str | None = None,
    ) -> Notification | None:
        return self.publish(
            templates.JOB_RECOMMENDATION,
            user_id,
            job_id=job_id,
            match_percentage=match_percentage,
            job_title=job_title,
            company_name=company_name,
        )

    def publish_interview_scheduled(
        self,
        user_id: str,
        *,
        interview_id: str | None,
        interview_at: datetime | None = None,
        job_title: str | None = None,
        company_name: str | None = None,
    ) -> Notification | None:
        return self.publish(
            templates.INTERVIEW_SCHEDULED,
            user_id,
            interview_id=interview_id,
            interview_at=interview_at,
            job_title=job_title,
            company_name=company_name,
        )

    def publish_skill_assessment_complete(
        self,
        user_id: str,
        *,
        assessment_id: str | None,
        score: int,
        skill_name: str | None = None,
    ) -> Notification | None:
        return self.publish(
            templates.SKILL_ASSESSMENT_COMPLETE,
            user_id,
            assessment_id=assessment_id,
            score=score,
            skill_name=skill_name,
        )

    def publish_system_maintenance(
        self,
        user_id: str,
        *,
        title: str | None = None,
        message: str | None = None,
        scheduled_at: datetime | None = None,
    ) -> Notification | None:
        return self.publish(
            templates.SYSTEM_MAINTENANCE,
            user_id,
            title=title,
            message=message,
            scheduled_at=scheduled_at,
        )

    def publish_security_alert(
        self,
        user_id: str,
        *,
        alert_type: str | None = None,
        alert_message: str | None = None,
    ) -> Notification | None:
        return self.publish(
            templates.SECURITY_ALERT,
            user_id,
            alert_type=alert_type,
            alert_message=alert_message,
        )

    def publish_system_notification(
        self,
        user_id: str,
        *,
        title: str | None = None,
        message: str | None = None,
        priority: str | None = None,
        action_url: str | None = None,
    ) -> Notification | None:
        return self.publish(
            templates.SYSTEM_NOTIFICATION,
            user_id,
            title=title,
            message=message,
            priority=priority,
            action_url=action_url,
        )

    def publish_success_story_reviewed(
        self,
        user_id: str,
        *,
        story_id: str | None,
        approved: bool,
        story_title: str | None = None,
        reason: str | None = None,
    ) -> Notification | None:
        return self.publish(
            templates.SUCCESS_STORY_REVIEWED,
            user_id,
            story_id=story_id,
            approved=approved,
            story_title=story_title,
            reason=reason,
        )


__all__ = ["NotificationEventPublisher"]
