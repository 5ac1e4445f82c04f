"""Public helpers for creating and managing user notifications."""

from .events import NotificationEventPublisher
from .maintenance import run_cleanup_periodically
from .service import NotificationService, RealtimePublisher
from .templates import EVENT_TEMPLATES, NotificationDraft, resolve_template

__all__ = [
    "EVENT_TEMPLATES",
    "NotificationDraft",
    "NotificationEventPublisher",
    "NotificationService",
    "RealtimePublisher",
    "resolve_template",
    "run_cleanup_periodically",
]
