"""Errors raised by the notification subsystem.

A missing notification and one owned by somebody else are deliberately not
represented here: service methods report both as ``False``/``None`` so callers
cannot tell them apart.
"""


class NotificationError(Exception):
    """Base class for notification errors."""


class NotificationValidationError(NotificationError, ValueError):
    """A notification could not be created because a required field is missing."""


class TransientStoreError(NotificationError, RuntimeError):
    """The notification store could not be reached or timed out."""


class DeliveryError(NotificationError, RuntimeError):
    """A realtime event could not be scheduled for delivery."""


__all__ = [
    "DeliveryError",
    "NotificationError",
    "NotificationValidationError",
    "TransientStoreError",
]
