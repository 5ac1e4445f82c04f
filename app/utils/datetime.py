"""Timezone handling for notification timestamps.

Timestamps are stored as naive values in the application timezone and handed
to callers as aware values in that same timezone.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from functools import lru_cache

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

_configured_timezone = "UTC"


def configure_app_timezone(tz_name: str | None) -> None:
    """Select the timezone used by every helper in this module.

    Called once at process start with ``Settings.app_timezone``. Blank values
    fall back to UTC.
    """

    global _configured_timezone
    _configured_timezone = (tz_name or "").strip() or "UTC"
    _app_timezone.cache_clear()


@lru_cache(maxsize=1)
def _app_timezone() -> tzinfo:
    try:
        return ZoneInfo(_configured_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", _configured_timezone)
        return timezone.utc


def now_in_app_timezone() -> datetime:
    return datetime.now(tz=_app_timezone())


def now_in_app_naive_datetime() -> datetime:
    """Column default for ``created_at``."""

    return now_in_app_timezone().replace(tzinfo=None)


def ensure_app_timezone(value: datetime | None) -> datetime | None:
    """Return ``value`` as an aware datetime in the app timezone.

    Naive values are assumed to already be app-local, which is how they are
    stored.
    """

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=_app_timezone())
    return value.astimezone(_app_timezone())


def ensure_app_naive_datetime(value: datetime | None) -> datetime | None:
    """Return ``value`` localized to the app timezone but without ``tzinfo``."""

    localized = ensure_app_timezone(value)
    return localized.replace(tzinfo=None) if localized else None


def isoformat_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
