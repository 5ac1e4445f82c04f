"""Scheduled maintenance for stored notifications."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from anyio import to_thread

from .service import NotificationService

logger = logging.getLogger(__name__)


async def run_cleanup_periodically(
    service: NotificationService,
    *,
    interval: timedelta,
    older_than: timedelta | None = None,
) -> None:
    """Run :meth:`NotificationService.cleanup` every ``interval`` until cancelled.

    The cleanup itself is synchronous database work, so it runs in a worker
    thread. A failed run is logged and the next one is still scheduled.
    """

    seconds = interval.total_seconds()
    logger.info("Notification cleanup scheduled every %s seconds", seconds)
    while True:
        await asyncio.sleep(seconds)
        try:
            report = await to_thread.run_sync(
                lambda: service.cleanup(older_than=older_than)
            )
        except Exception:
            logger.exception("Scheduled notification cleanup failed")
            continue
        logger.debug(
            "Scheduled cleanup finished: %s archived, %s deleted",
            report.archived,
            report.deleted,
        )


__all__ = ["run_cleanup_periodically"]
