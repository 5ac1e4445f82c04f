"""Tests for the periodic notification cleanup task."""

import asyncio
from datetime import timedelta
from pathlib import Path
import logging
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.application.use_cases.notifications import run_cleanup_periodically
from app.domain.entities import CleanupReport


class _CountingService:
    def __init__(self, fail_first: bool = False) -> None:
        self.calls: list = []
        self.fail_first = fail_first

    def cleanup(self, older_than=None):
        self.calls.append(older_than)
        if self.fail_first and len(self.calls) == 1:
            raise RuntimeError("database is locked")
        return CleanupReport(archived=0, deleted=0)


async def _run_for(service, seconds: float, **kwargs) -> None:
    task = asyncio.create_task(
        run_cleanup_periodically(service, interval=timedelta(milliseconds=10), **kwargs)
    )
    await asyncio.sleep(seconds)
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


def test_cleanup_runs_repeatedly_until_cancelled():
    service = _CountingService()

    asyncio.run(_run_for(service, 0.2, older_than=timedelta(days=5)))

    assert len(service.calls) >= 2
    assert set(service.calls) == {timedelta(days=5)}


def test_failed_run_is_logged_and_next_run_happens(caplog):
    service = _CountingService(fail_first=True)

    with caplog.at_level(logging.ERROR):
        asyncio.run(_run_for(service, 0.2))

    assert len(service.calls) >= 2
    assert "Scheduled notification cleanup failed" in caplog.text
