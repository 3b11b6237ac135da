"""Periodic sweep trigger backed by APScheduler."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Protocol

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

SweepJob = Callable[[], Awaitable[Any]]

SWEEP_JOB_ID = "codeit_sweep"


class SweepScheduler(Protocol):
    def start(self, job: SweepJob) -> None:  # pragma: no cover - protocol definition
        ...

    async def stop(self) -> None:  # pragma: no cover - protocol definition
        ...


class IntervalSweepScheduler:
    """Runs ``job`` on the running event loop every ``interval_seconds``.

    A failing run is logged and the next one is still scheduled. Overlapping
    runs are skipped rather than stacked.
    """

    def __init__(self, interval_seconds: float, *, run_immediately: bool = False) -> None:
        if interval_seconds <= 0:
            raise ValueError("Sweep interval must be positive.")
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self.runs = 0
        self.failures = 0
        self._scheduler: Optional[AsyncIOScheduler] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "IntervalSweepScheduler":
        settings = settings or get_settings()
        return cls(settings.sweep_interval_hours * 3600, **kwargs)

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self, job: SweepJob) -> None:
        if self.running:
            return
        scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop(), timezone=timezone.utc)
        options: dict[str, Any] = {}
        if self.run_immediately:
            options["next_run_time"] = datetime.now(timezone.utc)
        scheduler.add_job(
            self.run_once,
            IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            args=[job],
            id=SWEEP_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **options,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Sweep scheduler started (every %.0fs)", self.interval_seconds)

    async def run_once(self, job: SweepJob) -> None:
        self.runs += 1
        try:
            await job()
        except Exception:  # noqa: BLE001
            self.failures += 1
            logger.exception("Scheduled sweep failed")

    async def stop(self) -> None:
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is None or not scheduler.running:
            return
        scheduler.shutdown(wait=False)
        # Let cancelled sweep tasks unwind before the loop moves on.
        await asyncio.sleep(0)
        logger.info("Sweep scheduler stopped")


__all__ = ["IntervalSweepScheduler", "SWEEP_JOB_ID", "SweepJob", "SweepScheduler"]
