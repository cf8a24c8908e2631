"""Scheduler runtime for the daily coupon sweep."""

from __future__ import annotations

import inspect
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from keycard_api.observability.sweep import get_sweep_store

from .config import DailySchedule

SweepJob = Callable[[], Awaitable[Any]]
Clock = Callable[[], datetime]

_JOB_ID = "coupon-sweep"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SweepScheduler:
    """Fire the coupon sweep once per day.

    ``tick`` is the single entry point for scheduled runs: it runs the job only
    when the clock has reached the next due time, then advances the due time
    by one day. APScheduler merely calls ``tick`` at the configured wall-clock
    time, so tests can drive the schedule with a fake clock.
    """

    def __init__(self, job: SweepJob, schedule: DailySchedule, *, clock: Clock = _utcnow) -> None:
        self._job = job
        self._schedule = schedule
        self._clock = clock
        self._next_due = schedule.next_after(clock())
        self._scheduler: AsyncIOScheduler | None = None
        self._is_running: bool = False
        self._observability = get_sweep_store()

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def next_run_at(self) -> datetime:
        return self._next_due

    @property
    def schedule(self) -> DailySchedule:
        return self._schedule

    async def tick(self) -> bool:
        """Run the sweep if it is due. Returns whether a run happened."""

        now = self._clock()
        if now < self._next_due:
            return False
        await self._run()
        self._next_due = self._schedule.next_after(max(now, self._next_due))
        logger.debug("Coupon sweep rescheduled", next_run_at=self._next_due.isoformat())
        return True

    async def run_now(self) -> None:
        """Run the sweep immediately without moving the daily schedule."""

        await self._run()

    def start(self) -> None:
        if self._scheduler is not None:
            return
        zone = self._schedule.zone
        scheduler = AsyncIOScheduler(timezone=zone)
        trigger = CronTrigger(hour=self._schedule.hour, minute=self._schedule.minute, timezone=zone)
        scheduler.add_job(self.tick, trigger=trigger, id=_JOB_ID, replace_existing=True)
        scheduler.start()
        self._scheduler = scheduler
        self._is_running = True
        logger.info(
            "Coupon sweep scheduler started",
            hour=self._schedule.hour,
            minute=self._schedule.minute,
            timezone=self._schedule.timezone,
            next_run_at=self._next_due.isoformat(),
        )

    async def stop(self) -> None:
        if not self._scheduler:
            return
        result = self._scheduler.shutdown(wait=False)
        if inspect.isawaitable(result):
            await result
        self._scheduler = None
        self._is_running = False
        logger.info("Coupon sweep scheduler stopped")

    async def _run(self) -> None:
        self._observability.record_dispatch()
        try:
            await self._job()
        except Exception as exc:
            self._observability.record_failure(str(exc))
            logger.exception("Coupon sweep failed", error=str(exc))

    def health(self) -> dict[str, object]:
        """Return scheduler health metadata suitable for diagnostics."""

        snapshot = self._observability.snapshot()
        return {
            "running": self._is_running,
            "schedule": {
                "hour": self._schedule.hour,
                "minute": self._schedule.minute,
                "timezone": self._schedule.timezone,
            },
            "next_run_at": self._next_due.isoformat(),
            "metrics": snapshot.as_dict(),
        }


__all__ = ["SweepScheduler"]
