from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from keycard_api.scheduling import DailySchedule, SweepScheduler

SHANGHAI = ZoneInfo("Asia/Shanghai")


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


def test_next_after_same_day_and_rollover() -> None:
    schedule = DailySchedule(hour=8, minute=0, timezone="Asia/Shanghai")

    before = datetime(2026, 10, 19, 7, 0, tzinfo=SHANGHAI)
    exactly = datetime(2026, 10, 19, 8, 0, tzinfo=SHANGHAI)

    assert schedule.next_after(before) == datetime(2026, 10, 19, 8, 0, tzinfo=SHANGHAI)
    assert schedule.next_after(exactly) == datetime(2026, 10, 20, 8, 0, tzinfo=SHANGHAI)
    # 23:30 UTC on the 18th is already 07:30 on the 19th in Shanghai.
    naive_utc = datetime(2026, 10, 18, 23, 30)
    assert schedule.next_after(naive_utc) == datetime(2026, 10, 19, 8, 0, tzinfo=SHANGHAI)


def test_schedule_rejects_invalid_values() -> None:
    with pytest.raises(ValueError):
        DailySchedule(hour=24)
    with pytest.raises(ValueError):
        DailySchedule(minute=60)
    with pytest.raises(ZoneInfoNotFoundError):
        DailySchedule(timezone="Not/AZone")


@pytest.mark.asyncio
async def test_tick_runs_once_per_day_at_eight(sweep_store) -> None:
    clock = FakeClock(datetime(2026, 10, 19, 7, 59, tzinfo=SHANGHAI))
    runs: list[datetime] = []

    async def job() -> None:
        runs.append(clock())

    scheduler = SweepScheduler(job, DailySchedule(hour=8, minute=0, timezone="Asia/Shanghai"), clock=clock)
    assert scheduler.next_run_at == datetime(2026, 10, 19, 8, 0, tzinfo=SHANGHAI)

    assert not await scheduler.tick()
    assert runs == []

    clock.advance(timedelta(minutes=1))
    assert await scheduler.tick()
    assert runs == [datetime(2026, 10, 19, 8, 0, tzinfo=SHANGHAI)]
    assert scheduler.next_run_at == datetime(2026, 10, 20, 8, 0, tzinfo=SHANGHAI)

    clock.advance(timedelta(seconds=30))
    assert not await scheduler.tick()
    assert len(runs) == 1

    clock.now = datetime(2026, 10, 20, 8, 5, tzinfo=SHANGHAI)
    assert await scheduler.tick()
    assert len(runs) == 2
    assert scheduler.next_run_at == datetime(2026, 10, 21, 8, 0, tzinfo=SHANGHAI)
    assert sweep_store.snapshot().totals["runs"] == 2


@pytest.mark.asyncio
async def test_failing_job_is_recorded_and_does_not_raise(sweep_store) -> None:
    async def job() -> None:
        raise RuntimeError("boom")

    clock = FakeClock(datetime(2026, 10, 19, 0, 0, tzinfo=timezone.utc))
    scheduler = SweepScheduler(job, DailySchedule(), clock=clock)

    await scheduler.run_now()

    snapshot = sweep_store.snapshot()
    assert snapshot.totals["run_failures"] == 1
    assert snapshot.totals["consecutive_failures"] == 1
    assert snapshot.last_error == "boom"
    health = scheduler.health()
    assert health["running"] is False
    assert health["schedule"] == {"hour": 8, "minute": 0, "timezone": "Asia/Shanghai"}
    assert health["metrics"]["last_error"] == "boom"


@pytest.mark.asyncio
async def test_start_and_stop_toggle_running_state(sweep_store) -> None:
    async def job() -> None:  # pragma: no cover - not due during the test
        raise AssertionError("job should not run")

    scheduler = SweepScheduler(job, DailySchedule(hour=8, minute=0))

    scheduler.start()
    try:
        assert scheduler.is_running
    finally:
        await scheduler.stop()

    assert not scheduler.is_running
