"""Daily schedule definition for the coupon sweep."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from zoneinfo import ZoneInfo


@dataclass(frozen=True, slots=True)
class DailySchedule:
    """Fire once a day at ``hour:minute`` in ``timezone``."""

    hour: int = 8
    minute: int = 0
    timezone: str = "Asia/Shanghai"

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23:
            raise ValueError(f"Invalid schedule hour: {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"Invalid schedule minute: {self.minute}")
        ZoneInfo(self.timezone)

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def next_after(self, now: datetime) -> datetime:
        """Return the first fire time strictly after ``now``.

        Naive datetimes are treated as UTC. The result is expressed in the
        schedule's timezone.
        """

        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local_now = now.astimezone(self.zone)
        candidate = local_now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= local_now:
            candidate = (candidate + timedelta(days=1)).replace(hour=self.hour, minute=self.minute)
        return candidate


__all__ = ["DailySchedule"]
