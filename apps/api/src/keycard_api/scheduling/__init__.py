"""Coupon sweep scheduling."""

from .config import DailySchedule
from .runner import SweepScheduler

__all__ = ["DailySchedule", "SweepScheduler"]
