"""Background jobs."""

from .coupon_sweep import SweepReport, run_coupon_sweep

__all__ = ["SweepReport", "run_coupon_sweep"]
