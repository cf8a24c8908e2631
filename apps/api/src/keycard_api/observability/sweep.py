"""Observability store for coupon sweep runs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class SweepSnapshot:
    """Serializable snapshot of sweep activity."""

    totals: Dict[str, int]
    last_started_at: datetime | None
    last_completed_at: datetime | None
    last_error_at: datetime | None
    last_error: str | None
    last_scanned: int
    last_qualified: int
    last_failures: int
    last_report_delivered: bool | None
    last_runtime_seconds: float | None

    def as_dict(self) -> Dict[str, object]:
        return {
            "totals": self.totals,
            "last_started_at": _iso(self.last_started_at),
            "last_completed_at": _iso(self.last_completed_at),
            "last_error_at": _iso(self.last_error_at),
            "last_error": self.last_error,
            "last_scanned": self.last_scanned,
            "last_qualified": self.last_qualified,
            "last_failures": self.last_failures,
            "last_report_delivered": self.last_report_delivered,
            "last_runtime_seconds": self.last_runtime_seconds,
        }


class SweepObservabilityStore:
    """Tracks coupon sweep dispatches and outcomes."""

    def __init__(self) -> None:
        self._lock: Lock = Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._runs = 0
            self._completed = 0
            self._skipped = 0
            self._run_failures = 0
            self._consecutive_failures = 0
            self._card_failures = 0
            self._last_started_at: datetime | None = None
            self._last_completed_at: datetime | None = None
            self._last_error_at: datetime | None = None
            self._last_error: str | None = None
            self._last_scanned = 0
            self._last_qualified = 0
            self._last_failures = 0
            self._last_report_delivered: bool | None = None
            self._last_runtime_seconds: float | None = None

    def record_dispatch(self) -> None:
        with self._lock:
            self._runs += 1
            self._last_started_at = _utcnow()
            self._last_completed_at = None

    def record_skipped(self) -> None:
        with self._lock:
            self._skipped += 1
            self._last_completed_at = _utcnow()

    def record_completion(
        self,
        *,
        scanned: int,
        qualified: int,
        failures: int,
        delivered: bool,
        runtime_seconds: float,
    ) -> None:
        with self._lock:
            self._completed += 1
            self._consecutive_failures = 0
            self._card_failures += failures
            self._last_completed_at = _utcnow()
            self._last_scanned = scanned
            self._last_qualified = qualified
            self._last_failures = failures
            self._last_report_delivered = delivered
            self._last_runtime_seconds = runtime_seconds

    def record_failure(self, error: str) -> None:
        with self._lock:
            self._run_failures += 1
            self._consecutive_failures += 1
            self._last_error = error
            self._last_error_at = _utcnow()
            self._last_completed_at = self._last_error_at

    def snapshot(self) -> SweepSnapshot:
        with self._lock:
            return SweepSnapshot(
                totals={
                    "runs": self._runs,
                    "completed": self._completed,
                    "skipped": self._skipped,
                    "run_failures": self._run_failures,
                    "consecutive_failures": self._consecutive_failures,
                    "card_failures": self._card_failures,
                },
                last_started_at=self._last_started_at,
                last_completed_at=self._last_completed_at,
                last_error_at=self._last_error_at,
                last_error=self._last_error,
                last_scanned=self._last_scanned,
                last_qualified=self._last_qualified,
                last_failures=self._last_failures,
                last_report_delivered=self._last_report_delivered,
                last_runtime_seconds=self._last_runtime_seconds,
            )


_STORE = SweepObservabilityStore()


def get_sweep_store() -> SweepObservabilityStore:
    return _STORE


__all__ = ["SweepObservabilityStore", "SweepSnapshot", "get_sweep_store"]
