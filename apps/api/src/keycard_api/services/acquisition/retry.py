"""Retry policy shared by campaign clients."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum

from keycard_api.domain.coupons import AcquisitionOutcome


class RetryDecision(str, Enum):
    SUCCEED = "succeed"
    RETRY = "retry"
    GIVE_UP = "give_up"


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded retry budget with optional exponential backoff.

    ``max_retries`` counts extra attempts after the first one, so a policy
    allows at most ``max_retries + 1`` attempts.
    """

    max_retries: int = 2
    base_backoff_seconds: float = 0.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 5.0
    jitter_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def decide(self, attempt: int, outcome: AcquisitionOutcome) -> RetryDecision:
        """Classify attempt number ``attempt`` (1-based) given its outcome."""

        if outcome is AcquisitionOutcome.SUCCESS:
            return RetryDecision.SUCCEED
        if attempt >= self.max_attempts:
            return RetryDecision.GIVE_UP
        return RetryDecision.RETRY

    def backoff_for(self, attempt: int, *, rng: random.Random | None = None) -> float:
        """Delay before the attempt following ``attempt``."""

        base = max(self.base_backoff_seconds, 0.0)
        if not base and not self.jitter_seconds:
            return 0.0
        delay = base * (max(self.backoff_multiplier, 1.0) ** (max(attempt, 1) - 1))
        if self.max_backoff_seconds:
            delay = min(delay, self.max_backoff_seconds)
        if self.jitter_seconds:
            delay += (rng or random).uniform(0, self.jitter_seconds)
        return max(delay, 0.0)


__all__ = ["RetryDecision", "RetryPolicy"]
