"""Fan-out of coupon acquisition across every configured campaign."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Protocol, Sequence

import httpx
from loguru import logger

from keycard_api.domain.campaigns import CampaignConfig
from keycard_api.domain.coupons import AcquisitionAttempt, AcquisitionOutcome, Coupon

from .campaign_client import CampaignClient
from .retry import RetryPolicy
from .signature import SignatureProvider


class CouponAcquirer(Protocol):
    source_id: str

    async def attempt(self, credential: str) -> AcquisitionAttempt:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class AcquisitionResult:
    """Merged outcome of one fan-out across all sources."""

    attempts: list[AcquisitionAttempt] = field(default_factory=list)
    coupons: list[Coupon] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return bool(self.coupons)


class AcquisitionOrchestrator:
    """Run every campaign client concurrently and merge their coupons.

    All clients are awaited even when an earlier one already succeeded since
    campaign pools do not overlap. Coupons are concatenated in source order.
    """

    def __init__(self, clients: Sequence[CouponAcquirer]) -> None:
        self._clients = list(clients)

    @property
    def source_ids(self) -> list[str]:
        return [client.source_id for client in self._clients]

    async def acquire_all(self, credential: str) -> AcquisitionResult:
        if not self._clients:
            logger.warning("No campaign sources configured for acquisition")
            return AcquisitionResult()

        attempts = await asyncio.gather(*(client.attempt(credential) for client in self._clients))

        coupons: list[Coupon] = []
        for attempt in attempts:
            if attempt.coupons:
                coupons.extend(attempt.coupons)

        result = AcquisitionResult(attempts=list(attempts), coupons=coupons)
        logger.info(
            "Coupon acquisition fan-out completed",
            sources=len(attempts),
            succeeded_sources=sum(1 for attempt in attempts if attempt.outcome is AcquisitionOutcome.SUCCESS),
            coupons=len(coupons),
            retries={attempt.source: attempt.retries_used for attempt in attempts},
        )
        return result


def build_orchestrator(
    config: CampaignConfig,
    *,
    signer: SignatureProvider,
    http_client: httpx.AsyncClient,
    retry_policy: RetryPolicy,
    request_timeout_seconds: float,
    signature_timeout_seconds: float,
    rng: random.Random | None = None,
) -> AcquisitionOrchestrator:
    """Create one client per configured source sharing the HTTP client."""

    clients = [
        CampaignClient(
            source,
            signer=signer,
            http_client=http_client,
            retry_policy=retry_policy,
            request_timeout_seconds=request_timeout_seconds,
            signature_timeout_seconds=signature_timeout_seconds,
            rng=rng,
        )
        for source in config.sources
    ]
    return AcquisitionOrchestrator(clients)


__all__ = ["AcquisitionOrchestrator", "AcquisitionResult", "CouponAcquirer", "build_orchestrator"]
