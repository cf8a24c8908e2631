"""Daily re-acquisition sweep over every activated key card."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Protocol

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from keycard_api.observability.sweep import get_sweep_store
from keycard_api.services.keycards.repository import CredentialedKeyCard, KeyCardRepository
from keycard_api.services.reporting import ReportSink

SessionFactory = Callable[[], AsyncSession] | Callable[[], Awaitable[AsyncSession]]


class _SweepOrchestrator(Protocol):
    async def acquire_all(self, credential: str) -> Any:  # pragma: no cover - protocol
        ...


@dataclass
class SweepReport:
    title: str
    owners: list[str] = field(default_factory=list)
    scanned: int = 0
    failures: int = 0
    delivered: bool = False

    @property
    def count(self) -> int:
        return len(self.owners)

    @property
    def content(self) -> str:
        return "\n".join(self.owners)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "count": self.count,
            "scanned": self.scanned,
            "failures": self.failures,
            "delivered": self.delivered,
        }


@dataclass
class _CardOutcome:
    owner: str
    qualified: bool
    failed: bool = False


def sweep_title(count: int) -> str:
    return f"Coupon sweep: {count} key cards acquired coupons"


async def run_coupon_sweep(
    *,
    session_factory: SessionFactory,
    orchestrator: _SweepOrchestrator,
    report_sink: ReportSink | None,
    concurrency: int = 5,
) -> SweepReport | None:
    """Re-run acquisition for every stored credential and report the owners.

    Read-only against the key card store. Returns ``None`` without touching
    the store or the network when no report sink is configured.
    """

    store = get_sweep_store()
    if report_sink is None:
        store.record_skipped()
        logger.info("Coupon sweep skipped", reason="report_sink_not_configured")
        return None

    started_at = time.perf_counter()
    maybe_session = session_factory()
    session: AsyncSession
    if isinstance(maybe_session, AsyncSession):
        session = maybe_session
    else:
        session = await maybe_session

    async with session as managed_session:
        cards = await KeyCardRepository(managed_session).list_credentialed()

    semaphore = asyncio.Semaphore(max(concurrency, 1))
    outcomes = await asyncio.gather(*(_sweep_card(card, orchestrator, semaphore) for card in cards))

    owners = [outcome.owner for outcome in outcomes if outcome.qualified]
    failures = sum(1 for outcome in outcomes if outcome.failed)
    report = SweepReport(title=sweep_title(len(owners)), owners=owners, scanned=len(cards), failures=failures)
    report.delivered = await report_sink.send(report.title, report.content)

    runtime_seconds = time.perf_counter() - started_at
    store.record_completion(
        scanned=report.scanned,
        qualified=report.count,
        failures=failures,
        delivered=report.delivered,
        runtime_seconds=runtime_seconds,
    )
    logger.bind(summary=report.as_dict()).info("Coupon sweep completed")
    return report


async def _sweep_card(
    card: CredentialedKeyCard,
    orchestrator: _SweepOrchestrator,
    semaphore: asyncio.Semaphore,
) -> _CardOutcome:
    owner = card.owner_ref or card.code
    async with semaphore:
        try:
            result = await orchestrator.acquire_all(card.credential)
        except Exception as exc:
            logger.warning(
                "Coupon sweep card failed",
                owner=owner,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return _CardOutcome(owner=owner, qualified=False, failed=True)
    return _CardOutcome(owner=owner, qualified=bool(result.coupons))


__all__ = ["SweepReport", "run_coupon_sweep", "sweep_title"]
