#!/usr/bin/env python3
"""Run the coupon sweep once, outside the in-process scheduler.

Intended usage: schedule via cron when the API runs with
``COUPON_SWEEP_ENABLED=false``, or trigger manually after an upstream outage.

Example:
    python tooling/scripts/run_coupon_sweep.py --concurrency 10

The sweep is read-only against the key card store. Without a report webhook
(``REPORT_WEBHOOK_URL``) it exits immediately; pass ``--webhook-url`` to
override the configured one.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Re-acquire coupons for every activated key card")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum key cards swept in parallel (defaults to COUPON_SWEEP_CONCURRENCY).",
    )
    parser.add_argument(
        "--webhook-url",
        default=None,
        help="Report webhook to use instead of REPORT_WEBHOOK_URL.",
    )
    return parser.parse_args()


async def _run(concurrency: int | None, webhook_url: str | None) -> dict[str, object] | None:
    repo_root = Path(__file__).resolve().parents[2]
    api_src = repo_root / "apps" / "api" / "src"
    if str(api_src) not in sys.path:
        sys.path.insert(0, str(api_src))

    import httpx

    from keycard_api.app import build_retry_policy, resolve_config_path  # type: ignore import-position
    from keycard_api.core.settings import settings  # type: ignore import-position
    from keycard_api.db.session import async_session  # type: ignore import-position
    from keycard_api.domain.campaigns import load_campaign_config  # type: ignore import-position
    from keycard_api.jobs import run_coupon_sweep  # type: ignore import-position
    from keycard_api.services.acquisition import (  # type: ignore import-position
        HttpSignatureProvider,
        build_orchestrator,
    )
    from keycard_api.services.reporting import build_report_sink  # type: ignore import-position

    campaign_config = load_campaign_config(resolve_config_path(settings.campaign_config_path))
    async with httpx.AsyncClient(timeout=settings.acquisition_request_timeout_seconds) as http_client:
        signer = HttpSignatureProvider(
            settings.signature_service_url,
            http_client=http_client,
            timeout_seconds=settings.signature_timeout_seconds,
        )
        orchestrator = build_orchestrator(
            campaign_config,
            signer=signer,
            http_client=http_client,
            retry_policy=build_retry_policy(),
            request_timeout_seconds=settings.acquisition_request_timeout_seconds,
            signature_timeout_seconds=settings.signature_timeout_seconds,
        )
        report_sink = build_report_sink(
            webhook_url or settings.report_webhook_url,
            http_client=http_client,
            timeout_seconds=settings.report_timeout_seconds,
        )
        report = await run_coupon_sweep(
            session_factory=async_session,
            orchestrator=orchestrator,
            report_sink=report_sink,
            concurrency=concurrency or settings.coupon_sweep_concurrency,
        )
    return report.as_dict() if report else None


def main() -> int:
    args = parse_args()
    summary = asyncio.run(_run(args.concurrency, args.webhook_url))
    if summary is None:
        logger.warning("Coupon sweep skipped; no report webhook configured")
        return 1
    logger.success("Coupon sweep run completed", **summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
