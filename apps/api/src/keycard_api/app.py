from contextlib import asynccontextmanager
from functools import partial
from pathlib import Path

import httpx
from fastapi import FastAPI
from loguru import logger

from keycard_api.core.settings import settings
from keycard_api.db.session import async_session
from keycard_api.domain.campaigns import CampaignConfig, load_campaign_config
from .api.routes import api_router
from .core.logging import configure_logging
from .jobs import run_coupon_sweep
from .observability.tracing import configure_tracing
from .scheduling import DailySchedule, SweepScheduler
from .services.acquisition import HttpSignatureProvider, RetryPolicy, build_orchestrator
from .services.reporting import build_report_sink


APP_VERSION = "0.1.0"


def _session_factory():
    return async_session()


def resolve_config_path(raw_path: str) -> Path:
    path = Path(raw_path)
    if not path.is_absolute():
        path = Path(__file__).resolve().parent.parent.parent / path
    return path


def build_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.acquisition_max_retries,
        base_backoff_seconds=settings.acquisition_base_backoff_seconds,
        backoff_multiplier=settings.acquisition_backoff_multiplier,
        max_backoff_seconds=settings.acquisition_max_backoff_seconds,
        jitter_seconds=settings.acquisition_jitter_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    http_client = httpx.AsyncClient(timeout=settings.acquisition_request_timeout_seconds)

    config_path = resolve_config_path(settings.campaign_config_path)
    try:
        campaign_config = load_campaign_config(config_path)
    except FileNotFoundError as exc:
        logger.exception("Campaign config missing; acquisition disabled", error=str(exc))
        campaign_config = CampaignConfig(sources=[])
    else:
        logger.info(
            "Campaign config loaded",
            config_path=str(config_path),
            sources=[source.id for source in campaign_config.sources],
        )

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
        settings.report_webhook_url,
        http_client=http_client,
        timeout_seconds=settings.report_timeout_seconds,
    )

    sweep_scheduler = SweepScheduler(
        partial(
            run_coupon_sweep,
            session_factory=_session_factory,
            orchestrator=orchestrator,
            report_sink=report_sink,
            concurrency=settings.coupon_sweep_concurrency,
        ),
        DailySchedule(
            hour=settings.coupon_sweep_hour,
            minute=settings.coupon_sweep_minute,
            timezone=settings.coupon_sweep_timezone,
        ),
    )

    app.state.http_client = http_client
    app.state.acquisition_orchestrator = orchestrator
    app.state.report_sink = report_sink
    app.state.coupon_sweep_scheduler = sweep_scheduler

    sweep_enabled = settings.coupon_sweep_enabled
    if sweep_enabled:
        sweep_scheduler.start()
        if report_sink is None:
            logger.warning("Coupon sweep enabled without a report webhook; runs will be skipped")
    else:
        logger.info(
            "Coupon sweep scheduler disabled",
            reason="coupon_sweep_enabled is false",
        )

    try:
        yield
    finally:
        if sweep_enabled and sweep_scheduler.is_running:
            await sweep_scheduler.stop()
        await http_client.aclose()


def create_app() -> FastAPI:
    """Application factory for the key card FastAPI service."""
    configure_logging(
        service_name="keycard-api",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="Key Card API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name="keycard-api",
        service_version=APP_VERSION,
        environment=settings.environment,
        enabled=settings.tracing_enabled,
        exporter_endpoint=settings.otel_exporter_otlp_endpoint,
        exporter_headers=settings.otel_exporter_otlp_headers,
    )

    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
