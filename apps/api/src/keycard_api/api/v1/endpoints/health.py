from __future__ import annotations

from typing import Dict, Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from keycard_api.core.settings import settings
from keycard_api.db.session import get_session
from keycard_api.observability.sweep import get_sweep_store


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "starting", "disabled", "error", "degraded"]
    detail: str | None = Field(default=None, description="Human readable status detail")
    last_error_at: str | None = Field(default=None, description="ISO timestamp of most recent error")
    last_success_at: str | None = Field(default=None, description="ISO timestamp of most recent success")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/healthz", summary="Service health check")
async def service_health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}
    status: Literal["ready", "degraded", "error"] = "ready"

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        components["database"] = ComponentStatus(status="error", detail=str(exc))
        status = "error"
    else:
        components["database"] = ComponentStatus(status="ready")

    orchestrator = getattr(request.app.state, "acquisition_orchestrator", None)
    if orchestrator is None:
        components["acquisition"] = ComponentStatus(status="starting", detail="Acquisition orchestrator not initialised")
        status = "degraded" if status != "error" else status
    elif not orchestrator.source_ids:
        components["acquisition"] = ComponentStatus(status="degraded", detail="No campaign sources configured")
        status = "degraded" if status != "error" else status
    else:
        components["acquisition"] = ComponentStatus(
            status="ready",
            detail=f"Sources: {', '.join(orchestrator.source_ids)}",
        )

    scheduler = getattr(request.app.state, "coupon_sweep_scheduler", None)
    if settings.coupon_sweep_enabled and scheduler is not None:
        running = bool(getattr(scheduler, "is_running", False))
        scheduler_status: Literal["ready", "starting", "disabled", "error"] = "ready" if running else "starting"
        detail = None if running else "Coupon sweep scheduler not running"
        snapshot = get_sweep_store().snapshot()
        if snapshot.totals.get("consecutive_failures", 0) > 0:
            scheduler_status = "error"
            detail = snapshot.last_error or "Coupon sweep failing"
            status = "error"
        elif not running:
            status = "degraded" if status != "error" else status
        components["coupon_sweep"] = ComponentStatus(
            status=scheduler_status,
            detail=detail,
            last_error_at=snapshot.last_error_at.isoformat() if snapshot.last_error_at else None,
            last_success_at=snapshot.last_completed_at.isoformat()
            if snapshot.last_completed_at and not snapshot.totals.get("consecutive_failures")
            else None,
        )
    else:
        components["coupon_sweep"] = ComponentStatus(
            status="disabled",
            detail="Coupon sweep scheduler disabled via settings",
        )

    return ReadinessPayload(status=status, components=components)
