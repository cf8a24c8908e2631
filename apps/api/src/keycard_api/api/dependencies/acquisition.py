from fastapi import HTTPException, Request, status

from keycard_api.services.acquisition import AcquisitionOrchestrator


async def get_acquisition_orchestrator(request: Request) -> AcquisitionOrchestrator:
    """Return the orchestrator built during application startup."""

    orchestrator = getattr(request.app.state, "acquisition_orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Coupon acquisition is not configured",
        )
    return orchestrator
