"""API endpoints for key card activation and batch administration."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from keycard_api.api.dependencies.acquisition import get_acquisition_orchestrator
from keycard_api.api.dependencies.security import require_admin_api_key
from keycard_api.core.settings import settings
from keycard_api.db.session import get_session
from keycard_api.models.key_card import KeyCard, KeyCardBatch, KeyCardStatusEnum
from keycard_api.schemas.key_card import (
    ActivationRequest,
    ActivationResponse,
    BatchCreateRequest,
    BatchIntegrityResponse,
    BatchResponse,
    CouponResponse,
    KeyCardResponse,
)
from keycard_api.services.acquisition import AcquisitionOrchestrator
from keycard_api.services.keycards import (
    AcquisitionFailedError,
    ActivationResult,
    BatchIntegrityError,
    BatchIssuer,
    KeyCardNotFoundError,
    KeyCardRepository,
    KeyCardStateMachine,
)


router = APIRouter(prefix="/key-cards", tags=["key-cards"])


def _key_card_response(key_card: KeyCard) -> KeyCardResponse:
    return KeyCardResponse(
        id=key_card.id,
        code=key_card.code,
        status=KeyCardStatusEnum(key_card.status).value,
        batch_id=key_card.batch_id,
        owner_ref=key_card.owner_ref,
        first_use_time=key_card.first_use_time,
        created_at=key_card.created_at,
    )


def _batch_response(batch: KeyCardBatch, persisted_count: int) -> BatchResponse:
    return BatchResponse(
        id=batch.id,
        name=batch.name,
        count=batch.count,
        persisted_count=persisted_count,
        created_at=batch.created_at,
    )


def _activation_response(result: ActivationResult) -> ActivationResponse:
    key_card = result.key_card
    return ActivationResponse(
        code=key_card.code,
        status=KeyCardStatusEnum(key_card.status).value,
        replayed=result.replayed,
        first_use_time=key_card.first_use_time,
        coupons=[CouponResponse(**coupon.as_payload()) for coupon in result.coupons],
    )


@router.post("/activate", response_model=ActivationResponse)
async def activate_key_card(
    payload: ActivationRequest,
    code: str = Header(..., alias="X-Key-Card"),
    session: AsyncSession = Depends(get_session),
    orchestrator: AcquisitionOrchestrator = Depends(get_acquisition_orchestrator),
) -> ActivationResponse:
    """Activate a key card, or replay the coupons of an already used one."""

    machine = KeyCardStateMachine(session, orchestrator)
    try:
        result = await machine.activate(code, payload.credential, payload.owner_ref)
    except KeyCardNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except AcquisitionFailedError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _activation_response(result)


@router.post(
    "/batches",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_api_key)],
    responses={status.HTTP_207_MULTI_STATUS: {"model": BatchIntegrityResponse}},
)
async def create_batch(
    payload: BatchCreateRequest,
    session: AsyncSession = Depends(get_session),
):
    issuer = BatchIssuer(
        session,
        code_length=settings.key_card_code_length,
        collision_retries=settings.batch_collision_retries,
    )
    try:
        batch = await issuer.create_batch(payload.name, payload.count)
    except BatchIntegrityError as exc:
        body = BatchIntegrityResponse(
            batch=_batch_response(exc.batch, exc.persisted),
            requested=exc.requested,
            persisted=exc.persisted,
            missing=max(exc.requested - exc.persisted, 0),
            consistent=False,
            detail=str(exc),
        )
        return JSONResponse(
            status_code=status.HTTP_207_MULTI_STATUS,
            content=body.model_dump(mode="json", by_alias=True),
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _batch_response(batch, batch.count)


@router.get(
    "/batches",
    response_model=List[BatchResponse],
    dependencies=[Depends(require_admin_api_key)],
)
async def list_batches(session: AsyncSession = Depends(get_session)) -> List[BatchResponse]:
    summaries = await KeyCardRepository(session).list_batches()
    return [_batch_response(summary.batch, summary.persisted_count) for summary in summaries]


@router.get(
    "/batches/{batch_id}/key-cards",
    response_model=List[KeyCardResponse],
    dependencies=[Depends(require_admin_api_key)],
)
async def list_batch_key_cards(
    batch_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> List[KeyCardResponse]:
    repository = KeyCardRepository(session)
    if await repository.get_batch(batch_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
    key_cards = await repository.list_by_batch(batch_id)
    return [_key_card_response(key_card) for key_card in key_cards]


@router.get(
    "/batches/{batch_id}/integrity",
    response_model=BatchIntegrityResponse,
    dependencies=[Depends(require_admin_api_key)],
)
async def audit_batch(
    batch_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> BatchIntegrityResponse:
    report = await BatchIssuer(session).audit_batch(batch_id)
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
    return BatchIntegrityResponse(
        batch=_batch_response(report.batch, report.persisted),
        requested=report.requested,
        persisted=report.persisted,
        missing=report.missing,
        consistent=report.is_consistent,
    )


@router.get(
    "/status/{key_card_status}",
    response_model=List[KeyCardResponse],
    dependencies=[Depends(require_admin_api_key)],
)
async def list_key_cards_by_status(
    key_card_status: KeyCardStatusEnum,
    session: AsyncSession = Depends(get_session),
) -> List[KeyCardResponse]:
    key_cards = await KeyCardRepository(session).list_by_status(key_card_status)
    return [_key_card_response(key_card) for key_card in key_cards]


@router.get("/info", response_model=KeyCardResponse)
async def get_key_card_info(
    code: str = Query(..., min_length=1, max_length=64),
    session: AsyncSession = Depends(get_session),
) -> KeyCardResponse:
    key_card = await KeyCardRepository(session).find_by_code(code.strip())
    if key_card is None:
        logger.debug("Key card lookup missed")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Key card not found")
    return _key_card_response(key_card)
