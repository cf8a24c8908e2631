"""Key card activation lifecycle: UNUSED -> USED, with idempotent replay."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from keycard_api.domain.coupons import Coupon, deserialize_coupons, serialize_coupons
from keycard_api.models.key_card import KeyCard, KeyCardStatusEnum

from .errors import AcquisitionFailedError, KeyCardNotFoundError
from .locks import CodeLockRegistry, get_code_lock_registry
from .repository import KeyCardRepository

Clock = Callable[[], datetime]


class _AcquisitionResultLike(Protocol):
    coupons: list[Coupon]


class CouponOrchestrator(Protocol):
    async def acquire_all(self, credential: str) -> _AcquisitionResultLike:  # pragma: no cover - protocol
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ActivationResult:
    """Coupons bound to a key card, either freshly acquired or replayed."""

    key_card: KeyCard
    coupons: list[Coupon]
    replayed: bool


class KeyCardStateMachine:
    """Owns the single-use activation of key cards.

    The read/acquire/commit sequence for a code runs under a per-code lock, so
    concurrent activations of one fresh code issue upstream calls once; the
    commit itself is a conditional update and stays safe across processes.
    """

    def __init__(
        self,
        session: AsyncSession,
        orchestrator: CouponOrchestrator,
        *,
        locks: CodeLockRegistry | None = None,
        clock: Clock = _utcnow,
    ) -> None:
        self._session = session
        self._repository = KeyCardRepository(session)
        self._orchestrator = orchestrator
        self._locks = locks or get_code_lock_registry()
        self._clock = clock

    async def get_key_card(self, code: str) -> KeyCard:
        key_card = await self._repository.find_by_code(code)
        if key_card is None:
            raise KeyCardNotFoundError(code)
        return key_card

    async def activate(self, code: str, credential: str, owner_ref: str | None = None) -> ActivationResult:
        code = (code or "").strip()
        credential = (credential or "").strip()
        if not code:
            raise ValueError("Key card code must not be blank")
        if not credential:
            raise ValueError("Credential must not be blank")

        async with self._locks.hold(code):
            key_card = await self.get_key_card(code)
            if key_card.status == KeyCardStatusEnum.USED:
                logger.info("Key card replayed", key_card_id=str(key_card.id))
                return self._replay(key_card)

            result = await self._orchestrator.acquire_all(credential)
            coupons = list(result.coupons)
            if not coupons:
                logger.warning("Key card activation acquired no coupons", key_card_id=str(key_card.id))
                raise AcquisitionFailedError(code)

            committed = await self._repository.atomic_transition(
                code,
                expected_status=KeyCardStatusEnum.UNUSED,
                values={
                    "status": KeyCardStatusEnum.USED,
                    "first_use_time": self._clock(),
                    "credential": credential,
                    "owner_ref": owner_ref,
                    "acquired_coupons": serialize_coupons(coupons),
                },
            )
            await self._session.commit()
            await self._session.refresh(key_card)

            if not committed:
                logger.warning(
                    "Key card activated concurrently elsewhere; discarding acquired coupons",
                    key_card_id=str(key_card.id),
                    discarded=len(coupons),
                )
                return self._replay(key_card)

            logger.info(
                "Key card activated",
                key_card_id=str(key_card.id),
                batch_id=str(key_card.batch_id) if key_card.batch_id else None,
                coupons=len(coupons),
            )
            return ActivationResult(key_card=key_card, coupons=coupons, replayed=False)

    @staticmethod
    def _replay(key_card: KeyCard) -> ActivationResult:
        return ActivationResult(
            key_card=key_card,
            coupons=deserialize_coupons(key_card.acquired_coupons),
            replayed=True,
        )


__all__ = ["ActivationResult", "CouponOrchestrator", "KeyCardStateMachine"]
