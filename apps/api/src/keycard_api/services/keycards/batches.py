"""Bulk issuance of key card batches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable
from uuid import UUID

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from keycard_api.models.key_card import KeyCard, KeyCardBatch, KeyCardStatusEnum

from .codes import DEFAULT_CODE_LENGTH, generate_code
from .errors import BatchIntegrityError
from .repository import KeyCardRepository

CodeFactory = Callable[[int], str]

_MAX_DRAW_ROUNDS = 5
_EXISTENCE_CHUNK = 500


@dataclass(slots=True)
class BatchIntegrityReport:
    batch: KeyCardBatch
    requested: int
    persisted: int

    @property
    def is_consistent(self) -> bool:
        return self.requested == self.persisted

    @property
    def missing(self) -> int:
        return max(self.requested - self.persisted, 0)


class BatchIssuer:
    """Create a named batch and its unused key cards."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        code_length: int = DEFAULT_CODE_LENGTH,
        collision_retries: int = 3,
        code_factory: CodeFactory = generate_code,
    ) -> None:
        self._session = session
        self._repository = KeyCardRepository(session)
        self._code_length = code_length
        self._collision_retries = max(collision_retries, 0)
        self._code_factory = code_factory

    async def create_batch(self, name: str, count: int) -> KeyCardBatch:
        """Persist the batch record, then its ``count`` key cards.

        The batch record is committed first. If the key cards cannot all be
        stored, :class:`BatchIntegrityError` reports the persisted count and
        the batch is left in place for auditing.
        """

        cleaned_name = name.strip() if isinstance(name, str) else ""
        if not cleaned_name:
            raise ValueError("Batch name must not be blank")
        if count < 1:
            raise ValueError("Batch count must be at least 1")

        batch = await self._repository.create_batch(cleaned_name, count)
        batch_id = batch.id
        logger.info("Key card batch recorded", batch_id=str(batch_id), name=cleaned_name, count=count)

        for attempt in range(1, self._collision_retries + 2):
            codes = await self._draw_codes(count)
            key_cards = [
                KeyCard(code=code, batch_id=batch_id, status=KeyCardStatusEnum.UNUSED)
                for code in codes
            ]
            try:
                await self._repository.bulk_insert(key_cards)
            except IntegrityError:
                await self._session.rollback()
                logger.warning(
                    "Key card code collision during batch insert",
                    batch_id=str(batch_id),
                    attempt=attempt,
                )
                continue
            except SQLAlchemyError as exc:
                await self._session.rollback()
                logger.exception(
                    "Key card batch insert failed",
                    batch_id=str(batch_id),
                    attempt=attempt,
                    error=str(exc),
                )
                break
            else:
                logger.info("Key card batch issued", batch_id=str(batch_id), count=count, attempts=attempt)
                return batch

        await self._session.refresh(batch)
        persisted = await self._repository.count_by_batch(batch_id)
        logger.error(
            "Key card batch left incomplete",
            batch_id=str(batch_id),
            requested=count,
            persisted=persisted,
        )
        raise BatchIntegrityError(batch, requested=count, persisted=persisted)

    async def audit_batch(self, batch_id: UUID) -> BatchIntegrityReport | None:
        """Compare a batch's recorded count with its persisted key cards."""

        batch = await self._repository.get_batch(batch_id)
        if batch is None:
            return None
        persisted = await self._repository.count_by_batch(batch_id)
        report = BatchIntegrityReport(batch=batch, requested=batch.count, persisted=persisted)
        if not report.is_consistent:
            logger.warning(
                "Key card batch count mismatch",
                batch_id=str(batch_id),
                requested=report.requested,
                persisted=report.persisted,
            )
        return report

    async def _draw_codes(self, count: int) -> list[str]:
        codes: list[str] = []
        seen: set[str] = set()
        for _ in range(_MAX_DRAW_ROUNDS):
            needed = count - len(codes)
            if needed <= 0:
                break
            candidates: list[str] = []
            for _ in range(needed):
                code = self._code_factory(self._code_length)
                if code not in seen:
                    seen.add(code)
                    candidates.append(code)
            taken = await self._existing_codes(candidates)
            codes.extend(code for code in candidates if code not in taken)

        if len(codes) < count:
            # Unresolved collisions go to the insert; the unique constraint rejects them.
            codes.extend(self._code_factory(self._code_length) for _ in range(count - len(codes)))
        return codes

    async def _existing_codes(self, candidates: list[str]) -> set[str]:
        taken: set[str] = set()
        for start in range(0, len(candidates), _EXISTENCE_CHUNK):
            taken |= await self._repository.existing_codes(candidates[start : start + _EXISTENCE_CHUNK])
        return taken


__all__ = ["BatchIntegrityReport", "BatchIssuer"]
