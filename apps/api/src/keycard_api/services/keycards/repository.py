"""Persistence helpers for key cards and batches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from keycard_api.models.key_card import KeyCard, KeyCardBatch, KeyCardStatusEnum


@dataclass(slots=True)
class BatchSummary:
    batch: KeyCardBatch
    persisted_count: int


@dataclass(frozen=True, slots=True)
class CredentialedKeyCard:
    """Projection used by the sweep; never written back."""

    code: str
    credential: str
    owner_ref: str | None


class KeyCardRepository:
    """Thin query layer over the key card tables."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def find_by_code(self, code: str) -> KeyCard | None:
        stmt = select(KeyCard).where(KeyCard.code == code)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_id(self, key_card_id: UUID) -> KeyCard | None:
        return await self._session.get(KeyCard, key_card_id)

    async def get_batch(self, batch_id: UUID) -> KeyCardBatch | None:
        return await self._session.get(KeyCardBatch, batch_id)

    async def list_by_batch(self, batch_id: UUID) -> list[KeyCard]:
        stmt = (
            select(KeyCard)
            .where(KeyCard.batch_id == batch_id)
            .order_by(KeyCard.created_at.asc(), KeyCard.code.asc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars())

    async def list_by_status(self, status: KeyCardStatusEnum) -> list[KeyCard]:
        stmt = select(KeyCard).where(KeyCard.status == status).order_by(KeyCard.created_at.asc())
        result = await self._session.execute(stmt)
        return list(result.scalars())

    async def list_batches(self) -> list[BatchSummary]:
        persisted = (
            select(KeyCard.batch_id, func.count(KeyCard.id).label("persisted"))
            .where(KeyCard.batch_id.is_not(None))
            .group_by(KeyCard.batch_id)
            .subquery()
        )
        stmt = (
            select(KeyCardBatch, func.coalesce(persisted.c.persisted, 0))
            .outerjoin(persisted, persisted.c.batch_id == KeyCardBatch.id)
            .order_by(KeyCardBatch.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return [BatchSummary(batch=batch, persisted_count=int(count)) for batch, count in result.all()]

    async def count_by_batch(self, batch_id: UUID) -> int:
        stmt = select(func.count(KeyCard.id)).where(KeyCard.batch_id == batch_id)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def existing_codes(self, codes: Iterable[str]) -> set[str]:
        candidates = list(codes)
        if not candidates:
            return set()
        stmt = select(KeyCard.code).where(KeyCard.code.in_(candidates))
        result = await self._session.execute(stmt)
        return set(result.scalars())

    async def list_credentialed(self) -> list[CredentialedKeyCard]:
        stmt = (
            select(KeyCard.code, KeyCard.credential, KeyCard.owner_ref)
            .where(KeyCard.credential.is_not(None))
            .order_by(KeyCard.first_use_time.asc())
        )
        result = await self._session.execute(stmt)
        return [
            CredentialedKeyCard(code=code, credential=credential, owner_ref=owner_ref)
            for code, credential, owner_ref in result.all()
        ]

    async def create_batch(self, name: str, count: int) -> KeyCardBatch:
        batch = KeyCardBatch(name=name, count=count)
        self._session.add(batch)
        await self._session.commit()
        await self._session.refresh(batch)
        return batch

    async def bulk_insert(self, key_cards: Sequence[KeyCard]) -> None:
        self._session.add_all(list(key_cards))
        await self._session.commit()

    async def atomic_transition(
        self,
        code: str,
        *,
        expected_status: KeyCardStatusEnum,
        values: Mapping[str, Any],
    ) -> bool:
        """Apply ``values`` only if the card is still in ``expected_status``.

        Returns ``False`` when another writer moved the card first. The caller
        owns the commit.
        """

        stmt = (
            update(KeyCard)
            .where(KeyCard.code == code, KeyCard.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1


__all__ = ["BatchSummary", "CredentialedKeyCard", "KeyCardRepository"]
