from __future__ import annotations

from uuid import uuid4

import pytest

from keycard_api.models.key_card import KeyCard, KeyCardStatusEnum
from keycard_api.services.keycards import BatchIntegrityError, BatchIssuer, KeyCardRepository
from keycard_api.services.keycards.codes import CODE_ALPHABET


@pytest.mark.asyncio
async def test_create_batch_issues_unique_unused_codes(session_factory) -> None:
    async with session_factory() as session:
        batch = await BatchIssuer(session).create_batch("spring-promo", 5)

    async with session_factory() as session:
        repository = KeyCardRepository(session)
        key_cards = await repository.list_by_batch(batch.id)
        summaries = await repository.list_batches()

    assert batch.name == "spring-promo"
    assert batch.count == 5
    assert len(key_cards) == 5
    codes = {key_card.code for key_card in key_cards}
    assert len(codes) == 5
    assert all(len(code) == 16 and set(code) <= set(CODE_ALPHABET) for code in codes)
    assert all(key_card.status == KeyCardStatusEnum.UNUSED for key_card in key_cards)
    assert all(key_card.credential is None and key_card.first_use_time is None for key_card in key_cards)
    assert [(summary.batch.id, summary.persisted_count) for summary in summaries] == [(batch.id, 5)]


@pytest.mark.asyncio
async def test_create_batch_validates_input(session_factory) -> None:
    async with session_factory() as session:
        issuer = BatchIssuer(session)
        with pytest.raises(ValueError):
            await issuer.create_batch("  ", 5)
        with pytest.raises(ValueError):
            await issuer.create_batch("empty", 0)

    async with session_factory() as session:
        assert await KeyCardRepository(session).list_batches() == []


@pytest.mark.asyncio
async def test_codes_already_in_store_are_redrawn(session_factory) -> None:
    async with session_factory() as session:
        session.add(KeyCard(code="TAKENTAKENTAKEN1", status=KeyCardStatusEnum.UNUSED))
        await session.commit()

    draws = iter(["TAKENTAKENTAKEN1", "FRESHFRESHFRESH1", "FRESHFRESHFRESH2"])

    async with session_factory() as session:
        issuer = BatchIssuer(session, code_factory=lambda length: next(draws))
        batch = await issuer.create_batch("redraw", 2)

    async with session_factory() as session:
        key_cards = await KeyCardRepository(session).list_by_batch(batch.id)

    assert sorted(key_card.code for key_card in key_cards) == ["FRESHFRESHFRESH1", "FRESHFRESHFRESH2"]


@pytest.mark.asyncio
async def test_unresolvable_collisions_raise_batch_integrity_error(session_factory) -> None:
    async with session_factory() as session:
        issuer = BatchIssuer(session, collision_retries=2, code_factory=lambda length: "SAMESAMESAMESAME")
        with pytest.raises(BatchIntegrityError) as exc_info:
            await issuer.create_batch("doomed", 3)

    error = exc_info.value
    assert error.requested == 3
    assert error.persisted == 0
    assert error.batch.name == "doomed"

    async with session_factory() as session:
        report = await BatchIssuer(session).audit_batch(error.batch.id)

    assert report is not None
    assert not report.is_consistent
    assert report.missing == 3


@pytest.mark.asyncio
async def test_audit_reports_consistent_batch(session_factory) -> None:
    async with session_factory() as session:
        batch = await BatchIssuer(session).create_batch("audited", 4)

    async with session_factory() as session:
        issuer = BatchIssuer(session)
        report = await issuer.audit_batch(batch.id)
        missing = await issuer.audit_batch(uuid4())

    assert report is not None
    assert report.is_consistent
    assert report.persisted == 4
    assert missing is None
