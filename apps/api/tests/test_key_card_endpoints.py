from __future__ import annotations

from functools import partial

import pytest
from httpx import ASGITransport, AsyncClient

from keycard_api.api.dependencies.acquisition import get_acquisition_orchestrator
from keycard_api.api.v1.endpoints import key_cards as key_card_endpoints
from keycard_api.core.settings import settings
from keycard_api.domain.coupons import Coupon
from keycard_api.services.acquisition.orchestrator import AcquisitionResult
from keycard_api.services.keycards import BatchIssuer


class QueueOrchestrator:
    def __init__(self, *results: list[Coupon]) -> None:
        self._results = list(results)
        self.calls: list[str] = []

    async def acquire_all(self, credential: str) -> AcquisitionResult:
        self.calls.append(credential)
        coupons = self._results.pop(0) if self._results else []
        return AcquisitionResult(coupons=list(coupons))


def _coupon(text: str) -> Coupon:
    return Coupon(display_text=text, tag="text-green-600", owner_mask="138****1234")


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def _issue_batch(client: AsyncClient, name: str = "spring-promo", count: int = 5) -> dict:
    response = await client.post("/api/v1/key-cards/batches", json={"name": name, "count": count})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_batch_administration_flow(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        batch = await _issue_batch(client)
        assert batch["name"] == "spring-promo"
        assert batch["count"] == 5
        assert batch["persistedCount"] == 5

        listing = await client.get("/api/v1/key-cards/batches")
        assert listing.status_code == 200
        assert [item["id"] for item in listing.json()] == [batch["id"]]

        cards = await client.get(f"/api/v1/key-cards/batches/{batch['id']}/key-cards")
        assert cards.status_code == 200
        payload = cards.json()
        assert len(payload) == 5
        assert len({card["code"] for card in payload}) == 5
        assert all(len(card["code"]) == 16 and card["status"] == "unused" for card in payload)
        assert all("credential" not in card for card in payload)

        integrity = await client.get(f"/api/v1/key-cards/batches/{batch['id']}/integrity")
        assert integrity.status_code == 200
        assert integrity.json()["consistent"] is True

        unused = await client.get("/api/v1/key-cards/status/unused")
        assert len(unused.json()) == 5

        invalid = await client.post("/api/v1/key-cards/batches", json={"name": "bad", "count": 0})
        assert invalid.status_code == 422
        unknown_batch = await client.get(
            "/api/v1/key-cards/batches/00000000-0000-0000-0000-000000000000/key-cards"
        )
        assert unknown_batch.status_code == 404


@pytest.mark.asyncio
async def test_activation_flow_and_replay(app_with_db) -> None:
    app, _ = app_with_db
    orchestrator = QueueOrchestrator([_coupon("A|20-5"), _coupon("B|30-6")])
    app.dependency_overrides[get_acquisition_orchestrator] = lambda: orchestrator

    async with _client(app) as client:
        batch = await _issue_batch(client, count=1)
        cards = (await client.get(f"/api/v1/key-cards/batches/{batch['id']}/key-cards")).json()
        code = cards[0]["code"]

        first = await client.post(
            "/api/v1/key-cards/activate",
            headers={"X-Key-Card": code},
            json={"credential": "token-abc", "ownerRef": "alice"},
        )
        assert first.status_code == 200, first.text
        body = first.json()
        assert body["code"] == code
        assert body["status"] == "used"
        assert body["replayed"] is False
        assert body["firstUseTime"] is not None
        assert body["coupons"] == [
            {"text": "A|20-5", "tag": "text-green-600", "user": "138****1234"},
            {"text": "B|30-6", "tag": "text-green-600", "user": "138****1234"},
        ]

        second = await client.post(
            "/api/v1/key-cards/activate",
            headers={"X-Key-Card": code},
            json={"credential": "someone-else"},
        )
        assert second.status_code == 200
        assert second.json()["replayed"] is True
        assert second.json()["coupons"] == body["coupons"]
        assert orchestrator.calls == ["token-abc"]

        info = await client.get("/api/v1/key-cards/info", params={"code": code})
        assert info.status_code == 200
        assert info.json()["status"] == "used"
        assert info.json()["ownerRef"] == "alice"

        used = await client.get("/api/v1/key-cards/status/used")
        assert [card["code"] for card in used.json()] == [code]


@pytest.mark.asyncio
async def test_activation_errors(app_with_db) -> None:
    app, _ = app_with_db
    orchestrator = QueueOrchestrator([])
    app.dependency_overrides[get_acquisition_orchestrator] = lambda: orchestrator

    async with _client(app) as client:
        missing = await client.post(
            "/api/v1/key-cards/activate",
            headers={"X-Key-Card": "NOPE000000000000"},
            json={"credential": "token"},
        )
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Key card not found"

        batch = await _issue_batch(client, count=1)
        code = (await client.get(f"/api/v1/key-cards/batches/{batch['id']}/key-cards")).json()[0]["code"]

        failed = await client.post(
            "/api/v1/key-cards/activate",
            headers={"X-Key-Card": code},
            json={"credential": "token"},
        )
        assert failed.status_code == 503
        assert failed.json()["detail"] == "Coupon acquisition failed, please retry later"

        info = await client.get("/api/v1/key-cards/info", params={"code": code})
        assert info.json()["status"] == "unused"
        assert info.json()["firstUseTime"] is None

        no_header = await client.post("/api/v1/key-cards/activate", json={"credential": "token"})
        assert no_header.status_code == 422
        blank = await client.post(
            "/api/v1/key-cards/activate",
            headers={"X-Key-Card": code},
            json={"credential": "   "},
        )
        assert blank.status_code == 422

        bad_status = await client.get("/api/v1/key-cards/status/expired")
        assert bad_status.status_code == 422
        unknown = await client.get("/api/v1/key-cards/info", params={"code": "NOPE000000000000"})
        assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_activation_unavailable_without_orchestrator(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        response = await client.post(
            "/api/v1/key-cards/activate",
            headers={"X-Key-Card": "ANY0000000000000"},
            json={"credential": "token"},
        )

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_batch_integrity_failure_returns_multi_status(app_with_db, monkeypatch) -> None:
    app, _ = app_with_db
    monkeypatch.setattr(
        key_card_endpoints,
        "BatchIssuer",
        partial(BatchIssuer, code_factory=lambda length: "COLLIDECOLLIDE00"),
    )

    async with _client(app) as client:
        response = await client.post("/api/v1/key-cards/batches", json={"name": "collide", "count": 3})

    assert response.status_code == 207
    body = response.json()
    assert body["requested"] == 3
    assert body["persisted"] == 0
    assert body["missing"] == 3
    assert body["consistent"] is False
    assert body["batch"]["persistedCount"] == 0


@pytest.mark.asyncio
async def test_admin_endpoints_require_api_key_when_configured(app_with_db, monkeypatch) -> None:
    app, _ = app_with_db
    monkeypatch.setattr(settings, "admin_api_key", "secret")

    async with _client(app) as client:
        denied = await client.post("/api/v1/key-cards/batches", json={"name": "locked", "count": 1})
        assert denied.status_code == 401
        listing = await client.get("/api/v1/key-cards/batches")
        assert listing.status_code == 401

        allowed = await client.post(
            "/api/v1/key-cards/batches",
            json={"name": "locked", "count": 1},
            headers={"X-API-Key": "secret"},
        )
        assert allowed.status_code == 201
