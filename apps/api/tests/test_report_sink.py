from __future__ import annotations

import json

import httpx
import pytest

from keycard_api.services.reporting import WebhookReportSink, build_report_sink

WEBHOOK_URL = "https://reports.test/hook"


@pytest.mark.asyncio
async def test_webhook_sink_posts_report_payload() -> None:
    received: list[dict] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        sink = WebhookReportSink(WEBHOOK_URL, http_client=client)
        delivered = await sink.send("Coupon sweep: 2 key cards acquired coupons", "alice\nbob")

    assert delivered
    assert received == [
        {
            "title": "Coupon sweep: 2 key cards acquired coupons",
            "content": "alice\nbob",
            "date": None,
            "time": None,
            "type": None,
        }
    ]


@pytest.mark.asyncio
async def test_webhook_sink_swallows_delivery_failures() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "down"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        sink = WebhookReportSink(WEBHOOK_URL, http_client=client)
        assert await sink.send("title", "content") is False


def test_build_report_sink_requires_url() -> None:
    assert build_report_sink(None) is None
    assert build_report_sink("") is None
    assert isinstance(build_report_sink(WEBHOOK_URL), WebhookReportSink)
