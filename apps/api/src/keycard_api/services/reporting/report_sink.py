from __future__ import annotations

from typing import Protocol

import httpx
from loguru import logger


class ReportSink(Protocol):
    async def send(self, title: str, content: str) -> bool:  # pragma: no cover - protocol
        ...


class WebhookReportSink:
    """Post sweep reports to an operator webhook.

    Delivery failures are logged and reported as ``False``; they never reach
    the caller as exceptions.
    """

    def __init__(
        self,
        url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._url = url
        self._http_client = http_client
        self._timeout_seconds = timeout_seconds

    async def send(self, title: str, content: str) -> bool:
        payload = {
            "title": title,
            "content": content,
            "date": None,
            "time": None,
            "type": None,
        }

        close_client = False
        client = self._http_client
        if client is None:
            client = httpx.AsyncClient(timeout=self._timeout_seconds)
            close_client = True

        try:
            response = await client.post(self._url, json=payload, timeout=self._timeout_seconds)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Sweep report delivery failed", error=str(exc), error_type=type(exc).__name__)
            return False
        finally:
            if close_client:
                await client.aclose()

        logger.info("Sweep report delivered", title=title)
        return True


def build_report_sink(url: str | None, *, http_client: httpx.AsyncClient | None = None, timeout_seconds: float = 10.0) -> WebhookReportSink | None:
    """Return a webhook sink, or ``None`` when no report URL is configured."""

    if not url:
        return None
    return WebhookReportSink(url, http_client=http_client, timeout_seconds=timeout_seconds)


__all__ = ["ReportSink", "WebhookReportSink", "build_report_sink"]
