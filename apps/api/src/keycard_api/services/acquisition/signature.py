"""Signature provider collaborator.

The upstream platform rejects grab requests without an anti-abuse fingerprint.
The fingerprint is produced by an external signing service; this module only
knows its request/response contract.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

import httpx


class SignatureError(RuntimeError):
    """Raised when a fingerprint cannot be obtained."""


@dataclass(frozen=True, slots=True)
class SignedFingerprint:
    token: str
    headers: Mapping[str, str] = field(default_factory=dict)


class SignatureProvider(Protocol):
    async def sign(self, target: str) -> SignedFingerprint:  # pragma: no cover - protocol
        ...


class HttpSignatureProvider:
    """Fetch fingerprints from the signing service over HTTP."""

    def __init__(
        self,
        url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._url = url
        self._http_client = http_client
        self._timeout_seconds = timeout_seconds

    async def sign(self, target: str) -> SignedFingerprint:
        client = self._http_client or httpx.AsyncClient(timeout=self._timeout_seconds)
        owns_client = self._http_client is None
        try:
            response = await client.post(self._url, json={"target": target}, timeout=self._timeout_seconds)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise SignatureError(f"Signing service request failed: {exc}") from exc
        except ValueError as exc:
            raise SignatureError("Signing service returned a non-JSON body") from exc
        finally:
            if owns_client:
                await client.aclose()
        return _parse_signature(body)


def _parse_signature(body: Any) -> SignedFingerprint:
    if not isinstance(body, Mapping):
        raise SignatureError("Signing service returned an unexpected payload")
    token = body.get("fingerprint")
    if not isinstance(token, str) or not token:
        raise SignatureError("Signing service response is missing a fingerprint")
    raw_headers = body.get("headers")
    headers: dict[str, str] = {}
    if isinstance(raw_headers, Mapping):
        headers = {str(key): str(value) for key, value in raw_headers.items() if value is not None}
    return SignedFingerprint(token=token, headers=headers)


__all__ = ["HttpSignatureProvider", "SignatureError", "SignatureProvider", "SignedFingerprint"]
