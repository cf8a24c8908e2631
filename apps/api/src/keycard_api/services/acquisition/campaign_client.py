"""Client for a single upstream coupon campaign."""

from __future__ import annotations

import asyncio
import random
from typing import Any

import httpx
from loguru import logger

from keycard_api.domain.campaigns import CampaignSource
from keycard_api.domain.coupons import (
    AcquisitionAttempt,
    AcquisitionOutcome,
    Coupon,
    GrabResponse,
    parse_grab_response,
)

from .retry import RetryDecision, RetryPolicy
from .signature import SignatureError, SignatureProvider


def credential_cookie(credential: str) -> str:
    """Render the credential as the ``token`` cookie expected upstream."""

    cleaned = credential.strip()
    return cleaned if cleaned.startswith("token=") else f"token={cleaned}"


class CampaignClient:
    """Acquire coupons from one campaign source within a retry budget.

    ``attempt`` never raises for upstream problems: signature failures,
    transport errors, timeouts, error statuses and unparseable bodies all count
    as retryable failures and an exhausted budget resolves to an empty result.
    """

    def __init__(
        self,
        source: CampaignSource,
        *,
        signer: SignatureProvider,
        http_client: httpx.AsyncClient,
        retry_policy: RetryPolicy | None = None,
        request_timeout_seconds: float = 10.0,
        signature_timeout_seconds: float = 5.0,
        rng: random.Random | None = None,
    ) -> None:
        self.source = source
        self._signer = signer
        self._http_client = http_client
        self._retry_policy = retry_policy or RetryPolicy()
        self._request_timeout_seconds = request_timeout_seconds
        self._signature_timeout_seconds = signature_timeout_seconds
        self._rng = rng or random.Random()

    @property
    def source_id(self) -> str:
        return self.source.id

    async def acquire(self, credential: str) -> list[Coupon]:
        attempt = await self.attempt(credential)
        return list(attempt.coupons)

    async def attempt(self, credential: str) -> AcquisitionAttempt:
        attempt_number = 0
        while True:
            attempt_number += 1
            response = await self._attempt_once(credential, attempt_number)
            decision = self._retry_policy.decide(attempt_number, response.outcome)

            if decision is RetryDecision.SUCCEED:
                return AcquisitionAttempt(
                    source=self.source_id,
                    retries_used=attempt_number - 1,
                    outcome=AcquisitionOutcome.SUCCESS,
                    coupons=list(response.coupons),
                )
            if decision is RetryDecision.GIVE_UP:
                logger.info(
                    "Campaign acquisition exhausted retries",
                    source=self.source_id,
                    attempts=attempt_number,
                    outcome=response.outcome.value,
                )
                return AcquisitionAttempt(
                    source=self.source_id,
                    retries_used=attempt_number - 1,
                    outcome=response.outcome,
                    coupons=[],
                )

            delay = self._retry_policy.backoff_for(attempt_number, rng=self._rng)
            if delay:
                await asyncio.sleep(delay)

    async def _attempt_once(self, credential: str, attempt_number: int) -> GrabResponse:
        activity_url = self._rng.choice(self.source.activity_urls)
        try:
            signature = await asyncio.wait_for(
                self._signer.sign(activity_url),
                timeout=self._signature_timeout_seconds,
            )
            headers = {
                **self.source.headers,
                **dict(signature.headers),
                "Cookie": credential_cookie(credential),
            }
            if self.source.login_url:
                await self._http_client.post(
                    self.source.login_url,
                    headers=headers,
                    timeout=self._request_timeout_seconds,
                )
            response = await self._http_client.post(
                self.source.acquisition_url,
                json=self.source.build_payload(signature.token),
                headers=headers,
                timeout=self._request_timeout_seconds,
            )
            response.raise_for_status()
            body: Any = response.json()
        except asyncio.TimeoutError:
            logger.warning(
                "Campaign signature request timed out",
                source=self.source_id,
                attempt=attempt_number,
            )
            return GrabResponse(outcome=AcquisitionOutcome.FAILED)
        except SignatureError as exc:
            logger.warning(
                "Campaign signature unavailable",
                source=self.source_id,
                attempt=attempt_number,
                error=str(exc),
            )
            return GrabResponse(outcome=AcquisitionOutcome.FAILED)
        except httpx.HTTPError as exc:
            logger.warning(
                "Campaign request failed",
                source=self.source_id,
                attempt=attempt_number,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return GrabResponse(outcome=AcquisitionOutcome.FAILED)
        except ValueError:
            logger.warning(
                "Campaign response was not valid JSON",
                source=self.source_id,
                attempt=attempt_number,
            )
            return GrabResponse(outcome=AcquisitionOutcome.FAILED)
        except Exception as exc:
            logger.exception(
                "Campaign attempt raised unexpectedly",
                source=self.source_id,
                attempt=attempt_number,
                error=str(exc),
            )
            return GrabResponse(outcome=AcquisitionOutcome.FAILED)

        result =parse_grab_response(body, jumppage_type=self.source.jumppage_type, tag=self.source.tag)
        if result.outcome is not AcquisitionOutcome.SUCCESS:
            logger.debug(
                "Campaign attempt yielded no coupons",
                source=self.source_id,
                attempt=attempt_number,
                outcome=result.outcome.value,
                upstream_code=result.upstream_code,
            )
        return result


__all__ = ["CampaignClient", "credential_cookie"]
