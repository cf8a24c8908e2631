"""Coupon value objects and parsing of upstream grab responses.

Upstream payloads are untrusted JSON. Every helper here returns ``None`` (or an
empty list) for shapes it does not recognise instead of raising, so a single
malformed record can never fail an acquisition.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

OWNER_MASK_PATTERN = re.compile(r"\d{3}\*{4}\d{4}")
_DIGITS_PATTERN = re.compile(r"\d+")

DEFAULT_COUPON_TAG = "text-green-600"


@dataclass(frozen=True, slots=True)
class Coupon:
    """Display-ready coupon acquired for a key card bearer."""

    display_text: str
    tag: str
    owner_mask: str

    def as_payload(self) -> dict[str, str]:
        return {"text": self.display_text, "tag": self.tag, "user": self.owner_mask}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Coupon | None":
        text = payload.get("text")
        tag = payload.get("tag")
        user = payload.get("user")
        if not isinstance(text, str) or not isinstance(tag, str) or not isinstance(user, str):
            return None
        return cls(display_text=text, tag=tag, owner_mask=user)


class AcquisitionOutcome(str, Enum):
    """Result classification of one campaign acquisition attempt."""

    SUCCESS = "success"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class GrabResponse:
    """Classified upstream response."""

    outcome: AcquisitionOutcome
    coupons: tuple[Coupon, ...] = ()
    upstream_code: Any = None


@dataclass(slots=True)
class AcquisitionAttempt:
    """Per-source summary of an acquisition including retries consumed."""

    source: str
    retries_used: int
    outcome: AcquisitionOutcome
    coupons: list[Coupon] = field(default_factory=list)


def parse_coupon(record: Any, *, jumppage_type: int, tag: str = DEFAULT_COUPON_TAG) -> Coupon | None:
    """Convert one ``allCoupons`` record into a :class:`Coupon`.

    Returns ``None`` when the record belongs to another category or does not
    match the expected shape.
    """

    if not isinstance(record, Mapping):
        return None
    if record.get("jumppageType") != jumppage_type:
        return None

    name = record.get("couponName")
    amount_limit = record.get("amountLimit")
    amount = record.get("couponAmount")
    use_condition = record.get("useCondition")
    if not isinstance(name, str) or not name.strip():
        return None
    if not isinstance(use_condition, str):
        return None
    if isinstance(amount, bool) or not isinstance(amount, (str, int, float)):
        return None

    owner = OWNER_MASK_PATTERN.search(use_condition)
    if owner is None:
        return None
    threshold = _DIGITS_PATTERN.search(str(amount_limit)) if isinstance(amount_limit, (str, int)) else None
    if threshold is None:
        return None

    return Coupon(
        display_text=f"{name.strip()}|{threshold.group(0)}-{amount}",
        tag=tag,
        owner_mask=owner.group(0),
    )


def parse_grab_response(
    body: Any,
    *,
    jumppage_type: int,
    tag: str = DEFAULT_COUPON_TAG,
) -> GrabResponse:
    """Classify a decoded grab response body."""

    if not isinstance(body, Mapping):
        return GrabResponse(outcome=AcquisitionOutcome.FAILED)
    code = body.get("code")
    if code != 0 or isinstance(code, bool):
        return GrabResponse(outcome=AcquisitionOutcome.FAILED, upstream_code=code)

    data = body.get("data")
    records = data.get("allCoupons") if isinstance(data, Mapping) else None
    if not isinstance(records, list):
        return GrabResponse(outcome=AcquisitionOutcome.EMPTY, upstream_code=code)

    coupons = tuple(
        coupon
        for coupon in (parse_coupon(record, jumppage_type=jumppage_type, tag=tag) for record in records)
        if coupon is not None
    )
    if not coupons:
        return GrabResponse(outcome=AcquisitionOutcome.EMPTY, upstream_code=code)
    return GrabResponse(outcome=AcquisitionOutcome.SUCCESS, coupons=coupons, upstream_code=code)


def serialize_coupons(coupons: Sequence[Coupon]) -> list[dict[str, str]]:
    return [coupon.as_payload() for coupon in coupons]


def deserialize_coupons(payload: Any) -> list[Coupon]:
    if not isinstance(payload, list):
        return []
    coupons: list[Coupon] = []
    for item in payload:
        if not isinstance(item, Mapping):
            continue
        coupon = Coupon.from_payload(item)
        if coupon is not None:
            coupons.append(coupon)
    return coupons


__all__ = [
    "AcquisitionAttempt",
    "AcquisitionOutcome",
    "Coupon",
    "DEFAULT_COUPON_TAG",
    "GrabResponse",
    "OWNER_MASK_PATTERN",
    "deserialize_coupons",
    "parse_coupon",
    "parse_grab_response",
    "serialize_coupons",
]
