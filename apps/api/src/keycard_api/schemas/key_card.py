from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

KeyCardStatus = Literal["unused", "used"]


def _to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=_to_camel)


class CouponResponse(_CamelModel):
    text: str
    tag: str
    user: str


class ActivationRequest(_CamelModel):
    """Bearer credential used to acquire coupons on first activation."""

    credential: str = Field(..., min_length=1, max_length=2048)
    owner_ref: str | None = Field(default=None, max_length=255)

    @field_validator("credential")
    @classmethod
    def _strip_credential(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("credential must not be blank")
        return cleaned

    @field_validator("owner_ref")
    @classmethod
    def _blank_owner_is_unset(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None


class ActivationResponse(_CamelModel):
    code: str
    status: KeyCardStatus
    replayed: bool
    first_use_time: datetime | None = None
    coupons: list[CouponResponse] = Field(default_factory=list)


class KeyCardResponse(_CamelModel):
    id: UUID
    code: str
    status: KeyCardStatus
    batch_id: UUID | None = None
    owner_ref: str | None = None
    first_use_time: datetime | None = None
    created_at: datetime | None = None


class BatchCreateRequest(_CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    count: int = Field(..., ge=1, le=100_000)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name must not be blank")
        return cleaned


class BatchResponse(_CamelModel):
    id: UUID
    name: str
    count: int
    persisted_count: int
    created_at: datetime | None = None


class BatchIntegrityResponse(_CamelModel):
    batch: BatchResponse
    requested: int
    persisted: int
    missing: int
    consistent: bool
    detail: str | None = None


__all__ = [
    "ActivationRequest",
    "ActivationResponse",
    "BatchCreateRequest",
    "BatchIntegrityResponse",
    "BatchResponse",
    "CouponResponse",
    "KeyCardResponse",
]
