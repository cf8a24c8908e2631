"""Key card and key card batch persistence models."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from keycard_api.db.base import Base


class KeyCardStatusEnum(str, Enum):
    """Lifecycle states for a key card. ``USED`` is terminal."""

    UNUSED = "unused"
    USED = "used"


class KeyCardBatch(Base):
    """Named group of key cards issued together."""

    __tablename__ = "key_card_batches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(120), nullable=False)
    count = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    key_cards = relationship("KeyCard", back_populates="batch")


class KeyCard(Base):
    """Single-use activation code.

    ``credential``, ``owner_ref``, ``acquired_coupons`` and ``first_use_time`` are
    written together by one conditional update when the card moves to ``USED``.
    """

    __tablename__ = "key_cards"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String(64), nullable=False, unique=True, index=True)
    status = Column(
        SqlEnum(
            KeyCardStatusEnum,
            name="key_card_status",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=KeyCardStatusEnum.UNUSED,
        index=True,
    )
    batch_id = Column(
        UUID(as_uuid=True),
        ForeignKey("key_card_batches.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    credential = Column(String(2048), nullable=True)
    owner_ref = Column(String(255), nullable=True)
    acquired_coupons = Column(JSON(none_as_null=True), nullable=True)
    first_use_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    batch = relationship("KeyCardBatch", back_populates="key_cards")

    @property
    def is_used(self) -> bool:
        return self.status == KeyCardStatusEnum.USED


__all__ = ["KeyCard", "KeyCardBatch", "KeyCardStatusEnum"]
