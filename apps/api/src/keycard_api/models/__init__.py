"""SQLAlchemy models package."""

from .key_card import KeyCard, KeyCardBatch, KeyCardStatusEnum  # noqa: F401

__all__ = ["KeyCard", "KeyCardBatch", "KeyCardStatusEnum"]
