"""Key card engine exceptions."""

from __future__ import annotations

from keycard_api.models.key_card import KeyCardBatch


class KeyCardError(RuntimeError):
    """Base exception for key card failures."""


class KeyCardNotFoundError(KeyCardError):
    """Raised when a code does not exist in the store."""

    def __init__(self, code: str) -> None:
        super().__init__("Key card not found")
        self.code = code


class AcquisitionFailedError(KeyCardError):
    """Raised when no campaign source produced a coupon. The card stays unused."""

    def __init__(self, code: str) -> None:
        super().__init__("Coupon acquisition failed, please retry later")
        self.code = code


class BatchIntegrityError(KeyCardError):
    """Raised when a batch was recorded but not all of its key cards were persisted."""

    def __init__(self, batch: KeyCardBatch, *, requested: int, persisted: int) -> None:
        super().__init__(
            f"Batch {batch.id} requested {requested} key cards but only {persisted} were persisted"
        )
        self.batch = batch
        self.requested = requested
        self.persisted = persisted


__all__ = [
    "AcquisitionFailedError",
    "BatchIntegrityError",
    "KeyCardError",
    "KeyCardNotFoundError",
]
