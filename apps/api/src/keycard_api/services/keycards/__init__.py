"""Key card issuance and activation services."""

from .batches import BatchIntegrityReport, BatchIssuer
from .codes import CODE_ALPHABET, generate_code
from .errors import AcquisitionFailedError, BatchIntegrityError, KeyCardError, KeyCardNotFoundError
from .locks import CodeLockRegistry, get_code_lock_registry
from .repository import BatchSummary, CredentialedKeyCard, KeyCardRepository
from .state_machine import ActivationResult, KeyCardStateMachine

__all__ = [
    "AcquisitionFailedError",
    "ActivationResult",
    "BatchIntegrityError",
    "BatchIntegrityReport",
    "BatchIssuer",
    "BatchSummary",
    "CODE_ALPHABET",
    "CodeLockRegistry",
    "CredentialedKeyCard",
    "KeyCardError",
    "KeyCardNotFoundError",
    "KeyCardRepository",
    "KeyCardStateMachine",
    "generate_code",
    "get_code_lock_registry",
]
