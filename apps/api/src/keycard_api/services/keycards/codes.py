"""Random key card code generation."""

from __future__ import annotations

import secrets
import string

CODE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
DEFAULT_CODE_LENGTH = 16


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Return ``length`` alphanumeric characters from a CSPRNG.

    Bytes are folded onto the 62-symbol alphabet with ``byte % 62``; the slight
    bias towards the first symbols is accepted. Uniqueness is not guaranteed
    here, the store's unique constraint decides.
    """

    if length < 1:
        raise ValueError("Code length must be at least 1")
    raw = secrets.token_bytes(length)
    return "".join(CODE_ALPHABET[byte % len(CODE_ALPHABET)] for byte in raw)


__all__ = ["CODE_ALPHABET", "DEFAULT_CODE_LENGTH", "generate_code"]
