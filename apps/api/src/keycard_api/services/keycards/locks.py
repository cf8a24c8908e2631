"""Per-code mutual exclusion for activations."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class CodeLockRegistry:
    """Hand out one ``asyncio.Lock`` per key card code.

    Locks are created on demand and discarded once nobody holds or waits on
    them, so the registry only grows with in-flight activations.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, code: str) -> AsyncIterator[None]:
        lock = self._locks.get(code)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[code] = lock
        self._holders[code] = self._holders.get(code, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._holders[code] - 1
            if remaining:
                self._holders[code] = remaining
            else:
                del self._holders[code]
                del self._locks[code]

    def __len__(self) -> int:
        return len(self._locks)


_REGISTRY = CodeLockRegistry()


def get_code_lock_registry() -> CodeLockRegistry:
    return _REGISTRY


__all__ = ["CodeLockRegistry", "get_code_lock_registry"]
