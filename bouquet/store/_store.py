"""
In-memory session store.
"""

from __future__ import annotations

import asyncio
from contextlib import AbstractAsyncContextManager
from datetime import datetime

import structlog
from kungfu import Result, Ok

from bouquet.store._locks import KeyedLocks
from bouquet.store._types import Expiring, StoreError


logger = structlog.get_logger()


class MemoryStore[T: Expiring]:
    """
    In-memory session store.

    Note: Single process only, nothing survives a restart.
    """

    def __init__(self) -> None:
        self._records: dict[str, T] = {}
        self._lock = asyncio.Lock()
        self._keys = KeyedLocks()

    def locked(self, key: str) -> AbstractAsyncContextManager[None]:
        return self._keys.hold(key)

    async def get(self, key: str) -> Result[T | None, StoreError]:
        async with self._lock:
            return Ok(self._records.get(key))

    async def put(self, key: str, value: T) -> Result[None, StoreError]:
        async with self._lock:
            self._records[key] = value
            return Ok(None)

    async def delete(self, key: str) -> Result[bool, StoreError]:
        async with self._lock:
            return Ok(self._records.pop(key, None) is not None)

    async def sweep(self, now: datetime) -> Result[int, StoreError]:
        async with self._lock:
            candidates = [key for key, value in self._records.items() if now > value.expires_at]

        removed = 0
        for key in candidates:
            async with self._keys.hold(key):
                async with self._lock:
                    # may have been replaced or evicted while we waited
                    value = self._records.get(key)
                    if value is not None and now > value.expires_at:
                        del self._records[key]
                        removed += 1

        if removed:
            logger.info("sessions_swept", removed=removed, store="memory")
        return Ok(removed)

    def __len__(self) -> int:
        return len(self._records)


__all__ = ("MemoryStore",)
