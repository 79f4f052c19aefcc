"""
Replay store — where keyed responses are kept between calls.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import timedelta
from typing import Any, Protocol

import structlog
from kungfu import Result, Ok, Error

from bouquet._types import Clock, utcnow
from bouquet.idempotency._types import RecordState, ReplayRecord
from bouquet.store import StoreError


logger = structlog.get_logger()


class ReplayStore[T](Protocol):
    """
    Key → record. No per-key expiry: `clear` runs on a fixed interval and
    frees every completed key at once, plus claims left pending too long.
    """

    async def get(self, key: str) -> Result[ReplayRecord[T] | None, StoreError]: ...

    async def set_pending(self, key: str) -> Result[bool, StoreError]:
        """Claim the key; Ok(False) when a record already exists."""
        ...

    async def set_completed(self, key: str, value: T) -> Result[None, StoreError]: ...

    async def delete(self, key: str) -> Result[bool, StoreError]: ...

    async def clear(self) -> Result[int, StoreError]:
        """Drop completed records and stale claims; returns how many went."""
        ...


type ReplayStoreAny = ReplayStore[Any]


# ═══════════════════════════════════════════════════════════════════════════════
# Memory
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryReplayStore[T]:
    """
    Single-process replay store.

    Values are handed back as stored, so replies must be immutable for a
    replay to equal the first response.

    A pending claim older than `pending_ttl` belongs to a call that never
    finished; `clear` drops it along with the completed records.
    """

    def __init__(
        self,
        clock: Clock = utcnow,
        *,
        pending_ttl: timedelta = timedelta(minutes=15),
    ) -> None:
        self._records: dict[str, ReplayRecord[T]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._pending_ttl = pending_ttl

    async def get(self, key: str) -> Result[ReplayRecord[T] | None, StoreError]:
        async with self._lock:
            return Ok(self._records.get(key))

    async def set_pending(self, key: str) -> Result[bool, StoreError]:
        async with self._lock:
            if key in self._records:
                return Ok(False)
            self._records[key] = ReplayRecord(key, RecordState.PENDING, None, self._clock())
            return Ok(True)

    async def set_completed(self, key: str, value: T) -> Result[None, StoreError]:
        async with self._lock:
            claimed = self._records.get(key)
            if claimed is None:
                return Error(StoreError(f"Key {key} was never claimed"))
            self._records[key] = replace(claimed, state=RecordState.COMPLETED, value=value)
            return Ok(None)

    async def delete(self, key: str) -> Result[bool, StoreError]:
        async with self._lock:
            return Ok(self._records.pop(key, None) is not None)

    async def clear(self) -> Result[int, StoreError]:
        async with self._lock:
            stale = self._clock() - self._pending_ttl
            done = [
                key
                for key, record in self._records.items()
                if record.is_completed or record.created_at <= stale
            ]
            for key in done:
                del self._records[key]

        if done:
            logger.info("replays_cleared", cleared=len(done))
        return Ok(len(done))

    def __len__(self) -> int:
        return len(self._records)


__all__ = (
    "ReplayStore",
    "ReplayStoreAny",
    "MemoryReplayStore",
)
