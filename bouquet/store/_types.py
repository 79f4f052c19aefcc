"""
Session store types.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from kungfu import Result


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol — Typed, Result-based
# ═══════════════════════════════════════════════════════════════════════════════


class Expiring(Protocol):
    """Anything with a fixed expiry time."""

    @property
    def expires_at(self) -> datetime: ...


class SessionStore[T: Expiring](Protocol):
    """
    Keyed session storage.

    Note: All methods return Result, a failing back-end never raises into
    the engine. `get` returns expired records as-is; deciding what an
    expired record means is the caller's job, `sweep` is the store's.

    Per-key exclusivity:

        async with store.locked(checkout_id):
            current = await store.get(checkout_id)
            ...
            await store.put(checkout_id, updated)

    `sweep` takes the same per-key lock before evicting, so it never
    interleaves with an in-flight read/modify/write of that session.
    """

    def locked(self, key: str) -> AbstractAsyncContextManager[None]:
        """Exclusive section for one key."""
        ...

    async def get(self, key: str) -> Result[T | None, StoreError]:
        """Returns Ok(None) if not found."""
        ...

    async def put(self, key: str, value: T) -> Result[None, StoreError]:
        """Insert or replace."""
        ...

    async def delete(self, key: str) -> Result[bool, StoreError]:
        """Returns Ok(True) if the key existed."""
        ...

    async def sweep(self, now: datetime) -> Result[int, StoreError]:
        """Evict every record with `now > expires_at`; returns how many."""
        ...


__all__ = (
    "StoreError",
    "Expiring",
    "SessionStore",
)
