"""
Replay records and the result of a keyed call.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto


class RecordState(Enum):
    """
    PENDING     key claimed, the operation is running
    COMPLETED   response stored, every later call replays it

    A call that raises, is cancelled or returns Error deletes its PENDING
    record instead.
    """

    PENDING = auto()
    COMPLETED = auto()


@dataclass(frozen=True, slots=True)
class ReplayRecord[T]:
    """One key's entry. Lives until the cache is cleared wholesale."""

    key: str
    state: RecordState
    value: T | None
    created_at: datetime

    @property
    def is_pending(self) -> bool:
        return self.state == RecordState.PENDING

    @property
    def is_completed(self) -> bool:
        return self.state == RecordState.COMPLETED


# ═══════════════════════════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Replayed[T]:
    """A keyed call's response; `from_cache` when the operation did not run."""

    value: T
    from_cache: bool
    key: str


class ReplayErrorKind(Enum):
    CONFLICT = auto()  # Same key in flight (FAIL), or the first call died
    TIMEOUT = auto()  # Gave up waiting for the first call
    STORE = auto()  # Replay store failed
    OPERATION = auto()  # The operation raised or returned Error


@dataclass(frozen=True, slots=True)
class ReplayError[E]:
    """`cause` is the operation's own error (or exception) for OPERATION."""

    kind: ReplayErrorKind
    message: str
    cause: E | Exception | None = None


__all__ = (
    "RecordState",
    "ReplayRecord",
    "Replayed",
    "ReplayError",
    "ReplayErrorKind",
)
