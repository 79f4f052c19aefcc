"""
Replay policy — what a duplicate does while the first call is still running.

A client that times out on `POST .../complete` and retries with the same
Idempotency-Key lands here: by default it waits for the first response,
a stricter shop answers 409 straight away.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum


class OnPending(Enum):
    WAIT = "wait"  # Poll the store, then replay the first response
    FAIL = "fail"  # Answer CONFLICT without waiting

    @classmethod
    def parse(cls, raw: str) -> OnPending:
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise ValueError(f"Expected one of {[m.value for m in cls]}, got {raw!r}") from None


WAIT = OnPending.WAIT
FAIL = OnPending.FAIL


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Example:
        Policy().with_on_pending(FAIL)
        Policy().with_wait_timeout(seconds=5).with_poll_interval(seconds=0.1)

    `wait_timeout` bounds the whole wait, `poll_interval` the gap between
    store reads. Neither applies under FAIL.
    """

    on_pending: OnPending = OnPending.WAIT
    wait_timeout: timedelta = timedelta(seconds=30)
    poll_interval: timedelta = timedelta(milliseconds=50)

    def with_on_pending(self, on_pending: OnPending) -> Policy:
        return replace(self, on_pending=on_pending)

    def with_wait_timeout(self, *, seconds: float) -> Policy:
        if seconds <= 0:
            raise ValueError("Wait timeout must be positive")
        return replace(self, wait_timeout=timedelta(seconds=seconds))

    def with_poll_interval(self, *, seconds: float) -> Policy:
        if seconds <= 0:
            raise ValueError("Poll interval must be positive")
        return replace(self, poll_interval=timedelta(seconds=seconds))


__all__ = (
    "OnPending",
    "WAIT",
    "FAIL",
    "Policy",
)
