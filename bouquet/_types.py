"""
Shared time source.

Engines, stores and the replay cache take a `Clock` so tests can move time
without sleeping.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone


type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


__all__ = (
    "Clock",
    "utcnow",
)
