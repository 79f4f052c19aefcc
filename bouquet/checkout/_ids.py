"""
Identifiers — engine-owned monotonic sequences.

Each engine gets its own IdSource, so two engines in one process (or one
test) never share a counter.
"""

from __future__ import annotations

import itertools
from datetime import datetime
from typing import Protocol


class IdSource(Protocol):
    def line_item_id(self, now: datetime) -> str: ...

    def checkout_id(self, now: datetime) -> str: ...

    def order_id(self, now: datetime) -> str: ...


class MonotonicIds:
    """
    Counter-backed ids with a millisecond timestamp for readability.

        li_1_1767225600000
        chk_1767225600000_1
        ORD_1767225600000_1

    Note: Uniqueness comes from the counters, the timestamp is decoration.
    """

    def __init__(self, start: int = 1) -> None:
        self._line_items = itertools.count(start)
        self._checkouts = itertools.count(start)
        self._orders = itertools.count(start)

    def line_item_id(self, now: datetime) -> str:
        return f"li_{next(self._line_items)}_{_millis(now)}"

    def checkout_id(self, now: datetime) -> str:
        return f"chk_{_millis(now)}_{next(self._checkouts)}"

    def order_id(self, now: datetime) -> str:
        return f"ORD_{_millis(now)}_{next(self._orders)}"


def _millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


__all__ = ("IdSource", "MonotonicIds")
