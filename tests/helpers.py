"""Test doubles and small builders shared across test modules."""

from contextlib import AbstractAsyncContextManager
from datetime import datetime, timedelta, timezone
from typing import Any

from kungfu import Result, Ok, Error

from bouquet.checkout import (
    BuyerInput,
    CheckoutEngine,
    CreateCheckout,
    LineItemInput,
    Session,
    Snapshot,
)
from bouquet.store import KeyedLocks, StoreError


START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

BUYER = BuyerInput(email="a@b.com", full_name="A B")


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class BrokenStore:
    """Session store whose back-end is down for every call."""

    def __init__(self) -> None:
        self._keys = KeyedLocks()
        self.error = StoreError("database unavailable", ConnectionError("refused"))

    def locked(self, key: str) -> AbstractAsyncContextManager[None]:
        return self._keys.hold(key)

    async def get(self, key: str) -> Result[Any, StoreError]:
        return Error(self.error)

    async def put(self, key: str, value: Any) -> Result[None, StoreError]:
        return Error(self.error)

    async def delete(self, key: str) -> Result[bool, StoreError]:
        return Error(self.error)

    async def sweep(self, now: datetime) -> Result[int, StoreError]:
        return Error(self.error)


def items(*pairs: tuple[object, object]) -> tuple[LineItemInput, ...]:
    """`items(("1", 12), ("2", 1))` → line item inputs."""
    return tuple(LineItemInput(product_id, quantity) for product_id, quantity in pairs)


async def unwrap_ok(lazy: Any) -> Any:
    match await lazy:
        case Ok(value):
            return value
        case Error(err):
            raise AssertionError(f"expected Ok, got Error({err!r})")


async def new_session(engine: CheckoutEngine, **kwargs: Any) -> Session:
    """Create a session, failing the test on anything but a snapshot."""
    reply = await unwrap_ok(engine.create(CreateCheckout(**kwargs)))
    assert isinstance(reply, Snapshot), reply
    return reply.session
