"""Shared fixtures: a movable clock, the flower shop and a fresh engine per test."""

from typing import Any

import pytest

from bouquet.catalog import StaticCatalog, flower_shop
from bouquet.checkout import CheckoutEngine, Session
from bouquet.idempotency import MemoryReplayStore
from bouquet.store import MemoryStore

from tests.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog() -> StaticCatalog:
    return flower_shop()


@pytest.fixture
def sessions() -> MemoryStore[Session]:
    return MemoryStore[Session]()


@pytest.fixture
def replays(clock: FakeClock) -> MemoryReplayStore[Any]:
    return MemoryReplayStore(clock)


@pytest.fixture
def engine(
    catalog: StaticCatalog,
    sessions: MemoryStore[Session],
    replays: MemoryReplayStore[Any],
    clock: FakeClock,
) -> CheckoutEngine:
    return CheckoutEngine(catalog, sessions, replays, clock=clock)
