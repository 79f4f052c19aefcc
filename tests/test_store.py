"""Session stores: memory and SQL, per-key locks, expiry sweep."""

import asyncio
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest
from kungfu import Ok, Error
from pydantic import TypeAdapter
from sqlalchemy import text
from structlog.testing import capture_logs

from bouquet.checkout import Buyer, LineItem, Order, Session, Status, compute_totals
from bouquet.store import KeyedLocks, MemoryStore, SQLAlchemyStore, create_database

from tests.helpers import START


def session(checkout_id: str, *, ttl: timedelta = timedelta(hours=6)) -> Session:
    items = (LineItem("li_1", "1", "Red Roses", 299, 2),)
    return Session(
        id=checkout_id,
        line_items=items,
        buyer=Buyer("a@b.com", "A B"),
        currency="USD",
        totals=compute_totals(items, Decimal("0.08"), "Tax (8%)"),
        messages=(),
        status=Status.READY_FOR_COMPLETE,
        created_at=START,
        expires_at=START + ttl,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Keyed locks
# ═══════════════════════════════════════════════════════════════════════════════


async def test_same_key_is_exclusive() -> None:
    locks = KeyedLocks()
    order: list[str] = []

    async def worker(name: str) -> None:
        async with locks.hold("chk_1"):
            order.append(f"{name}:in")
            await asyncio.sleep(0.01)
            order.append(f"{name}:out")

    await asyncio.gather(worker("a"), worker("b"))

    assert order in (["a:in", "a:out", "b:in", "b:out"], ["b:in", "b:out", "a:in", "a:out"])


async def test_different_keys_do_not_block() -> None:
    locks = KeyedLocks()

    async with locks.hold("chk_1"):
        async with asyncio.timeout(1):
            async with locks.hold("chk_2"):
                assert locks.is_held("chk_1")
                assert locks.is_held("chk_2")


async def test_entries_are_released() -> None:
    locks = KeyedLocks()

    async with locks.hold("chk_1"):
        assert len(locks) == 1

    assert len(locks) == 0
    assert not locks.is_held("chk_1")


# ═══════════════════════════════════════════════════════════════════════════════
# Memory store
# ═══════════════════════════════════════════════════════════════════════════════


async def test_memory_crud() -> None:
    store = MemoryStore[Session]()

    assert await store.get("chk_1") == Ok(None)
    assert await store.put("chk_1", session("chk_1")) == Ok(None)
    assert await store.get("chk_1") == Ok(session("chk_1"))
    assert await store.delete("chk_1") == Ok(True)
    assert await store.delete("chk_1") == Ok(False)


async def test_memory_sweep_removes_only_expired() -> None:
    store = MemoryStore[Session]()
    await store.put("old", session("old", ttl=timedelta(hours=1)))
    await store.put("new", session("new", ttl=timedelta(hours=6)))

    with capture_logs() as logs:
        removed = await store.sweep(START + timedelta(hours=2))

    assert removed == Ok(1)
    assert await store.get("old") == Ok(None)
    assert await store.get("new") == Ok(session("new"))
    assert logs[0]["event"] == "sessions_swept"


async def test_sweep_at_exact_expiry_keeps_session() -> None:
    store = MemoryStore[Session]()
    await store.put("chk_1", session("chk_1"))

    assert await store.sweep(START + timedelta(hours=6)) == Ok(0)


async def test_sweep_waits_for_the_session_lock() -> None:
    store = MemoryStore[Session]()
    await store.put("chk_1", session("chk_1", ttl=timedelta(hours=1)))
    later = START + timedelta(hours=2)

    async with store.locked("chk_1"):
        sweep = asyncio.create_task(store.sweep(later))
        await asyncio.sleep(0.01)
        assert not sweep.done()
        # the holder extends the session before letting go
        await store.put("chk_1", session("chk_1", ttl=timedelta(hours=12)))

    assert await sweep == Ok(0)
    assert len(store) == 1


# ═══════════════════════════════════════════════════════════════════════════════
# SQL store
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
async def sql_store(tmp_path):
    session_factory, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}")
    yield SQLAlchemyStore(session_factory, TypeAdapter(Session))
    await engine.dispose()


async def test_sql_round_trips_a_session(sql_store) -> None:
    stored = session("chk_1")
    completed = replace(stored, status=Status.COMPLETED, order=Order("ORD_1", "http://x/orders/ORD_1"))

    await sql_store.put("chk_1", stored)
    assert await sql_store.get("chk_1") == Ok(stored)

    await sql_store.put("chk_1", completed)
    assert await sql_store.get("chk_1") == Ok(completed)


async def test_sql_delete_and_missing(sql_store) -> None:
    assert await sql_store.get("nope") == Ok(None)
    await sql_store.put("chk_1", session("chk_1"))

    assert await sql_store.delete("chk_1") == Ok(True)
    assert await sql_store.delete("chk_1") == Ok(False)


async def test_sql_sweep(sql_store) -> None:
    await sql_store.put("old", session("old", ttl=timedelta(hours=1)))
    await sql_store.put("new", session("new"))

    assert await sql_store.sweep(START + timedelta(hours=2)) == Ok(1)
    assert await sql_store.get("old") == Ok(None)
    assert await sql_store.get("new") == Ok(session("new"))


async def test_sql_failures_become_store_errors(tmp_path) -> None:
    session_factory, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'gone.db'}")
    store = SQLAlchemyStore(session_factory, TypeAdapter(Session))
    async with engine.begin() as conn:
        await conn.execute(text("DROP TABLE checkout_sessions"))

    match await store.get("chk_1"):
        case Error(err):
            assert err.message.startswith("Failed to get")
            assert err.cause is not None
        case other:
            pytest.fail(f"expected a store error, got {other!r}")

    await engine.dispose()
