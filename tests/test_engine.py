"""Lifecycle engine: create / get / update / complete, replay and expiry."""

import asyncio
from datetime import timedelta

import pytest
from kungfu import Ok, Error
from structlog.testing import capture_logs

from bouquet.catalog import flower_shop
from bouquet.checkout import (
    BuyerInput,
    CheckoutEngine,
    CheckoutError,
    CheckoutErrorKind,
    Code,
    CompleteCheckout,
    CreateCheckout,
    InvalidRequest,
    MessageType,
    NotFound,
    NotReady,
    Session,
    Snapshot,
    Status,
    TotalType,
    UpdateCheckout,
    amount_of,
)
from bouquet.idempotency import MemoryReplayStore, OnPending, Policy
from bouquet.settings import Settings
from bouquet.store import MemoryStore

from tests.helpers import BUYER, BrokenStore, FakeClock, items, new_session, unwrap_ok


def totals(session: Session) -> tuple[int, int, int]:
    return (
        amount_of(session.totals, TotalType.SUBTOTAL),
        amount_of(session.totals, TotalType.TAX),
        amount_of(session.totals, TotalType.TOTAL),
    )


async def stored(sessions: MemoryStore[Session], checkout_id: str) -> Session | None:
    return (await sessions.get(checkout_id)).unwrap()


# ═══════════════════════════════════════════════════════════════════════════════
# Worked example
# ═══════════════════════════════════════════════════════════════════════════════


async def test_create_update_complete(engine, sessions) -> None:
    session = await new_session(engine, line_items=items(("1", 12)))

    assert session.status == Status.INCOMPLETE
    assert totals(session) == (3588, 287, 3875)
    assert [m.code for m in session.messages] == [Code.MISSING_BUYER_EMAIL, Code.MISSING_BUYER_FULL_NAME]

    updated = await unwrap_ok(engine.update(UpdateCheckout(session.id, buyer=BUYER)))
    assert isinstance(updated, Snapshot)
    assert updated.session.status == Status.READY_FOR_COMPLETE
    assert updated.session.messages == ()
    assert updated.session.line_items == session.line_items

    completed = await unwrap_ok(engine.complete(CompleteCheckout(session.id)))
    assert isinstance(completed, Snapshot)
    final = completed.session
    assert final.status == Status.COMPLETED
    assert final.order is not None
    assert final.order.id.startswith("ORD_")
    assert final.order.permalink_url == f"http://localhost:3000/orders/{final.order.id}"
    assert [(m.type, m.code, m.content) for m in final.messages] == [
        (MessageType.INFO, Code.ORDER_CONFIRMED, "Order placed successfully!"),
    ]
    assert await stored(sessions, session.id) == final


async def test_create_defaults(engine, clock) -> None:
    reply = await unwrap_ok(engine.create(CreateCheckout()))

    assert isinstance(reply, Snapshot)
    assert reply.created is True
    session = reply.session
    assert session.id.startswith("chk_")
    assert session.line_items == ()
    assert session.currency == "USD"
    assert totals(session) == (0, 0, 0)
    assert session.status == Status.INCOMPLETE
    assert session.order is None
    assert session.created_at == clock.now
    assert session.expires_at == clock.now + timedelta(hours=6)


async def test_create_with_everything_is_ready(engine) -> None:
    session = await new_session(engine, line_items=items(("2", 3)), buyer=BUYER, currency="eur")

    assert session.status == Status.READY_FOR_COMPLETE
    assert session.currency == "EUR"
    assert session.buyer.email == "a@b.com"


async def test_unknown_products_are_silently_dropped(engine) -> None:
    session = await new_session(engine, line_items=items(("1", 1), ("404", 5)), buyer=BUYER)

    assert [item.product_id for item in session.line_items] == ["1"]
    assert session.status == Status.READY_FOR_COMPLETE


async def test_only_unknown_products_leave_an_empty_cart(engine) -> None:
    session = await new_session(engine, line_items=items(("404", 5)), buyer=BUYER)

    assert session.line_items == ()
    assert session.status == Status.INCOMPLETE


async def test_invalid_buyer_email_is_discarded(engine) -> None:
    session = await new_session(
        engine,
        line_items=items(("1", 1)),
        buyer=BuyerInput(email="nope", full_name="A B"),
    )

    assert session.buyer.email is None
    assert session.status == Status.INCOMPLETE
    assert [m.code for m in session.messages] == [Code.MISSING_BUYER_EMAIL]


@pytest.mark.parametrize("quantity", [0, 101])
async def test_create_rejects_out_of_range_quantity(engine, sessions, quantity: int) -> None:
    reply = await unwrap_ok(engine.create(CreateCheckout(line_items=items(("1", quantity)))))

    assert isinstance(reply, InvalidRequest)
    assert [m.code for m in reply.messages] == [Code.INVALID_QUANTITY]
    assert len(sessions) == 0


@pytest.mark.parametrize("line_items", [False, {}, ""])
async def test_create_rejects_falsy_non_list_line_items(engine, sessions, line_items: object) -> None:
    reply = await unwrap_ok(engine.create(CreateCheckout(line_items=line_items)))

    assert isinstance(reply, InvalidRequest)
    assert [m.code for m in reply.messages] == [Code.INVALID_LINE_ITEMS]
    assert len(sessions) == 0


@pytest.mark.parametrize(
    ("quantity", "expected"),
    [(1, (399, 32, 431)), (12, (4788, 383, 5171)), (100, (39900, 3192, 43092))],
)
async def test_totals_follow_quantity(engine, quantity: int, expected: tuple[int, int, int]) -> None:
    session = await new_session(engine, line_items=items(("3", quantity)))

    assert totals(session) == expected


# ═══════════════════════════════════════════════════════════════════════════════
# Get
# ═══════════════════════════════════════════════════════════════════════════════


async def test_get_returns_live_snapshot(engine) -> None:
    session = await new_session(engine, line_items=items(("1", 2)))

    assert await engine.get(session.id) == Ok(Snapshot(session))


async def test_get_unknown_id(engine) -> None:
    reply = await unwrap_ok(engine.get("chk_missing"))

    assert reply == NotFound("chk_missing")
    assert reply.message.code == Code.NOT_FOUND


@pytest.mark.parametrize("operation", ["get", "update", "complete"])
async def test_expired_session_is_gone_for_good(engine, sessions, clock, operation: str) -> None:
    session = await new_session(engine, line_items=items(("1", 1)), buyer=BUYER)
    clock.advance(hours=6, seconds=1)

    calls = {
        "get": lambda: engine.get(session.id),
        "update": lambda: engine.update(UpdateCheckout(session.id, line_items=items(("2", 1)))),
        "complete": lambda: engine.complete(CompleteCheckout(session.id)),
    }
    reply = await unwrap_ok(calls[operation]())

    assert reply == NotFound(session.id, expired=True)
    assert reply.message.code == Code.EXPIRED
    assert await stored(sessions, session.id) is None
    assert await unwrap_ok(engine.get(session.id)) == NotFound(session.id)


async def test_session_lives_until_its_expiry(engine, clock) -> None:
    session = await new_session(engine)
    clock.advance(hours=6)

    assert isinstance(await unwrap_ok(engine.get(session.id)), Snapshot)


# ═══════════════════════════════════════════════════════════════════════════════
# Update
# ═══════════════════════════════════════════════════════════════════════════════


async def test_update_replaces_line_items(engine) -> None:
    session = await new_session(engine, line_items=items(("1", 12)))

    reply = await unwrap_ok(engine.update(UpdateCheckout(session.id, line_items=items(("2", 1), ("3", 2)))))

    assert [(i.product_id, i.quantity) for i in reply.session.line_items] == [("2", 1), ("3", 2)]
    assert totals(reply.session)[0] == 199 + 399 * 2
    assert not {i.id for i in reply.session.line_items} & {i.id for i in session.line_items}


async def test_update_with_empty_list_clears_cart(engine) -> None:
    session = await new_session(engine, line_items=items(("1", 2)), buyer=BUYER)

    reply = await unwrap_ok(engine.update(UpdateCheckout(session.id, line_items=())))

    assert reply.session.line_items == ()
    assert totals(reply.session) == (0, 0, 0)
    assert reply.session.status == Status.INCOMPLETE


async def test_update_without_items_keeps_cart(engine) -> None:
    session = await new_session(engine, line_items=items(("1", 2)))

    reply = await unwrap_ok(engine.update(UpdateCheckout(session.id, buyer=BuyerInput(email="x@y.org"))))

    assert reply.session.line_items == session.line_items
    assert reply.session.buyer.email == "x@y.org"
    assert [m.code for m in reply.session.messages] == [Code.MISSING_BUYER_FULL_NAME]


async def test_buyer_patch_merges_field_by_field(engine) -> None:
    session = await new_session(engine, line_items=items(("1", 1)), buyer=BUYER)

    reply = await unwrap_ok(engine.update(UpdateCheckout(
        session.id,
        buyer=BuyerInput(email="bad address", full_name="New Name"),
    )))

    assert reply.session.buyer.email == "a@b.com"
    assert reply.session.buyer.full_name == "New Name"
    assert reply.session.status == Status.READY_FOR_COMPLETE


@pytest.mark.parametrize("quantity", [0, 101])
async def test_invalid_update_leaves_session_untouched(engine, sessions, quantity: int) -> None:
    session = await new_session(engine, line_items=items(("1", 12)), buyer=BUYER)

    reply = await unwrap_ok(engine.update(UpdateCheckout(
        session.id,
        line_items=items(("2", quantity)),
        buyer=BuyerInput(full_name="Someone Else"),
    )))

    assert isinstance(reply, InvalidRequest)
    assert reply.checkout_id == session.id
    assert await stored(sessions, session.id) == session


@pytest.mark.parametrize("line_items", [False, {}, "", 0])
async def test_falsy_non_list_line_items_are_rejected(engine, sessions, line_items: object) -> None:
    session = await new_session(engine, line_items=items(("1", 12)), buyer=BUYER)

    reply = await unwrap_ok(engine.update(UpdateCheckout(session.id, line_items=line_items)))

    assert isinstance(reply, InvalidRequest)
    assert reply.checkout_id == session.id
    assert [m.code for m in reply.messages] == [Code.INVALID_LINE_ITEMS]
    assert await stored(sessions, session.id) == session


async def test_update_unknown_id(engine) -> None:
    assert await unwrap_ok(engine.update(UpdateCheckout("chk_missing", buyer=BUYER))) == NotFound("chk_missing")


async def test_completed_session_cannot_be_updated(engine, sessions) -> None:
    session = await new_session(engine, line_items=items(("1", 1)), buyer=BUYER)
    done = (await unwrap_ok(engine.complete(CompleteCheckout(session.id)))).session

    reply = await unwrap_ok(engine.update(UpdateCheckout(session.id, line_items=())))

    assert isinstance(reply, InvalidRequest)
    assert [m.code for m in reply.messages] == [Code.CHECKOUT_COMPLETED]
    assert await stored(sessions, session.id) == done


# ═══════════════════════════════════════════════════════════════════════════════
# Complete
# ═══════════════════════════════════════════════════════════════════════════════


async def test_complete_when_not_ready(engine, sessions) -> None:
    session = await new_session(engine, line_items=items(("1", 12)))

    reply = await unwrap_ok(engine.complete(CompleteCheckout(session.id)))

    assert reply == NotReady(session)
    assert reply.message.code == Code.NOT_READY
    assert await stored(sessions, session.id) == session


async def test_complete_twice_is_not_ready(engine) -> None:
    session = await new_session(engine, line_items=items(("1", 1)), buyer=BUYER)
    first = await unwrap_ok(engine.complete(CompleteCheckout(session.id)))

    second = await unwrap_ok(engine.complete(CompleteCheckout(session.id)))

    assert isinstance(second, NotReady)
    assert second.session == first.session
    assert second.message.content == "Checkout is already completed"


async def test_complete_unknown_id(engine) -> None:
    assert await unwrap_ok(engine.complete(CompleteCheckout("chk_missing"))) == NotFound("chk_missing")


async def test_orders_get_distinct_ids(engine) -> None:
    orders = []
    for _ in range(3):
        session = await new_session(engine, line_items=items(("1", 1)), buyer=BUYER)
        orders.append((await unwrap_ok(engine.complete(CompleteCheckout(session.id)))).session.order.id)

    assert len(set(orders)) == 3


# ═══════════════════════════════════════════════════════════════════════════════
# Idempotent replay
# ═══════════════════════════════════════════════════════════════════════════════


async def test_create_replay_is_identical(engine, sessions) -> None:
    request = CreateCheckout(line_items=items(("1", 2)), idempotency_key="k1")

    first = await engine.create(request)
    await engine.create(CreateCheckout(line_items=items(("1", 2))))  # counters move on
    with capture_logs() as logs:
        again = await engine.create(request)

    assert again == first
    assert len(sessions) == 2
    assert "checkout_replayed" in [log["event"] for log in logs]


async def test_replay_skips_validation(engine) -> None:
    first = await engine.create(CreateCheckout(line_items=items(("1", 2)), idempotency_key="k1"))

    again = await engine.create(CreateCheckout(line_items=items(("1", 0)), idempotency_key="k1"))

    assert again == first


async def test_invalid_requests_replay_too(engine) -> None:
    bad = CreateCheckout(line_items=items(("1", 0)), idempotency_key="k1")

    first = await unwrap_ok(engine.create(bad))
    again = await unwrap_ok(engine.create(CreateCheckout(line_items=items(("1", 1)), idempotency_key="k1")))

    assert isinstance(first, InvalidRequest)
    assert again == first


async def test_update_keys_are_scoped_to_the_session(engine) -> None:
    a = await new_session(engine)
    b = await new_session(engine)

    first = await unwrap_ok(engine.update(UpdateCheckout(a.id, buyer=BUYER, idempotency_key="same")))
    second = await unwrap_ok(engine.update(UpdateCheckout(b.id, buyer=BUYER, idempotency_key="same")))

    assert first.session.id == a.id
    assert second.session.id == b.id


async def test_update_replay_does_not_reapply(engine, sessions) -> None:
    session = await new_session(engine)
    request = UpdateCheckout(session.id, line_items=items(("1", 1)), idempotency_key="u1")

    first = await unwrap_ok(engine.update(request))
    await unwrap_ok(engine.update(UpdateCheckout(session.id, line_items=items(("2", 4)))))
    again = await unwrap_ok(engine.update(request))

    assert again == first
    assert [i.product_id for i in (await stored(sessions, session.id)).line_items] == ["2"]


async def test_complete_replay_returns_the_confirmation(engine) -> None:
    session = await new_session(engine, line_items=items(("1", 1)), buyer=BUYER)
    request = CompleteCheckout(session.id, idempotency_key="c1")

    first = await unwrap_ok(engine.complete(request))
    again = await unwrap_ok(engine.complete(request))

    assert isinstance(first, Snapshot)
    assert again == first


async def test_keys_are_reusable_after_clear(engine, sessions) -> None:
    request = CreateCheckout(idempotency_key="k1")
    first = await unwrap_ok(engine.create(request))

    assert await engine.clear_replays() == Ok(1)
    second = await unwrap_ok(engine.create(request))

    assert second.session.id != first.session.id
    assert len(sessions) == 2


async def test_concurrent_creates_with_one_key_make_one_session(engine, sessions) -> None:
    request = CreateCheckout(line_items=items(("1", 1)), idempotency_key="k1")

    replies = await asyncio.gather(*(engine.create(request) for _ in range(5)))

    assert len({reply.unwrap().session.id for reply in replies}) == 1
    assert len(sessions) == 1


async def test_cancelled_keyed_call_frees_its_key(engine, sessions) -> None:
    session = await new_session(engine, line_items=items(("1", 1)))
    request = UpdateCheckout(session.id, buyer=BUYER, idempotency_key="u1")

    async with sessions.locked(session.id):
        with pytest.raises(TimeoutError):
            async with asyncio.timeout(0.05):
                await engine.update(request)

    assert await engine.replays.get(f"checkout.update:{session.id}:u1") == Ok(None)
    reply = await unwrap_ok(engine.update(request))
    assert isinstance(reply, Snapshot)
    assert reply.session.status == Status.READY_FOR_COMPLETE


# ═══════════════════════════════════════════════════════════════════════════════
# Concurrency
# ═══════════════════════════════════════════════════════════════════════════════


async def test_concurrent_updates_keep_totals_consistent(engine, sessions) -> None:
    session = await new_session(engine, buyer=BUYER)

    await asyncio.gather(*(
        engine.update(UpdateCheckout(session.id, line_items=items(("1", q), ("2", q))))
        for q in range(1, 21)
    ))

    final = await stored(sessions, session.id)
    quantities = {item.quantity for item in final.line_items}
    assert len(quantities) == 1
    q = quantities.pop()
    assert totals(final)[0] == (299 + 199) * q


async def test_other_sessions_are_not_blocked(engine, sessions) -> None:
    a = await new_session(engine)
    b = await new_session(engine)

    async with sessions.locked(a.id):
        async with asyncio.timeout(1):
            reply = await unwrap_ok(engine.update(UpdateCheckout(b.id, buyer=BUYER)))

    assert reply.session.buyer.email == "a@b.com"


# ═══════════════════════════════════════════════════════════════════════════════
# Maintenance & failures
# ═══════════════════════════════════════════════════════════════════════════════


async def test_sweep_evicts_expired_sessions(engine, sessions, clock) -> None:
    old = await new_session(engine)
    clock.advance(hours=3)
    young = await new_session(engine)
    clock.advance(hours=3, seconds=1)

    assert await engine.sweep() == Ok(1)
    assert await stored(sessions, old.id) is None
    assert await stored(sessions, young.id) == young


async def test_store_failures_are_errors() -> None:
    engine = CheckoutEngine(flower_shop(), BrokenStore(), MemoryReplayStore(), clock=FakeClock())

    for call in (
        engine.create(CreateCheckout()),
        engine.get("chk_1"),
        engine.update(UpdateCheckout("chk_1")),
        engine.complete(CompleteCheckout("chk_1")),
    ):
        match await call:
            case Error(CheckoutError(kind=CheckoutErrorKind.STORE)):
                pass
            case other:
                pytest.fail(f"expected a store error, got {other!r}")

    assert (await engine.sweep()).unwrap_err().kind == CheckoutErrorKind.STORE


async def test_failed_writes_are_not_replayed() -> None:
    engine = CheckoutEngine(flower_shop(), BrokenStore(), MemoryReplayStore(), clock=FakeClock())

    first = await engine.create(CreateCheckout(idempotency_key="k1"))

    assert first.unwrap_err().kind == CheckoutErrorKind.STORE
    assert await engine.replays.get("checkout.create:k1") == Ok(None)


async def test_settings_drive_the_engine(catalog, sessions, clock) -> None:
    settings = (
        Settings()
        .with_base_url("https://flowers.example/")
        .with_currency("gbp")
        .with_tax_rate("0.2")
        .with_session_ttl(hours=1)
    )
    engine = CheckoutEngine(catalog, sessions, clock=clock, settings=settings)

    session = await new_session(engine, line_items=items(("1", 10)), buyer=BUYER)
    done = (await unwrap_ok(engine.complete(CompleteCheckout(session.id)))).session

    assert session.currency == "GBP"
    assert totals(session) == (2990, 598, 3588)
    assert session.totals[1].label == "Tax (20%)"
    assert session.expires_at == clock.now + timedelta(hours=1)
    assert done.order.permalink_url.startswith("https://flowers.example/orders/ORD_")


async def test_engines_do_not_share_counters(catalog, clock) -> None:
    a = CheckoutEngine(catalog, MemoryStore[Session](), clock=clock)
    b = CheckoutEngine(catalog, MemoryStore[Session](), clock=clock)

    first = await new_session(a, line_items=items(("1", 1)))
    other = await new_session(b, line_items=items(("1", 1)))

    assert first.id == other.id
    assert first.line_items[0].id == other.line_items[0].id


async def test_sql_backed_engine(tmp_path, clock) -> None:
    settings = Settings().with_database(f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}")
    engine = CheckoutEngine.from_settings(settings, clock=clock)
    await engine.open()
    try:
        session = await new_session(engine, line_items=items(("1", 12)), buyer=BUYER)
        fetched = await unwrap_ok(engine.get(session.id))
        completed = await unwrap_ok(engine.complete(CompleteCheckout(session.id)))

        assert fetched == Snapshot(session)
        assert totals(fetched.session) == (3588, 287, 3875)
        assert completed.session.status == Status.COMPLETED

        clock.advance(hours=7)
        assert await engine.sweep() == Ok(1)
        assert await unwrap_ok(engine.get(session.id)) == NotFound(session.id)
    finally:
        await engine.close()


async def test_fail_policy_reports_conflict(catalog, sessions, clock) -> None:
    settings = Settings().with_replay_policy(Policy().with_on_pending(OnPending.FAIL))
    engine = CheckoutEngine(catalog, sessions, clock=clock, settings=settings)
    session = await new_session(engine, line_items=items(("1", 1)), buyer=BUYER)
    request = CompleteCheckout(session.id, idempotency_key="c1")

    async with sessions.locked(session.id):
        first = asyncio.ensure_future(engine.complete(request))
        await asyncio.sleep(0.01)
        second = await engine.complete(request)

    assert second.unwrap_err().kind == CheckoutErrorKind.REPLAY_CONFLICT
    assert isinstance((await first).unwrap(), Snapshot)
