"""
Lifecycle engine — create / get / update / complete.

    engine = CheckoutEngine(flower_shop(), MemoryStore[Session](), MemoryReplayStore())

    match await engine.create(CreateCheckout(line_items=(LineItemInput("1", 12),))):
        case Ok(Snapshot(session)):
            ...
        case Ok(InvalidRequest(messages)):
            ...
        case Error(CheckoutError(kind=kind)):
            ...

Every call returns a LazyCoroResult: domain outcomes (snapshot, invalid
request, not found, not ready) are Ok values, only infrastructure trouble
is an Error. Calls carrying an idempotency key go through the replay graph
first; the per-session lock is taken inside it, around the read/modify/write.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any

import structlog
from kungfu import LazyCoroResult, Result, Ok, Error
from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncEngine

from bouquet import idempotency as I
from bouquet._types import Clock, utcnow
from bouquet.catalog import Catalog, flower_shop
from bouquet.checkout._ids import IdSource, MonotonicIds
from bouquet.checkout._items import LineItemFactory
from bouquet.checkout._lookup import Lookup, resolve_session
from bouquet.checkout._totals import compute_totals
from bouquet.checkout._types import (
    Buyer,
    CheckoutError,
    CheckoutErrorKind,
    Code,
    CompleteCheckout,
    CreateCheckout,
    InvalidRequest,
    LineItem,
    Message,
    NotFound,
    NotReady,
    Order,
    Reply,
    Session,
    Snapshot,
    Status,
    UpdateCheckout,
)
from bouquet.checkout._validate import (
    completeness,
    derive_status,
    sanitize_buyer,
    validate_line_items,
)
from bouquet.settings import Settings
from bouquet.store import (
    MemoryStore,
    SessionStore,
    SQLAlchemyStore,
    StoreError,
    create_tables,
    open_database,
)


logger = structlog.get_logger()

ORDER_CONFIRMED = "Order placed successfully!"


# ═══════════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutEngine:
    """
    Checkout session lifecycle.

    Note: The engine owns its id sequence and its replay executors. Two
    engines never share counters, even in one process.
    """

    def __init__(
        self,
        catalog: Catalog,
        sessions: SessionStore[Session],
        replays: I.ReplayStore[Reply] | None = None,
        *,
        ids: IdSource | None = None,
        clock: Clock = utcnow,
        settings: Settings = Settings(),
        policy: I.Policy | None = None,
        database: AsyncEngine | None = None,
    ) -> None:
        self.catalog = catalog
        self.sessions = sessions
        self.replays: I.ReplayStore[Reply] = replays if replays is not None else I.MemoryReplayStore(
            clock, pending_ttl=settings.replay_clear_interval
        )
        self.settings = settings
        self._ids = ids if ids is not None else MonotonicIds()
        self._clock = clock
        self._items = LineItemFactory(catalog, self._ids)
        self._database = database
        policy = policy if policy is not None else settings.replay_policy

        self._create_once = (
            I.idempotent(self._create)
            .key(lambda req: f"checkout.create:{req.idempotency_key}")
            .store(self.replays)
            .policy(policy)
            .build()
        )
        self._update_once = (
            I.idempotent(self._update)
            .key(lambda req: f"checkout.update:{req.checkout_id}:{req.idempotency_key}")
            .store(self.replays)
            .policy(policy)
            .build()
        )
        self._complete_once = (
            I.idempotent(self._complete)
            .key(lambda req: f"checkout.complete:{req.checkout_id}:{req.idempotency_key}")
            .store(self.replays)
            .policy(policy)
            .build()
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        catalog: Catalog | None = None,
        *,
        clock: Clock = utcnow,
    ) -> CheckoutEngine:
        """In-memory sessions, or a SQL table when `database_url` is set."""
        sessions, database = build_store(settings)
        return cls(
            catalog if catalog is not None else flower_shop(),
            sessions,
            I.MemoryReplayStore(clock, pending_ttl=settings.replay_clear_interval),
            clock=clock,
            settings=settings,
            database=database,
        )

    async def open(self) -> None:
        """Create the sessions table when backed by a database."""
        if self._database is not None:
            await create_tables(self._database)

    async def close(self) -> None:
        if self._database is not None:
            await self._database.dispose()

    # ───────────────────────────────────────────────────────────────────────────
    # Public operations
    # ───────────────────────────────────────────────────────────────────────────

    def create(self, request: CreateCheckout) -> LazyCoroResult[Reply, CheckoutError]:
        if request.idempotency_key is None:
            return self._create(request)
        return _replayed(self._create_once, request)

    def get(self, checkout_id: str) -> LazyCoroResult[Reply, CheckoutError]:
        """Read-only, apart from evicting a session found expired."""

        async def run() -> Result[Reply, CheckoutError]:
            async with self.sessions.locked(checkout_id):
                match await self._resolve(checkout_id):
                    case Ok(session):
                        return Ok(Snapshot(session))
                    case Error(NotFound() as missing):
                        return Ok(missing)
                    case Error(err):
                        return Error(err)

        return LazyCoroResult(run)

    def update(self, request: UpdateCheckout) -> LazyCoroResult[Reply, CheckoutError]:
        if request.idempotency_key is None:
            return self._update(request)
        return _replayed(self._update_once, request)

    def complete(self, request: CompleteCheckout) -> LazyCoroResult[Reply, CheckoutError]:
        if request.idempotency_key is None:
            return self._complete(request)
        return _replayed(self._complete_once, request)

    # ───────────────────────────────────────────────────────────────────────────
    # Maintenance
    # ───────────────────────────────────────────────────────────────────────────

    async def sweep(self, now: datetime | None = None) -> Result[int, CheckoutError]:
        """Evict every session past its expiry."""
        match await self.sessions.sweep(now if now is not None else self._clock()):
            case Ok(removed):
                return Ok(removed)
            case Error(err):
                return Error(_store_failed(err))

    async def clear_replays(self) -> Result[int, CheckoutError]:
        """Forget stored responses; their keys may be reused afterwards."""
        match await self.replays.clear():
            case Ok(cleared):
                return Ok(cleared)
            case Error(err):
                return Error(CheckoutError(CheckoutErrorKind.REPLAY_STORE, err.message, err.cause))

    # ───────────────────────────────────────────────────────────────────────────
    # Operations (no replay)
    # ───────────────────────────────────────────────────────────────────────────

    def _create(self, request: CreateCheckout) -> LazyCoroResult[Reply, CheckoutError]:
        async def run() -> Result[Reply, CheckoutError]:
            now = self._clock()

            items: tuple[LineItem, ...] = ()
            if request.line_items is not None:
                match self._validate(request.line_items):
                    case Error(messages):
                        logger.info("checkout_rejected", operation="create", problems=len(messages))
                        return Ok(InvalidRequest(messages))
                    case Ok(accepted):
                        items = self._items.build_all(accepted, now)

            buyer = self._sanitize(request)
            checkout_id = self._ids.checkout_id(now)
            blank = Session(
                id=checkout_id,
                line_items=(),
                buyer=Buyer(),
                currency=(request.currency or self.settings.currency).upper(),
                totals=(),
                messages=(),
                status=Status.INCOMPLETE,
                created_at=now,
                expires_at=now + self.settings.session_ttl,
            )
            session = self._assemble(blank, items, buyer)

            async with self.sessions.locked(checkout_id):
                match await self.sessions.put(checkout_id, session):
                    case Error(err):
                        return Error(_store_failed(err))
                    case Ok(_):
                        pass

            logger.info(
                "checkout_created",
                checkout_id=checkout_id,
                status=session.status,
                line_items=len(items),
            )
            return Ok(Snapshot(session, created=True))

        return LazyCoroResult(run)

    def _update(self, request: UpdateCheckout) -> LazyCoroResult[Reply, CheckoutError]:
        async def run() -> Result[Reply, CheckoutError]:
            now = self._clock()
            async with self.sessions.locked(request.checkout_id):
                match await self._resolve(request.checkout_id):
                    case Ok(current):
                        pass
                    case Error(NotFound() as missing):
                        return Ok(missing)
                    case Error(err):
                        return Error(err)

                if current.status == Status.COMPLETED:
                    return Ok(InvalidRequest(
                        (Message.error(Code.CHECKOUT_COMPLETED, "Checkout is already completed"),),
                        checkout_id=current.id,
                    ))

                items = current.line_items
                # an empty list clears the cart, anything else must validate
                if request.line_items is not None:
                    match self._validate(request.line_items):
                        case Error(messages):
                            logger.info(
                                "checkout_rejected",
                                operation="update",
                                checkout_id=current.id,
                                problems=len(messages),
                            )
                            return Ok(InvalidRequest(messages, checkout_id=current.id))
                        case Ok(accepted):
                            items = self._items.build_all(accepted, now)

                buyer = current.buyer.merge(self._sanitize(request))
                session = self._assemble(current, items, buyer)

                match await self.sessions.put(session.id, session):
                    case Error(err):
                        return Error(_store_failed(err))
                    case Ok(_):
                        pass

            logger.info(
                "checkout_updated",
                checkout_id=session.id,
                status=session.status,
                line_items=len(items),
            )
            return Ok(Snapshot(session))

        return LazyCoroResult(run)

    def _complete(self, request: CompleteCheckout) -> LazyCoroResult[Reply, CheckoutError]:
        async def run() -> Result[Reply, CheckoutError]:
            async with self.sessions.locked(request.checkout_id):
                match await self._resolve(request.checkout_id):
                    case Ok(current):
                        pass
                    case Error(NotFound() as missing):
                        return Ok(missing)
                    case Error(err):
                        return Error(err)

                if current.status != Status.READY_FOR_COMPLETE:
                    logger.info("checkout_not_ready", checkout_id=current.id, status=current.status)
                    return Ok(NotReady(current))

                order_id = self._ids.order_id(self._clock())
                session = replace(
                    current,
                    status=Status.COMPLETED,
                    order=Order(order_id, f"{self.settings.base_url}/orders/{order_id}"),
                    messages=(Message.info(Code.ORDER_CONFIRMED, ORDER_CONFIRMED),),
                )

                match await self.sessions.put(session.id, session):
                    case Error(err):
                        return Error(_store_failed(err))
                    case Ok(_):
                        pass

            logger.info("checkout_completed", checkout_id=session.id, order_id=order_id)
            return Ok(Snapshot(session))

        return LazyCoroResult(run)

    # ───────────────────────────────────────────────────────────────────────────

    async def _resolve(self, checkout_id: str) -> Result[Session, NotFound | CheckoutError]:
        return await resolve_session(Lookup(checkout_id, self.sessions, self._clock()))

    def _validate(self, entries: object) -> Result[Any, tuple[Message, ...]]:
        return validate_line_items(
            entries,
            min_quantity=self.settings.min_quantity,
            max_quantity=self.settings.max_quantity,
        )

    def _sanitize(self, request: CreateCheckout | UpdateCheckout) -> Buyer:
        if request.buyer is None:
            return Buyer()
        return sanitize_buyer(request.buyer, name_max_length=self.settings.name_max_length)

    def _assemble(self, session: Session, items: tuple[LineItem, ...], buyer: Buyer) -> Session:
        """Totals, messages and status always derive from items + buyer."""
        return replace(
            session,
            line_items=items,
            buyer=buyer,
            totals=compute_totals(items, self.settings.tax_rate, self.settings.tax_label),
            messages=completeness(buyer),
            status=derive_status(items, buyer),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════


def build_store(settings: Settings) -> tuple[SessionStore[Session], AsyncEngine | None]:
    """Session store for these settings, plus the database engine behind it."""
    if settings.database_url is None:
        return MemoryStore[Session](), None
    session_factory, database = open_database(settings.database_url)
    return SQLAlchemyStore(session_factory, TypeAdapter(Session)), database


def _replayed[K](
    executor: I.IdempotentExecutor[K, Reply, CheckoutError],
    request: K,
) -> LazyCoroResult[Reply, CheckoutError]:
    async def run() -> Result[Reply, CheckoutError]:
        match await executor.run(request):
            case Ok(result):
                if result.from_cache:
                    logger.info("checkout_replayed", key=result.key)
                return Ok(result.value)
            case Error(err):
                return Error(_replay_failed(err))

    return LazyCoroResult(run)


def _replay_failed(err: I.ReplayError[Any]) -> CheckoutError:
    match err.kind:
        case I.ReplayErrorKind.OPERATION:
            original = err.cause
            if isinstance(original, CheckoutError):
                return original
            if isinstance(original, Exception):
                raise original
            return CheckoutError(CheckoutErrorKind.STORE, err.message)
        case I.ReplayErrorKind.CONFLICT:
            return CheckoutError(CheckoutErrorKind.REPLAY_CONFLICT, err.message)
        case I.ReplayErrorKind.TIMEOUT:
            return CheckoutError(CheckoutErrorKind.REPLAY_TIMEOUT, err.message)
        case I.ReplayErrorKind.STORE:
            cause = err.cause if isinstance(err.cause, Exception) else None
            return CheckoutError(CheckoutErrorKind.REPLAY_STORE, err.message, cause)


def _store_failed(err: StoreError) -> CheckoutError:
    return CheckoutError(CheckoutErrorKind.STORE, err.message, err.cause)


__all__ = (
    "CheckoutEngine",
    "ORDER_CONFIRMED",
    "build_store",
)
