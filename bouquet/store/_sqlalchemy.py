"""
SQLAlchemy integration — session store on any async database.

Usage:
    session_factory, engine = await create_database("sqlite+aiosqlite:///shop.db")
    store = SQLAlchemyStore(session_factory, TypeAdapter(Session))

Records are kept as JSON produced by the pydantic adapter, plus an indexed
expiry column for sweeping. Per-key exclusivity is in-process, same as
MemoryStore: one engine process per database.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from datetime import datetime

import structlog
from combinators import lift as L
from kungfu import Result
from pydantic import TypeAdapter
from sqlalchemy import BigInteger, String, Text, delete, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from bouquet.store._locks import KeyedLocks
from bouquet.store._types import Expiring, StoreError


logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════════════════════
# Table
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


class SessionRow(Base):
    """
    One stored session.

    Note: expires_at_ms is epoch milliseconds, only used to pick sweep
    candidates; the exact expiry is re-checked on the decoded record.
    """

    __tablename__ = "checkout_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)


def open_database(url: str) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Engine and session factory; nothing is created yet."""
    engine = create_async_engine(url, echo=False)
    return async_sessionmaker(engine, expire_on_commit=False), engine


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create tables and return (session_factory, engine)."""
    session_factory, engine = open_database(url)
    await create_tables(engine)
    return session_factory, engine


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyStore[T: Expiring]:
    """
    Session store backed by a SQL table.

    Example:
        store = SQLAlchemyStore(session_factory, TypeAdapter(Session))
        await store.put(session.id, session)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        adapter: TypeAdapter[T],
    ) -> None:
        self._session_factory = session_factory
        self._adapter = adapter
        self._keys = KeyedLocks()

    def locked(self, key: str) -> AbstractAsyncContextManager[None]:
        return self._keys.hold(key)

    async def get(self, key: str) -> Result[T | None, StoreError]:
        return await L.catching_async(
            lambda: self._load(key),
            on_error=lambda e: StoreError(f"Failed to get: {e}", e),
        )

    async def put(self, key: str, value: T) -> Result[None, StoreError]:
        return await L.catching_async(
            lambda: self._save(key, value),
            on_error=lambda e: StoreError(f"Failed to put: {e}", e),
        )

    async def delete(self, key: str) -> Result[bool, StoreError]:
        return await L.catching_async(
            lambda: self._delete(key),
            on_error=lambda e: StoreError(f"Failed to delete: {e}", e),
        )

    async def sweep(self, now: datetime) -> Result[int, StoreError]:
        return await L.catching_async(
            lambda: self._sweep(now),
            on_error=lambda e: StoreError(f"Failed to sweep: {e}", e),
        )

    # ───────────────────────────────────────────────────────────────────────────

    async def _load(self, key: str) -> T | None:
        async with self._session_factory() as session:
            row = await session.get(SessionRow, key)
            if row is None:
                return None
            return self._adapter.validate_json(row.payload)

    async def _save(self, key: str, value: T) -> None:
        async with self._session_factory() as session:
            await session.merge(
                SessionRow(
                    id=key,
                    payload=self._adapter.dump_json(value).decode(),
                    expires_at_ms=_millis(value.expires_at),
                )
            )
            await session.commit()

    async def _delete(self, key: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(delete(SessionRow).where(SessionRow.id == key))
            await session.commit()
            return bool(result.rowcount)

    async def _sweep(self, now: datetime) -> int:
        async with self._session_factory() as session:
            rows = await session.execute(
                select(SessionRow.id).where(SessionRow.expires_at_ms <= _millis(now))
            )
            candidates = list(rows.scalars())

        removed = 0
        for key in candidates:
            async with self._keys.hold(key):
                value = await self._load(key)
                if value is not None and now > value.expires_at:
                    removed += int(await self._delete(key))

        if removed:
            logger.info("sessions_swept", removed=removed, store="sql")
        return removed


def _millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


__all__ = (
    "Base",
    "SessionRow",
    "open_database",
    "create_tables",
    "create_database",
    "SQLAlchemyStore",
)
