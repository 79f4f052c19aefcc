"""
Store — keyed session storage with per-key exclusivity.

    from bouquet import store

    sessions = store.MemoryStore[Session]()

    async with sessions.locked(session.id):
        await sessions.put(session.id, session)

    await sessions.sweep(now)   # evict everything past expires_at

SQL-backed variant (SQLAlchemy, async driver):

    session_factory, _ = await store.create_database("sqlite+aiosqlite:///shop.db")
    sessions = store.SQLAlchemyStore(session_factory, TypeAdapter(Session))
"""

from bouquet.store._types import (
    StoreError,
    Expiring,
    SessionStore,
)
from bouquet.store._locks import KeyedLocks
from bouquet.store._store import MemoryStore
from bouquet.store._sqlalchemy import (
    Base,
    SessionRow,
    SQLAlchemyStore,
    open_database,
    create_tables,
    create_database,
)

__all__ = (
    # Types
    "StoreError",
    "Expiring",
    "SessionStore",
    # Locks
    "KeyedLocks",
    # Stores
    "MemoryStore",
    "SQLAlchemyStore",
    # SQLAlchemy
    "Base",
    "SessionRow",
    "open_database",
    "create_tables",
    "create_database",
)
