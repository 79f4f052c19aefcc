"""
Session lookup graph — find the live session for an id or say why not.

Architecture:
    Lookup (injected)
         │
         ▼
    FetchSessionNode
         │
         ├── StoreDownNode ──────┐
         ├── LiveSessionNode ────┼── SessionResolution (@polymorphic)
         ├── ExpiredSessionNode ─┤              │
         └── MissingSessionNode ─┘              ▼
                                        ResolvedSessionNode

An expired session is evicted by the graph itself, so the call that finds
it is already unable to use it.

Note: no 'from __future__ import annotations', nodnod reads the hints.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from kungfu import Result, Ok, Error
from nodnod import NodeError, polymorphic, case

from bouquet import graph as G
from bouquet.checkout._types import CheckoutError, CheckoutErrorKind, NotFound, Session
from bouquet.store import SessionStore, StoreError


logger = structlog.get_logger()


@dataclass(frozen=True)
class Lookup:
    checkout_id: str
    store: SessionStore[Any]
    now: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Fetch
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FetchSessionNode:
    def __init__(
        self,
        lookup: Lookup,
        session: Session | None,
        store_error: StoreError | None = None,
    ) -> None:
        self.lookup = lookup
        self.session = session
        self.store_error = store_error

    @classmethod
    async def __compose__(cls, lookup: Lookup) -> "FetchSessionNode":
        match await lookup.store.get(lookup.checkout_id):
            case Ok(session):
                return cls(lookup, session)
            case Error(err):
                return cls(lookup, None, store_error=err)


# ═══════════════════════════════════════════════════════════════════════════════
# State Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class StoreDownNode:
    def __init__(self, error: StoreError) -> None:
        self.error = error

    @classmethod
    def __compose__(cls, fetch: FetchSessionNode) -> "StoreDownNode":
        if fetch.store_error is None:
            raise NodeError("Store answered")
        return cls(fetch.store_error)


@G.node
class LiveSessionNode:
    def __init__(self, session: Session) -> None:
        self.session = session

    @classmethod
    def __compose__(cls, fetch: FetchSessionNode) -> "LiveSessionNode":
        if fetch.session is None:
            raise NodeError("No session")
        if fetch.session.is_expired(fetch.lookup.now):
            raise NodeError("Expired")
        return cls(fetch.session)


@G.node
class ExpiredSessionNode:
    def __init__(self, session: Session, lookup: Lookup) -> None:
        self.session = session
        self.lookup = lookup

    @classmethod
    def __compose__(cls, fetch: FetchSessionNode) -> "ExpiredSessionNode":
        if fetch.session is None:
            raise NodeError("No session")
        if not fetch.session.is_expired(fetch.lookup.now):
            raise NodeError("Still live")
        return cls(fetch.session, fetch.lookup)


@G.node
class MissingSessionNode:
    def __init__(self, checkout_id: str) -> None:
        self.checkout_id = checkout_id

    @classmethod
    def __compose__(cls, fetch: FetchSessionNode) -> "MissingSessionNode":
        if fetch.store_error is not None:
            raise NodeError("Store error")
        if fetch.session is not None:
            raise NodeError("Session exists")
        return cls(fetch.lookup.checkout_id)


# ═══════════════════════════════════════════════════════════════════════════════
# Resolution
# ═══════════════════════════════════════════════════════════════════════════════


type Resolution = Result[Session, NotFound | CheckoutError]


@polymorphic[Resolution]
class SessionResolution:
    @case
    def store_down(cls, node: StoreDownNode) -> Resolution:
        return Error(CheckoutError(CheckoutErrorKind.STORE, node.error.message, node.error.cause))

    @case
    def live(cls, node: LiveSessionNode) -> Resolution:
        return Ok(node.session)

    @case
    async def expired(cls, node: ExpiredSessionNode) -> Resolution:
        """Evict before answering: the session is gone for this call too."""
        lookup = node.lookup
        match await lookup.store.delete(lookup.checkout_id):
            case Error(err):
                return Error(CheckoutError(CheckoutErrorKind.STORE, err.message, err.cause))
            case Ok(_):
                logger.info(
                    "checkout_expired",
                    checkout_id=lookup.checkout_id,
                    expires_at=node.session.expires_at.isoformat(),
                )
                return Error(NotFound(lookup.checkout_id, expired=True))

    @case
    def missing(cls, node: MissingSessionNode) -> Resolution:
        return Error(NotFound(node.checkout_id))


@G.node
class ResolvedSessionNode:
    def __init__(self, resolution: Resolution) -> None:
        self.resolution = resolution

    @classmethod
    def __compose__(cls, resolution: SessionResolution) -> "ResolvedSessionNode":
        return cls(resolution.value)


async def resolve_session(lookup: Lookup) -> Resolution:
    """Live session, NotFound (plain or expired), or a store failure."""
    node = await G.run(ResolvedSessionNode).inject(lookup)
    return node.resolution


__all__ = (
    "Lookup",
    "Resolution",
    "FetchSessionNode",
    "StoreDownNode",
    "LiveSessionNode",
    "ExpiredSessionNode",
    "MissingSessionNode",
    "SessionResolution",
    "ResolvedSessionNode",
    "resolve_session",
)
