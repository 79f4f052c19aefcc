"""
Replay graph — idempotent execution as nodnod nodes.

Architecture:
    ReplaySpec (injected)
         │
         ▼
    FetchReplayNode
         │
         ├── StoreFailureNode ───┐
         ├── CompletedReplayNode ┤
         ├── PendingReplayNode ──┼── ReplayOutcome (@polymorphic)
         └── NoReplayNode ───────┘             │
                                               ▼
                                        FinalReplayNode

Each state node validates one shape of the fetched record and raises
NodeError otherwise; the polymorphic outcome takes the first case whose
dependency composed.

Note: no 'from __future__ import annotations' here, nodnod reads the
__compose__ hints at runtime to wire dependencies.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog
from kungfu import Result, Ok, Error
from nodnod import NodeError, polymorphic, case

from bouquet import graph as G
from bouquet.idempotency._policy import OnPending, Policy
from bouquet.idempotency._store import ReplayStoreAny
from bouquet.idempotency._types import (
    ReplayError,
    ReplayErrorKind,
    Replayed,
    RecordState,
    ReplayRecord,
)
from bouquet.store import StoreError


logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════════════════════
# Input — Spec (injected)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ReplaySpec:
    """Everything one idempotent call needs."""

    key: str
    input_value: Any
    operation: Callable[[Any], Awaitable[Result[Any, Any]]]
    store: ReplayStoreAny
    policy: Policy


# ═══════════════════════════════════════════════════════════════════════════════
# Fetch Record
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FetchReplayNode:
    """Reads the key once; state nodes below only inspect what came back."""

    def __init__(
        self,
        record: ReplayRecord[Any] | None,
        spec: ReplaySpec,
        store_error: StoreError | None = None,
    ) -> None:
        self.record = record
        self.spec = spec
        self.store_error = store_error

    @classmethod
    async def __compose__(cls, spec: ReplaySpec) -> "FetchReplayNode":
        match await spec.store.get(spec.key):
            case Ok(record):
                return cls(record, spec)
            case Error(err):
                return cls(None, spec, store_error=err)


# ═══════════════════════════════════════════════════════════════════════════════
# State Nodes — Each validates a specific record state
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class StoreFailureNode:
    """Validates: the store returned an error."""

    def __init__(self, error: StoreError, spec: ReplaySpec) -> None:
        self.error = error
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchReplayNode) -> "StoreFailureNode":
        if fetch.store_error is None:
            raise NodeError("No store error")
        return cls(fetch.store_error, fetch.spec)


@G.node
class CompletedReplayNode:
    """Validates: record exists and holds a response."""

    def __init__(self, record: ReplayRecord[Any], spec: ReplaySpec) -> None:
        self.record = record
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchReplayNode) -> "CompletedReplayNode":
        record = fetch.record
        if record is None:
            raise NodeError("No record")
        if record.state != RecordState.COMPLETED:
            raise NodeError("Not completed")
        return cls(record, fetch.spec)


@G.node
class PendingReplayNode:
    """Validates: another call with this key is in flight."""

    def __init__(self, record: ReplayRecord[Any], spec: ReplaySpec) -> None:
        self.record = record
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchReplayNode) -> "PendingReplayNode":
        record = fetch.record
        if record is None:
            raise NodeError("No record")
        if record.state != RecordState.PENDING:
            raise NodeError("Not pending")
        return cls(record, fetch.spec)


@G.node
class NoReplayNode:
    """Validates: key never seen (or cleared since)."""

    def __init__(self, spec: ReplaySpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, fetch: FetchReplayNode) -> "NoReplayNode":
        if fetch.store_error is not None:
            raise NodeError("Store error")
        if fetch.record is not None:
            raise NodeError("Record exists")
        return cls(fetch.spec)


# ═══════════════════════════════════════════════════════════════════════════════
# Outcome Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class OutcomeOk:
    value: Any
    from_cache: bool
    key: str


@dataclass(frozen=True)
class OutcomeError:
    kind: ReplayErrorKind
    message: str
    cause: Any | None


type Outcome = OutcomeOk | OutcomeError


def _store_failed(err: StoreError) -> OutcomeError:
    return OutcomeError(
        kind=ReplayErrorKind.STORE,
        message=err.message,
        cause=err.cause,
    )


def _in_flight(spec: ReplaySpec) -> OutcomeError:
    return OutcomeError(
        kind=ReplayErrorKind.CONFLICT,
        message=f"Call with key {spec.key} is already in flight",
        cause=None,
    )


async def _await_completion(spec: ReplaySpec) -> Outcome:
    """Poll until the in-flight call stores its response."""
    timeout = spec.policy.wait_timeout.total_seconds()
    interval = spec.policy.poll_interval.total_seconds()
    elapsed = 0.0

    while elapsed < timeout:
        await asyncio.sleep(interval)
        elapsed += interval

        match await spec.store.get(spec.key):
            case Error(err):
                return _store_failed(err)
            case Ok(None):
                return OutcomeError(
                    kind=ReplayErrorKind.CONFLICT,
                    message=f"Call with key {spec.key} ended without a response",
                    cause=None,
                )
            case Ok(record) if record.state == RecordState.COMPLETED:
                return OutcomeOk(value=record.value, from_cache=True, key=spec.key)
            case Ok(_):
                pass

    return OutcomeError(
        kind=ReplayErrorKind.TIMEOUT,
        message=f"Timed out waiting for call with key {spec.key}",
        cause=None,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Polymorphic Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@polymorphic[Outcome]
class ReplayOutcome:
    """Routes on the validated state node; cases hold only the behavior."""

    @case
    def store_error(cls, node: StoreFailureNode) -> Outcome:
        return _store_failed(node.error)

    @case
    def replay(cls, node: CompletedReplayNode) -> Outcome:
        """Hand back the stored response. The operation does not run."""
        logger.info("replay_hit", key=node.spec.key)
        return OutcomeOk(value=node.record.value, from_cache=True, key=node.spec.key)

    @case
    def pending_conflict(cls, node: PendingReplayNode) -> Outcome:
        if node.spec.policy.on_pending != OnPending.FAIL:
            raise NodeError("Policy not FAIL")
        return _in_flight(node.spec)

    @case
    async def pending_wait(cls, node: PendingReplayNode) -> Outcome:
        """Poll until the in-flight call stores its response."""
        if node.spec.policy.on_pending != OnPending.WAIT:
            raise NodeError("Policy not WAIT")
        return await _await_completion(node.spec)

    @case
    async def execute_new(cls, node: NoReplayNode) -> Outcome:
        """Claim the key, run the operation, store its response."""
        spec = node.spec

        match await spec.store.set_pending(spec.key):
            case Error(err):
                return _store_failed(err)
            case Ok(False):
                # lost the race to a call that fetched at the same time
                if spec.policy.on_pending == OnPending.WAIT:
                    return await _await_completion(spec)
                match await spec.store.get(spec.key):
                    case Ok(record) if record is not None and record.state == RecordState.COMPLETED:
                        return OutcomeOk(value=record.value, from_cache=True, key=spec.key)
                    case _:
                        return _in_flight(spec)
            case Ok(True):
                pass

        try:
            result = await spec.operation(spec.input_value)
        except Exception as e:
            await spec.store.delete(spec.key)
            return OutcomeError(
                kind=ReplayErrorKind.OPERATION,
                message=str(e),
                cause=e,
            )
        except BaseException:
            # cancelled mid-call: free the key before unwinding
            await asyncio.shield(spec.store.delete(spec.key))
            raise

        match result:
            case Ok(value):
                match await spec.store.set_completed(spec.key, value):
                    case Error(err):
                        return _store_failed(err)
                    case Ok(_):
                        return OutcomeOk(value=value, from_cache=False, key=spec.key)
            case Error(err):
                # failures are not replayed, the key is free for a retry
                await spec.store.delete(spec.key)
                return OutcomeError(
                    kind=ReplayErrorKind.OPERATION,
                    message="Operation returned Error",
                    cause=err,
                )


# ═══════════════════════════════════════════════════════════════════════════════
# Final Node
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FinalReplayNode:
    """Converts Outcome to typed Result."""

    def __init__(self, outcome: Outcome) -> None:
        self.outcome = outcome

    @classmethod
    def __compose__(cls, outcome: ReplayOutcome) -> "FinalReplayNode":
        return cls(outcome.value)

    def to_result(self) -> Result[Replayed[Any], ReplayError[Any]]:
        match self.outcome:
            case OutcomeOk(value=v, from_cache=fc, key=k):
                return Ok(Replayed(value=v, from_cache=fc, key=k))
            case OutcomeError(kind=kind, message=msg, cause=orig):
                return Error(ReplayError(kind=kind, message=msg, cause=orig))


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


async def run_idempotent(
    spec: ReplaySpec,
) -> Result[Replayed[Any], ReplayError[Any]]:
    """Execute one idempotent call via the graph."""
    node = await G.run(FinalReplayNode).inject(spec)
    return node.to_result()


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ReplaySpec",
    "Outcome",
    "OutcomeOk",
    "OutcomeError",
    "FetchReplayNode",
    "StoreFailureNode",
    "CompletedReplayNode",
    "PendingReplayNode",
    "NoReplayNode",
    "ReplayOutcome",
    "FinalReplayNode",
    "run_idempotent",
)
