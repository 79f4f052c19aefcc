"""
Idempotency — replay cache for mutating calls, run as a nodnod graph.

    from bouquet import idempotency as I

    executor = (
        I.idempotent(create_checkout)
        .key(lambda req: f"checkout.create:{req.idempotency_key}")
        .store(I.MemoryReplayStore())
        .policy(I.Policy().with_on_pending(I.WAIT))
        .build()
    )
    result = await executor.run(request)   # Ok(Replayed(value, from_cache, key))

A seen key returns the stored response without running the operation. There
is no per-key TTL; the store is cleared as a whole on a fixed interval.

Architecture — state nodes validate, polymorphic routes:

    ReplaySpec → FetchReplayNode
                          │
         ┌────────────────┼─────────────────┐
         ▼                ▼                 ▼
    StoreFailureNode  CompletedReplayNode  NoReplayNode
                      PendingReplayNode
         │                │                 │
         └────────────────┼─────────────────┘
                          ▼
               ReplayOutcome (@polymorphic)
                          ▼
                   FinalReplayNode
"""

from bouquet.idempotency._types import (
    RecordState,
    ReplayRecord,
    Replayed,
    ReplayError,
    ReplayErrorKind,
)
from bouquet.idempotency._store import (
    ReplayStore,
    ReplayStoreAny,
    MemoryReplayStore,
)
from bouquet.idempotency._policy import (
    Policy,
    OnPending,
    WAIT,
    FAIL,
)
from bouquet.idempotency._graph import (
    ReplaySpec,
    run_idempotent,
    Outcome,
    OutcomeOk,
    OutcomeError,
    FetchReplayNode,
    StoreFailureNode,
    CompletedReplayNode,
    PendingReplayNode,
    NoReplayNode,
    ReplayOutcome,
    FinalReplayNode,
)
from bouquet.idempotency._builder import (
    idempotent,
    Idempotent,
    IdempotentExecutor,
)

__all__ = (
    # Types
    "RecordState",
    "ReplayRecord",
    "Replayed",
    "ReplayError",
    "ReplayErrorKind",
    # Store
    "ReplayStore",
    "ReplayStoreAny",
    "MemoryReplayStore",
    # Policy
    "Policy",
    "OnPending",
    "WAIT",
    "FAIL",
    # Spec & API
    "ReplaySpec",
    "run_idempotent",
    # Outcome
    "Outcome",
    "OutcomeOk",
    "OutcomeError",
    # Nodes
    "FetchReplayNode",
    "StoreFailureNode",
    "CompletedReplayNode",
    "PendingReplayNode",
    "NoReplayNode",
    "ReplayOutcome",
    "FinalReplayNode",
    # Builder
    "idempotent",
    "Idempotent",
    "IdempotentExecutor",
)
