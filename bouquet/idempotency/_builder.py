"""
idempotent() — wrap an operation so that a repeated key replays its response.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace

from kungfu import LazyCoroResult, Ok, Result

from bouquet.idempotency._graph import ReplaySpec, run_idempotent
from bouquet.idempotency._policy import Policy
from bouquet.idempotency._store import MemoryReplayStore, ReplayStoreAny
from bouquet.idempotency._types import ReplayError, Replayed


type KeyFn[K] = Callable[[K], str]


@dataclass(slots=True, frozen=True)
class Idempotent[K, T, E]:
    _operation: Callable[[K], LazyCoroResult[T, E]]
    _key_fn: KeyFn[K] | None = None
    _store: ReplayStoreAny | None = None
    _policy: Policy = Policy()

    def key(self, fn: KeyFn[K]) -> Idempotent[K, T, E]:
        """Cache key for a request; namespace it per operation."""
        return replace(self, _key_fn=fn)

    def store(self, store: ReplayStoreAny) -> Idempotent[K, T, E]:
        return replace(self, _store=store)

    def policy(self, policy: Policy) -> Idempotent[K, T, E]:
        return replace(self, _policy=policy)

    def build(self) -> IdempotentExecutor[K, T, E]:
        if self._key_fn is None:
            raise ValueError("key() is required")
        return IdempotentExecutor(
            operation=self._operation,
            key_fn=self._key_fn,
            store=self._store if self._store is not None else MemoryReplayStore(),
            policy=self._policy,
        )


@dataclass(slots=True, frozen=True)
class IdempotentExecutor[K, T, E]:
    """Built once per operation, run once per request."""

    operation: Callable[[K], LazyCoroResult[T, E]]
    key_fn: KeyFn[K]
    store: ReplayStoreAny
    policy: Policy

    def run(self, request: K) -> LazyCoroResult[Replayed[T], ReplayError[E]]:
        spec = ReplaySpec(
            key=self.key_fn(request),
            input_value=request,
            operation=self.operation,
            store=self.store,
            policy=self.policy,
        )

        async def execute() -> Result[Replayed[T], ReplayError[E]]:
            return await run_idempotent(spec)

        return LazyCoroResult(execute)

    async def forget(self, request: K) -> bool:
        """Drop the stored response for this request's key."""
        match await self.store.delete(self.key_fn(request)):
            case Ok(deleted):
                return deleted
            case _:
                return False


def idempotent[K, T, E](
    operation: Callable[[K], LazyCoroResult[T, E]],
) -> Idempotent[K, T, E]:
    """
    Example:
        complete_once = (
            I.idempotent(complete)
            .key(lambda req: f"checkout.complete:{req.checkout_id}:{req.idempotency_key}")
            .store(replays)
            .build()
        )

        match await complete_once.run(request):
            case Ok(I.Replayed(reply, from_cache=True)):
                ...
    """
    return Idempotent(operation)


__all__ = (
    "Idempotent",
    "IdempotentExecutor",
    "idempotent",
)
