"""
Graph runner — compose one target node and everything it depends on.

Injected values are matched to `__compose__` parameters by their runtime
type, so each graph gets a small frozen input dataclass of its own
(`Lookup`, `ReplaySpec`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node


@dataclass(frozen=True, slots=True)
class Run[T]:
    """
    Awaitable composition of `target`.

    Example:
        resolved = await run(ResolvedSessionNode).inject(lookup)
    """

    target: type[T]
    inputs: tuple[object, ...] = ()

    def inject(self, *values: object) -> Run[T]:
        return Run(self.target, (*self.inputs, *values))

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        agent = EventLoopAgent.build({cast(type[Node[Any, Any]], self.target)})

        async with Scope(detail=self.target.__name__) as scope:
            for value in self.inputs:
                scope.push(Value(type(value), value))

            execute = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(agent, "run"),
            )
            await execute(scope, {})

            found = scope.get(self.target)
            if found is None:
                raise LookupError(f"{self.target.__name__} was not composed")
            return cast(T, found.value)


def run[T](target: type[T]) -> Run[T]:
    return Run(target)


__all__ = ("Run", "run")
