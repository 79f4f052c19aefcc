"""
Graph — nodnod node declarations plus a runner.

    from bouquet import graph as G

    @G.node
    class FetchSessionNode:
        @classmethod
        async def __compose__(cls, lookup: Lookup) -> "FetchSessionNode":
            ...

    fetched = await G.run(FetchSessionNode).inject(lookup)

Used by the session lookup (`checkout._lookup`) and the replay cache
(`idempotency._graph`).
"""

from nodnod import scalar_node as node

from bouquet.graph._run import Run, run

__all__ = (
    "node",
    "run",
    "Run",
)
