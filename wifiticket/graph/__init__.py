"""
Graph — nodnod dependency graphs, compiled once.

    from wifiticket import graph as G

    @G.node
    class LoadPayment:
        @classmethod
        async def __compose__(cls, request: Request) -> "LoadPayment":
            return cls(await request.repo.get(request.payment_id))

    pipeline = G.graph(LoadPayment)
    node = await pipeline(request)
"""

from nodnod import scalar_node as node

from wifiticket.graph._compiled import (
    TypedScope,
    Compiled,
    graph,
)

__all__ = (
    "node",
    "TypedScope",
    "Compiled",
    "graph",
)
