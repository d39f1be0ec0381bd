"""
Graph — declarative decision graphs over nodnod.

    from paycore import graph as G

    @G.node
    class LookupNode:
        def __init__(self, record: PaymentRecord | None) -> None:
            self.record = record

        @classmethod
        async def __compose__(cls, spec: CreationSpec) -> "LookupNode":
            ...

    node = await G.resolve(FinalResultNode, spec)
"""

from nodnod import scalar_node as node

from paycore.graph._run import resolve

__all__ = ("node", "resolve")
