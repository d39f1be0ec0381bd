"""
Graph execution over nodnod.

nodnod walks the target's __compose__ signatures to find every node it
needs. Inputs are pushed into a fresh scope under their runtime type.
"""

from __future__ import annotations

from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node


type _AgentRun = Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]]


async def resolve[T](target: type[T], *inputs: object) -> T:
    """
    Build target from inputs, running every node it depends on.

        node = await G.resolve(FinalResultNode, creation_spec)
    """
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})

    scope = Scope(detail=f"resolve:{target.__name__}")
    async with scope:
        for value in inputs:
            scope.push(Value(type(value), value))

        await cast(_AgentRun, getattr(agent, "run"))(scope, {})

        produced = scope.get(target)
        if produced is None:
            raise LookupError(f"graph produced no {target.__name__}")
        return cast(T, produced.value)


__all__ = ("resolve",)
