"""
Compiled graph — build the nodnod agent once, run it per request.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node

from wifiticket.log import get_logger


logger = get_logger("graph")


# ═══════════════════════════════════════════════════════════════════════════════
# TypedScope
# ═══════════════════════════════════════════════════════════════════════════════


class TypedScope:
    """Type-safe wrapper around nodnod.Scope."""

    __slots__ = ("_scope",)

    def __init__(self, detail: str = "scope") -> None:
        self._scope = Scope(detail=detail)

    @property
    def inner(self) -> Scope:
        return self._scope

    def inject[T](self, typ: type[T], value: T) -> TypedScope:
        self._scope.push(Value(typ, value))
        return self

    def get[T](self, typ: type[T]) -> T:
        result = self._scope.get(typ)
        if result is None:
            raise KeyError(f"{typ.__name__} not found in scope")
        return cast(T, result.value)

    async def __aenter__(self) -> TypedScope:
        await self._scope.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._scope.__aexit__(*args)


# ═══════════════════════════════════════════════════════════════════════════════
# Compiled
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True, frozen=True)
class Compiled[T]:
    """
    Pre-compiled graph for repeated execution.

    Example:
        pipeline = graph(ConfirmationResultNode)
        node = await pipeline(request)
    """

    _target: type[T]
    _agent: EventLoopAgent

    async def __call__(self, *inputs: object) -> T:
        """Inject each input under its runtime type and resolve the target."""
        started = time.perf_counter()
        async with TypedScope(detail=self._target.__name__) as scope:
            for value in inputs:
                scope.inject(cast(type[Any], type(value)), value)

            run_method = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(self._agent, "run"),
            )
            await run_method(scope.inner, {})
            result = scope.get(self._target)

        logger.debug(
            "graph_resolved",
            target=self._target.__name__,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return result


def graph[T](target: type[T]) -> Compiled[T]:
    """
    Pre-compile a graph.

    nodnod discovers every dependency of the target; compile once at
    service construction.
    """
    agent = EventLoopAgent.build({cast(type[Node[Any, Any]], target)})
    return Compiled(_target=target, _agent=agent)


__all__ = ("TypedScope", "Compiled", "graph")
