"""
Saga values.

A step is a lazy action plus the compensator that undoes its side effect.
The compensator is only registered once the action has succeeded.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from kungfu import LazyCoroResult


type Compensator[T] = Callable[[T], Awaitable[None]]
"""Receives the value of the step it undoes. Raising marks the undo as failed."""


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None = None

    def then[U, E2](self, next_step: Callable[[T], SagaStep[U, E2]]) -> Chain[T, U, E, E2]:
        return Chain(self, next_step)


@dataclass(frozen=True, slots=True)
class Chain[T, U, E, E2]:
    """first, then a step built from first's value."""

    first: SagaStep[T, E]
    next_step: Callable[[T], SagaStep[U, E2]]


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """
        charge = S.step(confirm_at_gateway, compensate=void_charge)
        saga = charge.then(lambda c: S.step(record_completion(c)))
    """
    return SagaStep(action, compensate)


# ═══════════════════════════════════════════════════════════════════════════════
# Outcomes
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaDone[T]:
    value: T
    steps: int


@dataclass(frozen=True, slots=True)
class SagaFailure[E]:
    """
    The error of the step that failed (failed_at is 1-based), and how the
    rollback of the earlier steps went.
    """

    error: E
    failed_at: int
    undone: int = 0
    undo_failed: int = 0

    @property
    def rollback_complete(self) -> bool:
        return self.undo_failed == 0


__all__ = (
    "Compensator",
    "SagaStep",
    "Chain",
    "step",
    "SagaDone",
    "SagaFailure",
)
