"""
Saga execution. On failure, registered compensators run newest first.
"""

from __future__ import annotations

from typing import Any

import structlog
from kungfu import Result, Ok, Error

from paycore.saga._types import Compensator, SagaStep, Chain, SagaDone, SagaFailure


log = structlog.get_logger(__name__)


class _Undo:
    """Compensators of the steps that succeeded so far."""

    __slots__ = ("_pending",)

    def __init__(self) -> None:
        self._pending: list[tuple[Any, Compensator[Any]]] = []

    async def attempt[T, E](self, saga_step: SagaStep[T, E]) -> Result[T, E]:
        match await saga_step.action:
            case Ok(value):
                if saga_step.compensate is not None:
                    self._pending.append((value, saga_step.compensate))
                return Ok(value)
            case Error(e):
                return Error(e)

    async def fail[E](self, error: E, failed_at: int) -> SagaFailure[E]:
        undone = 0
        undo_failed = 0
        while self._pending:
            value, compensate = self._pending.pop()
            try:
                await compensate(value)
            except Exception:
                undo_failed += 1
                log.exception(
                    "saga.compensation_failed",
                    compensator=getattr(compensate, "__name__", repr(compensate)),
                    failed_at=failed_at,
                )
            else:
                undone += 1
        return SagaFailure(error, failed_at, undone, undo_failed)


async def run[T, E](saga: SagaStep[T, E]) -> Result[SagaDone[T], SagaFailure[E]]:
    """A single step. Its own compensator never runs: nothing after it can fail."""
    undo = _Undo()
    match await undo.attempt(saga):
        case Ok(value):
            return Ok(SagaDone(value, 1))
        case Error(e):
            return Error(await undo.fail(e, 1))


async def run_chain[T, U, E, E2](
    chain: Chain[T, U, E, E2],
) -> Result[SagaDone[U], SagaFailure[E | E2]]:
    """
    First step, then the step built from its value. A failing second step
    undoes the first.

        match await S.run_chain(saga):
            case Ok(done):
                done.value
            case Error(failed) if failed.failed_at == 2:
                failed.rollback_complete
    """
    undo = _Undo()

    match await undo.attempt(chain.first):
        case Error(e):
            return Error(await undo.fail(e, 1))
        case Ok(value):
            pass

    match await undo.attempt(chain.next_step(value)):
        case Ok(final):
            return Ok(SagaDone(final, 2))
        case Error(e2):
            return Error(await undo.fail(e2, 2))


__all__ = ("run", "run_chain")
