"""
Saga — a gateway side effect and the compensation that undoes it.

    from paycore import saga as S

    saga = S.step(charge, compensate=void).then(lambda c: S.step(record(c)))
    match await S.run_chain(saga):
        ...
"""

from paycore.saga._types import (
    Compensator,
    SagaStep,
    Chain,
    step,
    SagaDone,
    SagaFailure,
)
from paycore.saga._run import run, run_chain

__all__ = (
    "Compensator",
    "SagaStep",
    "Chain",
    "step",
    "SagaDone",
    "SagaFailure",
    "run",
    "run_chain",
)
