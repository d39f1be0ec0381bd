"""
Transition table of the payment state machine.

    PENDING ──confirm──▶ COMPLETED ──cancel──▶ CANCELLED
       │
       └──failure──▶ FAILED
"""

from __future__ import annotations

from kungfu import Result, Ok, Error

from paycore.errors import PaymentError, PaymentErrors
from paycore.records import PaymentStatus, PaymentRecord


ALLOWED: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.CANCELLED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
}


def can_transition(source: PaymentStatus, target: PaymentStatus) -> bool:
    return target in ALLOWED[source]


def check_transition(
    record: PaymentRecord, target: PaymentStatus
) -> Result[PaymentRecord, PaymentError]:
    """Ok(record) if record may move to target, else the matching error."""
    if can_transition(record.status, target):
        return Ok(record)
    if record.status is PaymentStatus.CANCELLED and target is PaymentStatus.CANCELLED:
        return Error(PaymentErrors.already_cancelled(record.order_id))
    return Error(
        PaymentErrors.invalid_state(
            f"order_id={record.order_id} {record.status.value} -> {target.value} not allowed"
        )
    )


__all__ = ("ALLOWED", "can_transition", "check_transition")
