"""
Idempotency — one live payment per (order_id, user_id, amount).

    from paycore import idempotency as I

    result = await I.guard_creation(I.CreationSpec(payment=new_payment, store=store))

    match result:
        case Ok(record):
            ...  # fresh PENDING record
        case Error(err):
            ...  # DUPLICATE_PAYMENT or INTERNAL_SERVER_ERROR

PENDING and COMPLETED records hold their fingerprint. FAILED and CANCELLED
records release it, so the same order can be paid again after a failure.
"""

from paycore.idempotency._graph import (
    CreationSpec,
    Outcome,
    Created,
    Rejected,
    SpecNode,
    LookupNode,
    StoreErrorNode,
    DuplicateNode,
    FreshNode,
    CreationOutcome,
    FinalResultNode,
    guard_creation,
)

__all__ = (
    "CreationSpec",
    "Outcome",
    "Created",
    "Rejected",
    "SpecNode",
    "LookupNode",
    "StoreErrorNode",
    "DuplicateNode",
    "FreshNode",
    "CreationOutcome",
    "FinalResultNode",
    "guard_creation",
)
