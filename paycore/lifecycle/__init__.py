"""
Lifecycle — the payment state machine.

    from paycore import lifecycle as LC

    manager = LC.LifecycleManager(store, clock=clock, claim_ttl=settings.claim_ttl)

    match await manager.claim(record, PaymentStatus.COMPLETED):
        case Ok(lease):
            await manager.complete(lease, payment_key=key, method="CARD", raw=payload)
        case Error(err):
            ...  # INVALID_PAYMENT_STATE: someone else holds it or it moved on
"""

from paycore.lifecycle._rules import (
    ALLOWED,
    can_transition,
    check_transition,
)
from paycore.lifecycle._manager import (
    Lease,
    LifecycleManager,
)

__all__ = (
    "ALLOWED",
    "can_transition",
    "check_transition",
    "Lease",
    "LifecycleManager",
)
