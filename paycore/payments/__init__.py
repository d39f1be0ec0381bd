"""
Payments — the service facade and its components.

    from paycore import payments as P

    service = P.PaymentService(store, gateway, notifier, settings)

    created = await service.create_payment(
        P.CreatePayment(user_id=1, amount=Decimal("50000"), order_name="Book", customer_name="Kim")
    )
    confirmed = await service.confirm_payment(order_id, payment_key, Decimal("50000"))
    refunded = await service.cancel_payment(order_id, "Customer request")

Flow:
    create  → idempotency guard → PENDING
    confirm → ConfirmationAdapter → COMPLETED | FAILED
    cancel  → CancellationManager → CANCELLED
"""

from paycore.payments._query import (
    PaymentSummary,
    PaymentDetail,
    PaymentHistory,
    PaymentStats,
    REVENUE_STATUSES,
    PaymentQueries,
    find_payment,
)
from paycore.payments._confirm import (
    VOID_REASON,
    Unrecorded,
    VoidFailed,
    ConfirmationAdapter,
)
from paycore.payments._cancel import CancellationManager
from paycore.payments._service import CreatePayment, PaymentService

__all__ = (
    "PaymentSummary",
    "PaymentDetail",
    "PaymentHistory",
    "PaymentStats",
    "REVENUE_STATUSES",
    "PaymentQueries",
    "find_payment",
    "VOID_REASON",
    "Unrecorded",
    "VoidFailed",
    "ConfirmationAdapter",
    "CancellationManager",
    "CreatePayment",
    "PaymentService",
)
