"""
paycore — idempotent payment processing against an external gateway.

    from paycore import payments as P      # Service facade
    from paycore import records as R       # Payment entity + stores
    from paycore import gateway as GW      # Gateway adapters
    from paycore import lifecycle as LC    # State machine
    from paycore import idempotency as I   # Duplicate-request guard
"""

from paycore import graph
from paycore import saga
from paycore import records
from paycore import idempotency
from paycore import lifecycle
from paycore import gateway
from paycore import payments
from paycore._types import Lazy, Money, Clock
from paycore.config import PaymentSettings, get_settings
from paycore.errors import PaymentError, PaymentErrorKind, PaymentErrors
from paycore.events import PaymentEvent, MemoryNotifier, LoggingNotifier
from paycore.logs import configure_logging, mask_key
from paycore.records import PaymentStatus
from paycore.payments import (
    CreatePayment,
    PaymentService,
    PaymentSummary,
    PaymentDetail,
    PaymentHistory,
    PaymentStats,
)

__version__ = "0.1.0"

__all__ = (
    "graph",
    "saga",
    "records",
    "idempotency",
    "lifecycle",
    "gateway",
    "payments",
    "Lazy",
    "Money",
    "Clock",
    "PaymentSettings",
    "get_settings",
    "PaymentError",
    "PaymentErrorKind",
    "PaymentErrors",
    "PaymentEvent",
    "MemoryNotifier",
    "LoggingNotifier",
    "configure_logging",
    "mask_key",
    "PaymentStatus",
    "CreatePayment",
    "PaymentService",
    "PaymentSummary",
    "PaymentDetail",
    "PaymentHistory",
    "PaymentStats",
)
