"""
Payment errors — typed failure values returned through kungfu.Result.

Every operation of the core returns Result[T, PaymentError]. Nothing raises
across the state-transition boundary.

    match await service.confirm_payment(order_id, key, amount):
        case Ok(summary):
            ...
        case Error(err):
            respond(err.code, err.message)  # message is safe to show
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# ═══════════════════════════════════════════════════════════════════════════════
# Error Kinds
# ═══════════════════════════════════════════════════════════════════════════════


GENERIC_FAILURE_MESSAGE = "Payment processing failed. Please try again later."


class PaymentErrorKind(Enum):
    """
    Failure taxonomy.

    Value is (code, user message). The code is stable and meant for the
    calling layer's status-code mapping.
    """

    DUPLICATE_REQUEST = ("DUPLICATE_PAYMENT", "This payment request has already been submitted.")
    PAYMENT_NOT_FOUND = ("PAYMENT_NOT_FOUND", "Payment information could not be found.")
    INVALID_STATE_TRANSITION = (
        "INVALID_PAYMENT_STATE",
        "This payment cannot be processed in its current state.",
    )
    AMOUNT_MISMATCH = ("AMOUNT_MISMATCH", "The payment amount does not match the order.")
    INVALID_AMOUNT = ("INVALID_AMOUNT", "The payment amount is not valid.")
    ALREADY_CANCELLED = ("PAYMENT_CANCELLED", "This payment has already been cancelled.")
    INVALID_REQUEST = ("INVALID_REQUEST", "The payment request is not valid.")
    GATEWAY_ERROR = ("GATEWAY_ERROR", GENERIC_FAILURE_MESSAGE)
    INTERNAL_ERROR = ("INTERNAL_SERVER_ERROR", GENERIC_FAILURE_MESSAGE)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def default_message(self) -> str:
        return self.value[1]

    @property
    def is_validation(self) -> bool:
        """Detected before any external call; state is never touched."""
        return self not in (PaymentErrorKind.GATEWAY_ERROR, PaymentErrorKind.INTERNAL_ERROR)


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PaymentError:
    """
    Typed payment failure.

    message: user-facing, generic, safe to render.
    detail: internal description for logs. Never shown to the client.
    """

    kind: PaymentErrorKind
    message: str
    detail: str | None = None

    @property
    def code(self) -> str:
        return self.kind.code


class PaymentErrors:
    """Constructors for each failure kind."""

    @staticmethod
    def make(kind: PaymentErrorKind, detail: str | None = None) -> PaymentError:
        return PaymentError(kind, kind.default_message, detail)

    @staticmethod
    def duplicate(detail: str | None = None) -> PaymentError:
        return PaymentErrors.make(PaymentErrorKind.DUPLICATE_REQUEST, detail)

    @staticmethod
    def not_found(order_id: str) -> PaymentError:
        return PaymentErrors.make(PaymentErrorKind.PAYMENT_NOT_FOUND, f"order_id={order_id}")

    @staticmethod
    def invalid_state(detail: str) -> PaymentError:
        return PaymentErrors.make(PaymentErrorKind.INVALID_STATE_TRANSITION, detail)

    @staticmethod
    def amount_mismatch(detail: str) -> PaymentError:
        return PaymentErrors.make(PaymentErrorKind.AMOUNT_MISMATCH, detail)

    @staticmethod
    def invalid_amount(detail: str) -> PaymentError:
        return PaymentErrors.make(PaymentErrorKind.INVALID_AMOUNT, detail)

    @staticmethod
    def already_cancelled(order_id: str) -> PaymentError:
        return PaymentErrors.make(PaymentErrorKind.ALREADY_CANCELLED, f"order_id={order_id}")

    @staticmethod
    def invalid_request(detail: str) -> PaymentError:
        return PaymentErrors.make(PaymentErrorKind.INVALID_REQUEST, detail)

    @staticmethod
    def gateway(detail: str) -> PaymentError:
        return PaymentErrors.make(PaymentErrorKind.GATEWAY_ERROR, detail)

    @staticmethod
    def internal(detail: str) -> PaymentError:
        return PaymentErrors.make(PaymentErrorKind.INTERNAL_ERROR, detail)


__all__ = (
    "GENERIC_FAILURE_MESSAGE",
    "PaymentErrorKind",
    "PaymentError",
    "PaymentErrors",
)
