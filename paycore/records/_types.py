"""
Payment record types — the single entity of the core and its write vocabulary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Status — Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentStatus(Enum):
    """
    Status of a payment record.

    Lifecycle:
        PENDING → COMPLETED (gateway confirmed)
                → FAILED (gateway error / timeout)
        COMPLETED → CANCELLED (refund)

    FAILED and CANCELLED are absorbing.
    """

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def is_payable(self) -> bool:
        return self is PaymentStatus.PENDING

    @property
    def is_cancellable(self) -> bool:
        return self is PaymentStatus.COMPLETED

    @property
    def is_revenue(self) -> bool:
        return self is PaymentStatus.COMPLETED

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentStatus.FAILED, PaymentStatus.CANCELLED)

    @property
    def is_live(self) -> bool:
        """Holds its fingerprint: a new record with the same triple is a duplicate."""
        return self in (PaymentStatus.PENDING, PaymentStatus.COMPLETED)


_DESCRIPTIONS = {
    PaymentStatus.PENDING: "Payment pending",
    PaymentStatus.COMPLETED: "Payment completed",
    PaymentStatus.FAILED: "Payment failed",
    PaymentStatus.CANCELLED: "Payment cancelled",
}


# ═══════════════════════════════════════════════════════════════════════════════
# Fingerprint — Idempotency Key
# ═══════════════════════════════════════════════════════════════════════════════


def canonical_amount(amount: Decimal) -> str:
    """
    Exact textual form of an amount.

    Decimal("50000.00") and Decimal("5E+4") both become "50000".
    """
    return format(amount.normalize(), "f")


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """(order_id, user_id, amount) — identifies one logical payment attempt."""

    order_id: str
    user_id: int
    amount: Decimal

    @property
    def key(self) -> str:
        return f"{self.order_id}_{self.user_id}_{canonical_amount(self.amount)}"

    def matches(self, record: PaymentRecord) -> bool:
        return (
            record.order_id == self.order_id
            and record.user_id == self.user_id
            and record.amount == self.amount
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Record — Stored State
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PaymentRecord:
    """
    Immutable snapshot of a stored payment.

    Note: The store owns the row. A snapshot is never mutated and never
    written back; changes go through conditional_update with a Transition.
    """

    id: int
    order_id: str
    user_id: int
    amount: Decimal
    order_name: str
    customer_name: str
    customer_email: str | None
    customer_phone: str | None
    status: PaymentStatus
    created_at: datetime
    gateway_payment_key: str | None = None
    payment_method: str | None = None
    approved_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    cancel_amount: Decimal | None = None
    gateway_raw_response: dict[str, Any] | None = None
    claim_token: str | None = None
    claimed_at: datetime | None = None

    @property
    def fingerprint(self) -> Fingerprint:
        return Fingerprint(self.order_id, self.user_id, self.amount)


@dataclass(frozen=True, slots=True)
class NewPayment:
    """Data for a PENDING record about to be created."""

    order_id: str
    user_id: int
    amount: Decimal
    order_name: str
    customer_name: str
    created_at: datetime
    customer_email: str | None = None
    customer_phone: str | None = None

    @property
    def fingerprint(self) -> Fingerprint:
        return Fingerprint(self.order_id, self.user_id, self.amount)


# ═══════════════════════════════════════════════════════════════════════════════
# Conditional Write Vocabulary
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Guard:
    """
    Precondition of a conditional update.

    status: the record must currently be in this status.
    claim: None  → the record must carry no live claim.
           token → the record must carry exactly this claim.
    stale_before: with claim=None, claims stamped before this instant
                  are treated as abandoned.
    """

    status: PaymentStatus
    claim: str | None = None
    stale_before: datetime | None = None

    def admits(self, record: PaymentRecord) -> bool:
        if record.status is not self.status:
            return False
        if self.claim is not None:
            return record.claim_token == self.claim
        if record.claim_token is None:
            return True
        return (
            self.stale_before is not None
            and record.claimed_at is not None
            and record.claimed_at < self.stale_before
        )


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()
"""Marker: leave the column as it is."""


@dataclass(frozen=True, slots=True)
class Transition:
    """
    Column values written by a conditional update.

    Fields left UNSET are untouched. claim_token/claimed_at are written as given,
    so a terminal transition passes None to release the claim.
    """

    status: PaymentStatus | Any = UNSET
    gateway_payment_key: str | None | Any = UNSET
    payment_method: str | None | Any = UNSET
    approved_at: datetime | None | Any = UNSET
    cancelled_at: datetime | None | Any = UNSET
    cancel_reason: str | None | Any = UNSET
    cancel_amount: Decimal | None | Any = UNSET
    gateway_raw_response: dict[str, Any] | None | Any = UNSET
    claim_token: str | None | Any = UNSET
    claimed_at: datetime | None | Any = UNSET

    def values(self) -> dict[str, Any]:
        """Only the fields that are set."""
        return {
            name: getattr(self, name)
            for name in _TRANSITION_FIELDS
            if getattr(self, name) is not UNSET
        }


_TRANSITION_FIELDS = (
    "status",
    "gateway_payment_key",
    "payment_method",
    "approved_at",
    "cancelled_at",
    "cancel_reason",
    "cancel_amount",
    "gateway_raw_response",
    "claim_token",
    "claimed_at",
)


# ═══════════════════════════════════════════════════════════════════════════════
# Page — Listing Result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Page:
    """A slice of records, newest first."""

    records: tuple[PaymentRecord, ...]
    total: int
    has_more: bool = False


@dataclass(frozen=True, slots=True)
class Tally:
    """Count and amount sum of the records matching a filter."""

    count: int
    total: Decimal


__all__ = (
    "PaymentStatus",
    "canonical_amount",
    "Fingerprint",
    "PaymentRecord",
    "NewPayment",
    "Guard",
    "UNSET",
    "Transition",
    "Page",
    "Tally",
)
