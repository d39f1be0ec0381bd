"""
Read side — client-facing projections of payment records.

No projection carries the claim token, the raw gateway payload or the
gateway payment key.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from kungfu import Result, Ok, Error

from paycore.errors import PaymentError, PaymentErrorKind, PaymentErrors
from paycore.logs import mask_key
from paycore.records import PaymentStatus, PaymentRecord, PaymentStore


REVENUE_STATUSES = tuple(s for s in PaymentStatus if s.is_revenue)


# ═══════════════════════════════════════════════════════════════════════════════
# Projections
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PaymentSummary:
    order_id: str
    amount: Decimal
    order_name: str
    customer_name: str
    status: PaymentStatus
    status_description: str
    payment_method: str | None
    created_at: datetime
    approved_at: datetime | None

    @classmethod
    def from_record(cls, record: PaymentRecord) -> PaymentSummary:
        return cls(
            order_id=record.order_id,
            amount=record.amount,
            order_name=record.order_name,
            customer_name=record.customer_name,
            status=record.status,
            status_description=record.status.description,
            payment_method=record.payment_method,
            created_at=record.created_at,
            approved_at=record.approved_at,
        )


@dataclass(frozen=True, slots=True)
class PaymentDetail:
    """Summary plus contact and cancellation fields. For the owner or an admin."""

    order_id: str
    amount: Decimal
    order_name: str
    customer_name: str
    customer_email: str | None
    customer_phone: str | None
    status: PaymentStatus
    status_description: str
    payment_method: str | None
    created_at: datetime
    approved_at: datetime | None
    cancelled_at: datetime | None
    cancel_reason: str | None
    cancel_amount: Decimal | None

    @classmethod
    def from_record(cls, record: PaymentRecord) -> PaymentDetail:
        return cls(
            order_id=record.order_id,
            amount=record.amount,
            order_name=record.order_name,
            customer_name=record.customer_name,
            customer_email=record.customer_email,
            customer_phone=record.customer_phone,
            status=record.status,
            status_description=record.status.description,
            payment_method=record.payment_method,
            created_at=record.created_at,
            approved_at=record.approved_at,
            cancelled_at=record.cancelled_at,
            cancel_reason=record.cancel_reason,
            cancel_amount=record.cancel_amount,
        )


@dataclass(frozen=True, slots=True)
class PaymentHistory:
    payments: tuple[PaymentSummary, ...]
    total_count: int
    has_more: bool = False


@dataclass(frozen=True, slots=True)
class PaymentStats:
    """
    Dashboard figures for one day. user_payment_count counts every attempt
    of user_id in any status, and is None when no user was asked for.
    """

    day: date
    completed_count: int
    completed_total: Decimal
    user_id: int | None = None
    user_payment_count: int | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentQueries:
    """Read-only operations. Never mutate."""

    def __init__(self, store: PaymentStore, page_size: int = 20) -> None:
        self._store = store
        self._page_size = page_size

    async def history(
        self, user_id: int, status: PaymentStatus | None = None
    ) -> Result[PaymentHistory, PaymentError]:
        """All of a user's payments, newest first."""
        match await self._store.find_by_user(user_id, status):
            case Ok(records):
                return Ok(
                    PaymentHistory(
                        payments=tuple(PaymentSummary.from_record(r) for r in records),
                        total_count=len(records),
                    )
                )
            case Error(err):
                return Error(PaymentErrors.internal(err.message))

    async def listing(
        self,
        status: PaymentStatus | None = None,
        page: int = 0,
        size: int | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> Result[PaymentHistory, PaymentError]:
        """Administrative page over all payments. page is 0-based."""
        size = self._page_size if size is None else size
        if page < 0 or size <= 0:
            return Error(PaymentErrors.invalid_request(f"page={page} size={size}"))
        if (
            created_from is not None
            and created_before is not None
            and created_from >= created_before
        ):
            return Error(
                PaymentErrors.invalid_request(
                    f"empty window {created_from.isoformat()} .. {created_before.isoformat()}"
                )
            )

        found = await self._store.list_all(
            status, page * size, size, created_from=created_from, created_before=created_before
        )
        match found:
            case Ok(found):
                return Ok(
                    PaymentHistory(
                        payments=tuple(PaymentSummary.from_record(r) for r in found.records),
                        total_count=found.total,
                        has_more=found.has_more,
                    )
                )
            case Error(err):
                return Error(PaymentErrors.internal(err.message))

    async def detail(self, order_id: str) -> Result[PaymentDetail, PaymentError]:
        match await find_payment(self._store, order_id):
            case Ok(record):
                return Ok(PaymentDetail.from_record(record))
            case Error(err):
                return Error(err)

    async def by_payment_key(self, payment_key: str) -> Result[PaymentDetail, PaymentError]:
        """Lookup for gateway-initiated traffic (webhooks, reconciliation)."""
        match await self._store.find_by_payment_key(payment_key):
            case Ok(None):
                return Error(
                    PaymentErrors.make(
                        PaymentErrorKind.PAYMENT_NOT_FOUND,
                        f"payment_key={mask_key(payment_key)}",
                    )
                )
            case Ok(record):
                return Ok(PaymentDetail.from_record(record))
            case Error(err):
                return Error(PaymentErrors.internal(err.message))

    async def stats(
        self, day: date, user_id: int | None = None
    ) -> Result[PaymentStats, PaymentError]:
        """Revenue-status payments created on day, plus a user's attempt count."""
        start = datetime.combine(day, time.min)
        match await self._store.tally(
            statuses=REVENUE_STATUSES,
            created_from=start,
            created_before=start + timedelta(days=1),
        ):
            case Error(err):
                return Error(PaymentErrors.internal(err.message))
            case Ok(completed):
                pass

        user_payment_count = None
        if user_id is not None:
            match await self._store.tally(user_id=user_id):
                case Error(err):
                    return Error(PaymentErrors.internal(err.message))
                case Ok(mine):
                    user_payment_count = mine.count

        return Ok(
            PaymentStats(
                day=day,
                completed_count=completed.count,
                completed_total=completed.total,
                user_id=user_id,
                user_payment_count=user_payment_count,
            )
        )


async def find_payment(
    store: PaymentStore, order_id: str
) -> Result[PaymentRecord, PaymentError]:
    """Latest record for order_id, or PAYMENT_NOT_FOUND."""
    match await store.find_by_order_id(order_id):
        case Ok(None):
            return Error(PaymentErrors.not_found(order_id))
        case Ok(record):
            return Ok(record)
        case Error(err):
            return Error(PaymentErrors.internal(err.message))


__all__ = (
    "PaymentSummary",
    "PaymentDetail",
    "PaymentHistory",
    "PaymentStats",
    "REVENUE_STATUSES",
    "PaymentQueries",
    "find_payment",
)
