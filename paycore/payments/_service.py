"""
Payment service — the exposed contract of the core.

Every operation returns Result[projection, PaymentError]. The calling layer
maps Ok to {success: true, ...} and Error to {success: false, message}.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

import structlog
from kungfu import Result, Ok, Error

from paycore import idempotency as I
from paycore._types import Money, Clock, system_clock
from paycore.config import PaymentSettings, get_settings
from paycore.errors import PaymentError, PaymentErrors
from paycore.events import Notifier, LoggingNotifier
from paycore.gateway import Gateway
from paycore.lifecycle import LifecycleManager
from paycore.logs import mask_key
from paycore.records import PaymentStatus, PaymentStore, NewPayment
from paycore.payments._amount import as_money
from paycore.payments._query import (
    PaymentSummary,
    PaymentDetail,
    PaymentHistory,
    PaymentStats,
    PaymentQueries,
)
from paycore.payments._confirm import ConfirmationAdapter
from paycore.payments._cancel import CancellationManager


log = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Request
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CreatePayment:
    """
    A payment request. order_id is generated when omitted or blank.

    amount must be Decimal or int; floats are refused.
    """

    user_id: int
    amount: Money
    order_name: str
    customer_name: str
    order_id: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentService:
    """
    Facade over the payment core.

    Example:
        service = PaymentService(store, gateway, settings=get_settings())

        match await service.create_payment(CreatePayment(...)):
            case Ok(summary):
                ...
            case Error(err):
                respond(err.code, err.message)
    """

    def __init__(
        self,
        store: PaymentStore,
        gateway: Gateway,
        notifier: Notifier | None = None,
        settings: PaymentSettings | None = None,
        clock: Clock = system_clock,
    ) -> None:
        settings = settings or get_settings()
        notifier = notifier or LoggingNotifier()

        self._store = store
        self._clock = clock
        self._order_id_prefix = settings.order_id_prefix

        lifecycle = LifecycleManager(store, clock=clock, claim_ttl=settings.claim_ttl)
        timeout = settings.gateway_timeout_seconds
        self._confirmation = ConfirmationAdapter(
            store, gateway, lifecycle, notifier, timeout=timeout, clock=clock
        )
        self._cancellation = CancellationManager(
            store, gateway, lifecycle, notifier, timeout=timeout, clock=clock
        )
        self._queries = PaymentQueries(store, page_size=settings.history_page_size)

    # ───────────────────────────────────────────────────────────────────────────
    # Commands
    # ───────────────────────────────────────────────────────────────────────────

    async def create_payment(
        self, request: CreatePayment
    ) -> Result[PaymentSummary, PaymentError]:
        match self._validate(request):
            case Error(err):
                _log_rejection("payment.create_rejected", err, order_id=request.order_id)
                return Error(err)
            case Ok(amount):
                pass

        order_id = (request.order_id or "").strip() or self._new_order_id()
        payment = NewPayment(
            order_id=order_id,
            user_id=request.user_id,
            amount=amount,
            order_name=request.order_name.strip(),
            customer_name=request.customer_name.strip(),
            created_at=self._clock(),
            customer_email=request.customer_email,
            customer_phone=request.customer_phone,
        )

        match await I.guard_creation(I.CreationSpec(payment=payment, store=self._store)):
            case Ok(record):
                log.info(
                    "payment.created",
                    order_id=record.order_id,
                    user_id=record.user_id,
                    amount=str(record.amount),
                )
                return Ok(PaymentSummary.from_record(record))
            case Error(err):
                _log_rejection("payment.create_rejected", err, order_id=order_id)
                return Error(err)

    async def confirm_payment(
        self,
        order_id: str,
        gateway_key: str,
        claimed_amount: Money,
    ) -> Result[PaymentSummary, PaymentError]:
        log.info(
            "payment.confirm_requested",
            order_id=order_id,
            payment_key=mask_key(gateway_key),
        )
        match await self._confirmation.confirm(order_id, gateway_key, claimed_amount):
            case Ok(record):
                return Ok(PaymentSummary.from_record(record))
            case Error(err):
                _log_rejection("payment.confirm_rejected", err, order_id=order_id)
                return Error(err)

    async def cancel_payment(
        self,
        order_id: str,
        reason: str,
        amount: Money | None = None,
    ) -> Result[PaymentDetail, PaymentError]:
        log.info("payment.cancel_requested", order_id=order_id, reason=reason)
        match await self._cancellation.cancel(order_id, reason, amount):
            case Ok(record):
                return Ok(PaymentDetail.from_record(record))
            case Error(err):
                _log_rejection("payment.cancel_rejected", err, order_id=order_id)
                return Error(err)

    # ───────────────────────────────────────────────────────────────────────────
    # Queries
    # ───────────────────────────────────────────────────────────────────────────

    async def get_history(
        self, user_id: int, status: PaymentStatus | None = None
    ) -> Result[PaymentHistory, PaymentError]:
        return await self._queries.history(user_id, status)

    async def list_payments(
        self,
        status: PaymentStatus | None = None,
        page: int = 0,
        size: int | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> Result[PaymentHistory, PaymentError]:
        """Admin page; the optional window is [created_from, created_before)."""
        return await self._queries.listing(
            status, page, size, created_from=created_from, created_before=created_before
        )

    async def get_detail(self, order_id: str) -> Result[PaymentDetail, PaymentError]:
        return await self._queries.detail(order_id)

    async def get_by_payment_key(
        self, payment_key: str
    ) -> Result[PaymentDetail, PaymentError]:
        return await self._queries.by_payment_key(payment_key)

    async def get_stats(
        self, user_id: int | None = None
    ) -> Result[PaymentStats, PaymentError]:
        """Today's revenue figures by the service clock."""
        return await self._queries.stats(self._clock().date(), user_id)

    # ───────────────────────────────────────────────────────────────────────────
    # Helpers
    # ───────────────────────────────────────────────────────────────────────────

    def _validate(self, request: CreatePayment) -> Result[Decimal, PaymentError]:
        """Ok(amount as Decimal) or the first validation error."""
        match as_money(request.amount):
            case Error(err):
                return Error(err)
            case Ok(amount):
                pass
        if amount <= 0:
            return Error(PaymentErrors.invalid_amount(f"amount={amount}"))

        if isinstance(request.user_id, bool) or request.user_id <= 0:
            return Error(PaymentErrors.invalid_request(f"user_id={request.user_id}"))
        if not request.order_name or not request.order_name.strip():
            return Error(PaymentErrors.invalid_request("order_name is blank"))
        if not request.customer_name or not request.customer_name.strip():
            return Error(PaymentErrors.invalid_request("customer_name is blank"))

        return Ok(amount)

    def _new_order_id(self) -> str:
        """PREFIX_<epoch millis>_<8 hex>, e.g. ORDER_1703123456789_a1b2c3d4."""
        millis = int(self._clock().timestamp() * 1000)
        return f"{self._order_id_prefix}_{millis}_{uuid.uuid4().hex[:8]}"


def _log_rejection(event: str, err: PaymentError, **fields: object) -> None:
    # Client mistakes at info, everything else at warning.
    emit = log.info if err.kind.is_validation else log.warning
    emit(event, code=err.code, reason=err.detail, **fields)


__all__ = ("CreatePayment", "PaymentService")
