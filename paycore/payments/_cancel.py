"""
Cancellation / refund — COMPLETED → CANCELLED.

A gateway failure leaves the record COMPLETED with its lease released,
so the same cancellation can simply be retried.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from kungfu import Result, Ok, Error

from paycore._types import Clock, Money, system_clock
from paycore.errors import PaymentError, PaymentErrors
from paycore.events import Notifier, PaymentEvent, notify
from paycore.gateway import Gateway, within_timeout
from paycore.lifecycle import Lease, LifecycleManager, check_transition
from paycore.logs import mask_key
from paycore.records import PaymentStatus, PaymentRecord, PaymentStore
from paycore.payments._amount import as_money
from paycore.payments._query import find_payment


log = structlog.get_logger(__name__)


class CancellationManager:
    def __init__(
        self,
        store: PaymentStore,
        gateway: Gateway,
        lifecycle: LifecycleManager,
        notifier: Notifier,
        timeout: float = 10.0,
        clock: Clock = system_clock,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._lifecycle = lifecycle
        self._notifier = notifier
        self._timeout = timeout
        self._clock = clock

    async def cancel(
        self,
        order_id: str,
        reason: str,
        amount: Money | None = None,
    ) -> Result[PaymentRecord, PaymentError]:
        """Refund amount (whole payment when None)."""
        match await find_payment(self._store, order_id):
            case Error(err):
                return Error(err)
            case Ok(record):
                pass

        match check_transition(record, PaymentStatus.CANCELLED):
            case Error(err):
                return Error(err)
            case Ok(_):
                pass

        match as_money(record.amount if amount is None else amount, "cancel_amount"):
            case Error(err):
                return Error(err)
            case Ok(cancel_amount):
                pass
        if cancel_amount <= 0 or cancel_amount > record.amount:
            return Error(
                PaymentErrors.invalid_amount(
                    f"order_id={order_id} cancel_amount={cancel_amount} amount={record.amount}"
                )
            )

        if not reason or not reason.strip():
            return Error(PaymentErrors.invalid_request("cancel reason is blank"))

        match await self._lifecycle.claim(record, PaymentStatus.CANCELLED):
            case Error(err):
                return Error(err)
            case Ok(lease):
                pass

        return await self._refund(lease, reason.strip(), cancel_amount)

    async def _refund(
        self, lease: Lease, reason: str, amount: Decimal
    ) -> Result[PaymentRecord, PaymentError]:
        record = lease.record
        payment_key = record.gateway_payment_key
        if payment_key is None:
            await self._lifecycle.release(lease)
            return Error(
                PaymentErrors.internal(f"order_id={record.order_id} completed without a key")
            )

        log.info(
            "payment.cancel_started",
            order_id=record.order_id,
            payment_key=mask_key(payment_key),
            amount=str(amount),
        )

        refunded = await within_timeout(
            self._timeout,
            lambda: self._gateway.cancel(payment_key, amount, reason),
        )

        match refunded:
            case Error(failure):
                log.warning(
                    "payment.cancel_failed",
                    order_id=record.order_id,
                    payment_key=mask_key(payment_key),
                    reason=failure.describe(),
                )
                match await self._lifecycle.release(lease):
                    case Error(err):
                        log.error(
                            "payment.release_failed",
                            order_id=record.order_id,
                            reason=err.detail,
                        )
                return Error(PaymentErrors.gateway(failure.describe()))
            case Ok(_):
                pass

        match await self._lifecycle.cancel(lease, reason=reason, amount=amount):
            case Ok(cancelled):
                log.info(
                    "payment.cancelled",
                    order_id=record.order_id,
                    cancel_amount=str(amount),
                )
                await notify(
                    self._notifier,
                    PaymentEvent.transition(record, cancelled, self._clock(), reason=reason),
                )
                return Ok(cancelled)
            case Error(err):
                # Refunded at the gateway, not recorded here.
                log.error(
                    "payment.cancel_not_recorded",
                    order_id=record.order_id,
                    payment_key=mask_key(payment_key),
                    cancel_amount=str(amount),
                    reason=err.detail,
                )
                return Error(PaymentErrors.internal(err.detail or err.message))


__all__ = ("CancellationManager",)
