"""
Gateway confirmation — PENDING → COMPLETED | FAILED.

Order of checks (1-4 never write):
    1. record exists for order_id
    2. record is PENDING
    3. claimed amount == stored amount (exact decimal)
    4. lease taken
    5. gateway confirm, bounded by the configured timeout
    6. COMPLETED written under the lease

Steps 5-6 run as a saga. If the gateway charged but the COMPLETED write
is refused, the charge is voided through gateway cancel before the record
is marked FAILED.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from kungfu import Result, Ok, Error, LazyCoroResult

from paycore import saga as S
from paycore._types import Lazy, Money, Clock, system_clock
from paycore.errors import PaymentError, PaymentErrors
from paycore.events import Notifier, PaymentEvent, notify
from paycore.gateway import (
    Gateway,
    GatewayConfirmation,
    GatewayFailure,
    within_timeout,
)
from paycore.lifecycle import Lease, LifecycleManager, check_transition
from paycore.logs import mask_key
from paycore.records import PaymentStatus, PaymentRecord, PaymentStore
from paycore.payments._amount import as_money
from paycore.payments._query import find_payment


log = structlog.get_logger(__name__)

VOID_REASON = "Confirmation could not be recorded"
APPROVED_STATUS = "DONE"


# ═══════════════════════════════════════════════════════════════════════════════
# Internal failure values
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Unrecorded:
    """The gateway confirmed, but the confirmation was not accepted locally."""

    error: PaymentError
    confirmation: GatewayConfirmation


class VoidFailed(Exception):
    """Raised by the void compensator so the saga counts it as failed."""

    def __init__(self, failure: GatewayFailure) -> None:
        super().__init__(failure.describe())
        self.failure = failure


type ConfirmFailure = GatewayFailure | Unrecorded


# ═══════════════════════════════════════════════════════════════════════════════
# Adapter
# ═══════════════════════════════════════════════════════════════════════════════


class ConfirmationAdapter:
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

    async def confirm(
        self,
        order_id: str,
        gateway_key: str,
        claimed_amount: Money,
    ) -> Result[PaymentRecord, PaymentError]:
        match as_money(claimed_amount, "claimed_amount"):
            case Error(err):
                return Error(err)
            case Ok(claimed_amount):
                pass

        match await find_payment(self._store, order_id):
            case Error(err):
                return Error(err)
            case Ok(record):
                pass

        match check_transition(record, PaymentStatus.COMPLETED):
            case Error(err):
                return Error(err)
            case Ok(_):
                pass

        if claimed_amount != record.amount:
            log.warning(
                "payment.amount_mismatch",
                order_id=order_id,
                claimed=str(claimed_amount),
                stored=str(record.amount),
            )
            return Error(
                PaymentErrors.amount_mismatch(
                    f"order_id={order_id} claimed={claimed_amount} stored={record.amount}"
                )
            )

        match await self._lifecycle.claim(record, PaymentStatus.COMPLETED):
            case Error(err):
                return Error(err)
            case Ok(lease):
                pass

        log.info(
            "payment.confirm_started",
            order_id=order_id,
            payment_key=mask_key(gateway_key),
            amount=str(record.amount),
        )

        saga = S.step(
            self._charge(lease, gateway_key),
            compensate=self._voider(lease),
        ).then(lambda confirmation: S.step(self._record(lease, confirmation)))

        match await S.run_chain(saga):
            case Ok(done):
                completed = done.value
                log.info(
                    "payment.confirmed",
                    order_id=order_id,
                    payment_key=mask_key(gateway_key),
                    method=completed.payment_method,
                )
                await notify(
                    self._notifier,
                    PaymentEvent.transition(lease.record, completed, self._clock()),
                )
                return Ok(completed)
            case Error(failed):
                return Error(await self._settle_failure(lease, gateway_key, failed))

    # ───────────────────────────────────────────────────────────────────────────
    # Saga steps
    # ───────────────────────────────────────────────────────────────────────────

    def _charge(
        self, lease: Lease, gateway_key: str
    ) -> Lazy[GatewayConfirmation, GatewayFailure]:
        record = lease.record

        async def charge() -> Result[GatewayConfirmation, GatewayFailure]:
            return await within_timeout(
                self._timeout,
                lambda: self._gateway.confirm(gateway_key, record.order_id, record.amount),
            )

        return LazyCoroResult(charge)

    def _record(
        self, lease: Lease, confirmation: GatewayConfirmation
    ) -> Lazy[PaymentRecord, Unrecorded]:
        async def record() -> Result[PaymentRecord, Unrecorded]:
            rejected = _verify(confirmation, lease.record)
            if rejected is not None:
                return Error(Unrecorded(PaymentErrors.gateway(rejected), confirmation))

            completed = await self._lifecycle.complete(
                lease,
                payment_key=confirmation.payment_key,
                method=confirmation.method,
                raw=confirmation.raw,
                approved_at=confirmation.approved_at,
            )
            match completed:
                case Ok(updated):
                    return Ok(updated)
                case Error(err):
                    return Error(
                        Unrecorded(
                            PaymentErrors.internal(err.detail or err.message),
                            confirmation,
                        )
                    )

        return LazyCoroResult(record)

    def _voider(self, lease: Lease) -> S.Compensator[GatewayConfirmation]:
        async def void_confirmation(confirmation: GatewayConfirmation) -> None:
            result = await within_timeout(
                self._timeout,
                lambda: self._gateway.cancel(
                    confirmation.payment_key, lease.record.amount, VOID_REASON
                ),
            )
            match result:
                case Error(failure):
                    raise VoidFailed(failure)
                case Ok(_):
                    log.warning(
                        "payment.voided",
                        order_id=lease.record.order_id,
                        payment_key=mask_key(confirmation.payment_key),
                    )

        return void_confirmation

    # ───────────────────────────────────────────────────────────────────────────
    # Failure
    # ───────────────────────────────────────────────────────────────────────────

    async def _settle_failure(
        self,
        lease: Lease,
        gateway_key: str,
        failed: S.SagaFailure[ConfirmFailure],
    ) -> PaymentError:
        """Mark FAILED (key not stored) and return the client-facing error."""
        match failed.error:
            case GatewayFailure() as failure:
                error = PaymentErrors.gateway(failure.describe())
                raw = failure.raw
            case Unrecorded(error=error, confirmation=confirmation):
                raw = {
                    "unrecorded_confirmation": confirmation.raw,
                    "voided": failed.rollback_complete,
                }
                if not failed.rollback_complete:
                    log.error(
                        "payment.void_failed",
                        order_id=lease.record.order_id,
                        payment_key=mask_key(confirmation.payment_key),
                        reason=error.detail,
                    )

        reason = error.detail or error.message
        log.warning(
            "payment.confirm_failed",
            order_id=lease.record.order_id,
            payment_key=mask_key(gateway_key),
            code=error.code,
            reason=reason,
        )

        match await self._lifecycle.fail(lease, reason=reason, raw=raw):
            case Ok(failed_record):
                await notify(
                    self._notifier,
                    PaymentEvent.transition(
                        lease.record, failed_record, self._clock(), reason=reason
                    ),
                )
            case Error(err):
                log.error(
                    "payment.failure_not_recorded",
                    order_id=lease.record.order_id,
                    reason=err.detail,
                )

        return error


def _verify(confirmation: GatewayConfirmation, record: PaymentRecord) -> str | None:
    """Reason to reject a gateway 'success', or None."""
    if confirmation.status != APPROVED_STATUS:
        return f"gateway status {confirmation.status!r}, expected {APPROVED_STATUS!r}"
    if confirmation.total_amount != record.amount:
        return f"gateway total {confirmation.total_amount} != amount {record.amount}"
    if confirmation.order_id != record.order_id:
        return f"gateway order {confirmation.order_id!r} != {record.order_id!r}"
    return None


__all__ = (
    "VOID_REASON",
    "Unrecorded",
    "VoidFailed",
    "ConfirmationAdapter",
)
