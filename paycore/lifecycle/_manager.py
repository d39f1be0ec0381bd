"""
Lifecycle manager — every state change as one conditional write.

A gateway-backed transition runs in two writes:

    claim()   Guard(status, no live claim)  → stamps claim_token, claimed_at
    finish    Guard(status, claim=token)    → status + fields, claim cleared

Only the lease holder can finish, so two confirms of one record never both
reach the gateway, and a write from a holder whose lease expired is refused.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import structlog
from kungfu import Result, Ok, Error

from paycore._types import Clock, system_clock
from paycore.errors import PaymentError, PaymentErrors
from paycore.records import (
    PaymentStatus,
    PaymentRecord,
    PaymentStore,
    Guard,
    Transition,
)
from paycore.lifecycle._rules import check_transition


log = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Lease
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Lease:
    """Right to finish one transition. record is the snapshot after claiming."""

    token: str
    record: PaymentRecord
    target: PaymentStatus


# ═══════════════════════════════════════════════════════════════════════════════
# Lifecycle Manager
# ═══════════════════════════════════════════════════════════════════════════════


class LifecycleManager:
    """
    Applies state transitions to stored payments.

    Note: every method returns Result and never raises. A guard that did not
    hold is INVALID_PAYMENT_STATE; a store failure is INTERNAL_SERVER_ERROR.
    """

    def __init__(
        self,
        store: PaymentStore,
        clock: Clock = system_clock,
        claim_ttl: timedelta = timedelta(seconds=60),
    ) -> None:
        self._store = store
        self._clock = clock
        self._claim_ttl = claim_ttl

    async def claim(
        self, record: PaymentRecord, target: PaymentStatus
    ) -> Result[Lease, PaymentError]:
        """Take the in-flight lease for moving record to target."""
        match check_transition(record, target):
            case Error(err):
                return Error(err)
            case Ok(_):
                pass

        now = self._clock()
        token = uuid.uuid4().hex
        guard = Guard(record.status, claim=None, stale_before=now - self._claim_ttl)
        result = await self._store.conditional_update(
            record.id, guard, Transition(claim_token=token, claimed_at=now)
        )

        match result:
            case Ok(None):
                log.info(
                    "payment.claim_refused",
                    order_id=record.order_id,
                    status=record.status.value,
                    target=target.value,
                )
                return Error(
                    PaymentErrors.invalid_state(
                        f"order_id={record.order_id} is being processed or changed state"
                    )
                )
            case Ok(claimed):
                return Ok(Lease(token=token, record=claimed, target=target))
            case Error(err):
                return Error(PaymentErrors.internal(err.message))

    async def complete(
        self,
        lease: Lease,
        *,
        payment_key: str,
        method: str | None,
        raw: dict[str, Any] | None,
        approved_at: datetime | None = None,
    ) -> Result[PaymentRecord, PaymentError]:
        """PENDING → COMPLETED. approved_at defaults to now."""
        return await self._finish(
            lease,
            PaymentStatus.COMPLETED,
            Transition(
                status=PaymentStatus.COMPLETED,
                gateway_payment_key=payment_key,
                payment_method=method,
                approved_at=approved_at or self._clock(),
                gateway_raw_response=raw,
                claim_token=None,
                claimed_at=None,
            ),
        )

    async def fail(
        self,
        lease: Lease,
        *,
        reason: str,
        raw: dict[str, Any] | None = None,
    ) -> Result[PaymentRecord, PaymentError]:
        """PENDING → FAILED. The gateway key is never written here."""
        return await self._finish(
            lease,
            PaymentStatus.FAILED,
            Transition(
                status=PaymentStatus.FAILED,
                cancel_reason=reason,
                gateway_raw_response=raw,
                claim_token=None,
                claimed_at=None,
            ),
        )

    async def cancel(
        self,
        lease: Lease,
        *,
        reason: str,
        amount: Decimal,
    ) -> Result[PaymentRecord, PaymentError]:
        """COMPLETED → CANCELLED."""
        if amount > lease.record.amount:
            return Error(
                PaymentErrors.invalid_amount(
                    f"cancel_amount={amount} exceeds amount={lease.record.amount}"
                )
            )
        return await self._finish(
            lease,
            PaymentStatus.CANCELLED,
            Transition(
                status=PaymentStatus.CANCELLED,
                cancel_reason=reason,
                cancel_amount=amount,
                cancelled_at=self._clock(),
                claim_token=None,
                claimed_at=None,
            ),
        )

    async def release(self, lease: Lease) -> Result[PaymentRecord, PaymentError]:
        """Drop the lease, status unchanged."""
        return await self._apply(
            lease, Transition(claim_token=None, claimed_at=None)
        )

    async def _finish(
        self,
        lease: Lease,
        target: PaymentStatus,
        transition: Transition,
    ) -> Result[PaymentRecord, PaymentError]:
        match check_transition(lease.record, target):
            case Error(err):
                return Error(err)
            case Ok(_):
                pass

        result = await self._apply(lease, transition)
        match result:
            case Ok(record):
                log.info(
                    "payment.transition",
                    order_id=record.order_id,
                    source=lease.record.status.value,
                    target=record.status.value,
                )
        return result

    async def _apply(
        self, lease: Lease, transition: Transition
    ) -> Result[PaymentRecord, PaymentError]:
        guard = Guard(lease.record.status, claim=lease.token)
        result = await self._store.conditional_update(lease.record.id, guard, transition)

        match result:
            case Ok(None):
                log.warning(
                    "payment.lease_lost",
                    order_id=lease.record.order_id,
                    status=lease.record.status.value,
                )
                return Error(
                    PaymentErrors.invalid_state(
                        f"order_id={lease.record.order_id} lease no longer held"
                    )
                )
            case Ok(record):
                return Ok(record)
            case Error(err):
                return Error(PaymentErrors.internal(err.message))


__all__ = ("Lease", "LifecycleManager")
