"""
Payment record store — typed storage protocol.

All methods return Result for explicit error handling.
The store is the single source of truth for payment state.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from kungfu import Result, Ok, Error

from paycore.records._types import (
    PaymentStatus,
    Fingerprint,
    PaymentRecord,
    NewPayment,
    Guard,
    Transition,
    Page,
    Tally,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Store Protocol — Typed, Result-based
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentStore(Protocol):
    """
    Payment record store protocol.

    Two writes only:
    - create: atomic insert unless a live record holds the same fingerprint.
    - conditional_update: compare-and-swap keyed on (id, Guard).

    Reads return immutable snapshots.
    """

    async def find_by_order_id(
        self, order_id: str
    ) -> Result[PaymentRecord | None, StoreError]:
        """Latest record for the order. Ok(None) if not found."""
        ...

    async def find_by_fingerprint(
        self, fingerprint: Fingerprint
    ) -> Result[PaymentRecord | None, StoreError]:
        """Live (PENDING/COMPLETED) record with this triple, if any."""
        ...

    async def find_by_payment_key(
        self, payment_key: str
    ) -> Result[PaymentRecord | None, StoreError]:
        """The record the gateway key was recorded on. Ok(None) if none."""
        ...

    async def find_by_user(
        self,
        user_id: int,
        status: PaymentStatus | None = None,
    ) -> Result[list[PaymentRecord], StoreError]:
        """All records of a user, newest first."""
        ...

    async def list_all(
        self,
        status: PaymentStatus | None,
        offset: int,
        limit: int,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> Result[Page, StoreError]:
        """
        Page over all records, newest first.

        created_from / created_before bound created_at as [from, before).
        """
        ...

    async def tally(
        self,
        *,
        user_id: int | None = None,
        statuses: tuple[PaymentStatus, ...] | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> Result[Tally, StoreError]:
        """Count and exact amount sum over the matching records."""
        ...

    async def create(
        self, payment: NewPayment
    ) -> Result[PaymentRecord | None, StoreError]:
        """
        Insert a PENDING record.

        Returns Ok(None) if a live record with the same fingerprint exists.
        Must be atomic.
        """
        ...

    async def conditional_update(
        self,
        record_id: int,
        guard: Guard,
        transition: Transition,
    ) -> Result[PaymentRecord | None, StoreError]:
        """
        Apply transition only if the record satisfies guard.

        Returns Ok(updated) on success, Ok(None) if the guard did not hold.
        Must be atomic (compare-and-swap).
        """
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store — For Testing
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryPaymentStore:
    """
    In-memory payment store.

    Note: single-instance / tests only. One asyncio.Lock guards every
    read-check-write, so create and conditional_update are atomic.
    """

    def __init__(self) -> None:
        self._records: dict[int, PaymentRecord] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def find_by_order_id(
        self, order_id: str
    ) -> Result[PaymentRecord | None, StoreError]:
        async with self._lock:
            matches = [r for r in self._records.values() if r.order_id == order_id]
            if not matches:
                return Ok(None)
            return Ok(_newest_first(matches)[0])

    async def find_by_fingerprint(
        self, fingerprint: Fingerprint
    ) -> Result[PaymentRecord | None, StoreError]:
        async with self._lock:
            return Ok(self._live_match(fingerprint))

    async def find_by_payment_key(
        self, payment_key: str
    ) -> Result[PaymentRecord | None, StoreError]:
        async with self._lock:
            for record in self._records.values():
                if record.gateway_payment_key == payment_key:
                    return Ok(record)
            return Ok(None)

    async def find_by_user(
        self,
        user_id: int,
        status: PaymentStatus | None = None,
    ) -> Result[list[PaymentRecord], StoreError]:
        async with self._lock:
            matches = [
                r
                for r in self._records.values()
                if r.user_id == user_id and (status is None or r.status is status)
            ]
            return Ok(_newest_first(matches))

    async def list_all(
        self,
        status: PaymentStatus | None,
        offset: int,
        limit: int,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> Result[Page, StoreError]:
        async with self._lock:
            matches = _newest_first(
                [
                    r
                    for r in self._records.values()
                    if (status is None or r.status is status)
                    and _created_within(r, created_from, created_before)
                ]
            )
            window = matches[offset : offset + limit]
            return Ok(
                Page(
                    records=tuple(window),
                    total=len(matches),
                    has_more=offset + len(window) < len(matches),
                )
            )

    async def tally(
        self,
        *,
        user_id: int | None = None,
        statuses: tuple[PaymentStatus, ...] | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> Result[Tally, StoreError]:
        async with self._lock:
            amounts = [
                r.amount
                for r in self._records.values()
                if (user_id is None or r.user_id == user_id)
                and (statuses is None or r.status in statuses)
                and _created_within(r, created_from, created_before)
            ]
            return Ok(Tally(count=len(amounts), total=sum(amounts, Decimal(0))))

    async def create(
        self, payment: NewPayment
    ) -> Result[PaymentRecord | None, StoreError]:
        async with self._lock:
            if self._live_match(payment.fingerprint) is not None:
                return Ok(None)

            record = PaymentRecord(
                id=next(self._ids),
                order_id=payment.order_id,
                user_id=payment.user_id,
                amount=payment.amount,
                order_name=payment.order_name,
                customer_name=payment.customer_name,
                customer_email=payment.customer_email,
                customer_phone=payment.customer_phone,
                status=PaymentStatus.PENDING,
                created_at=payment.created_at,
            )
            self._records[record.id] = record
            return Ok(record)

    async def conditional_update(
        self,
        record_id: int,
        guard: Guard,
        transition: Transition,
    ) -> Result[PaymentRecord | None, StoreError]:
        async with self._lock:
            current = self._records.get(record_id)
            if current is None:
                return Error(StoreError(f"No record with id: {record_id}"))
            if not guard.admits(current):
                return Ok(None)

            values = transition.values()
            key = values.get("gateway_payment_key")
            if key is not None and any(
                r.gateway_payment_key == key and r.id != record_id
                for r in self._records.values()
            ):
                return Error(StoreError(f"Gateway payment key already in use: {record_id}"))

            updated = replace(current, **values)
            self._records[record_id] = updated
            return Ok(updated)

    def _live_match(self, fingerprint: Fingerprint) -> PaymentRecord | None:
        for record in self._records.values():
            if record.status.is_live and fingerprint.matches(record):
                return record
        return None


def _newest_first(records: list[PaymentRecord]) -> list[PaymentRecord]:
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


def _created_within(
    record: PaymentRecord, created_from: datetime | None, created_before: datetime | None
) -> bool:
    if created_from is not None and record.created_at < created_from:
        return False
    return created_before is None or record.created_at < created_before


__all__ = (
    "StoreError",
    "PaymentStore",
    "MemoryPaymentStore",
)
