"""
Memory gateway — scriptable stand-in for tests and examples.

    gateway = MemoryGateway()
    gateway.fail_next_confirm()                 # next confirm is rejected
    gateway.fail_next_cancel(GatewayFailures.unavailable("maintenance"))
    gateway.delay = 0.5                         # every call sleeps (timeouts)
    gateway.approved_at = datetime(2025, 3, 1)  # reported approval time
"""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime
from decimal import Decimal

from kungfu import Result, Ok, Error

from paycore.gateway._types import (
    GatewayConfirmation,
    GatewayCancellation,
    GatewayFailure,
    GatewayFailures,
)


class MemoryGateway:
    """In-process gateway. Records every call."""

    def __init__(self, method: str = "CARD", delay: float = 0.0) -> None:
        self.method = method
        self.delay = delay
        self.confirm_status = "DONE"
        self.reported_amount: Decimal | None = None
        self.approved_at: datetime | None = None
        self.confirm_calls: list[tuple[str, str, Decimal]] = []
        self.cancel_calls: list[tuple[str, Decimal, str]] = []
        self._confirm_failures: deque[GatewayFailure] = deque()
        self._cancel_failures: deque[GatewayFailure] = deque()

    @property
    def confirm_count(self) -> int:
        return len(self.confirm_calls)

    @property
    def cancel_count(self) -> int:
        return len(self.cancel_calls)

    def fail_next_confirm(self, failure: GatewayFailure | None = None) -> None:
        self._confirm_failures.append(
            failure or GatewayFailures.rejected("Card declined", code="REJECT_CARD_PAYMENT")
        )

    def fail_next_cancel(self, failure: GatewayFailure | None = None) -> None:
        self._cancel_failures.append(
            failure or GatewayFailures.unavailable("Cancel temporarily unavailable")
        )

    async def confirm(
        self, gateway_key: str, order_id: str, amount: Decimal
    ) -> Result[GatewayConfirmation, GatewayFailure]:
        self.confirm_calls.append((gateway_key, order_id, amount))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self._confirm_failures:
            return Error(self._confirm_failures.popleft())

        total = self.reported_amount if self.reported_amount is not None else amount
        raw = {
            "paymentKey": gateway_key,
            "orderId": order_id,
            "status": self.confirm_status,
            "method": self.method,
            "totalAmount": str(total),
        }
        return Ok(
            GatewayConfirmation(
                payment_key=gateway_key,
                order_id=order_id,
                status=self.confirm_status,
                method=self.method,
                total_amount=total,
                approved_at=self.approved_at,
                raw=raw,
            )
        )

    async def cancel(
        self, gateway_key: str, amount: Decimal, reason: str
    ) -> Result[GatewayCancellation, GatewayFailure]:
        self.cancel_calls.append((gateway_key, amount, reason))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self._cancel_failures:
            return Error(self._cancel_failures.popleft())

        raw = {
            "paymentKey": gateway_key,
            "status": "CANCELED",
            "cancels": [{"cancelAmount": str(amount), "cancelReason": reason}],
        }
        return Ok(
            GatewayCancellation(
                payment_key=gateway_key,
                status="CANCELED",
                cancel_amount=amount,
                raw=raw,
            )
        )


__all__ = ("MemoryGateway",)
