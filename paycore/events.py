"""
State-change notifications.

Published after each transition into COMPLETED, FAILED or CANCELLED.
Delivery is best effort: a notifier that raises is logged and ignored,
the payment outcome stands.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

import structlog
from combinators import lift as L
from kungfu import Error

from paycore.records import PaymentStatus, PaymentRecord


log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentEvent:
    order_id: str
    user_id: int
    amount: Decimal
    previous: PaymentStatus
    status: PaymentStatus
    occurred_at: datetime
    reason: str | None = None

    @classmethod
    def transition(
        cls,
        before: PaymentRecord,
        after: PaymentRecord,
        occurred_at: datetime,
        reason: str | None = None,
    ) -> PaymentEvent:
        return cls(
            order_id=after.order_id,
            user_id=after.user_id,
            amount=after.amount,
            previous=before.status,
            status=after.status,
            occurred_at=occurred_at,
            reason=reason,
        )


class Notifier(Protocol):
    async def publish(self, event: PaymentEvent) -> None:
        ...


class MemoryNotifier:
    """Collects events. For tests."""

    def __init__(self) -> None:
        self.events: list[PaymentEvent] = []

    async def publish(self, event: PaymentEvent) -> None:
        self.events.append(event)

    def statuses(self, order_id: str) -> list[PaymentStatus]:
        return [e.status for e in self.events if e.order_id == order_id]


class LoggingNotifier:
    """Writes each event to the structured log."""

    async def publish(self, event: PaymentEvent) -> None:
        log.info(
            "payment.event",
            order_id=event.order_id,
            user_id=event.user_id,
            amount=str(event.amount),
            previous=event.previous.value,
            status=event.status.value,
            reason=event.reason,
        )


async def notify(notifier: Notifier, event: PaymentEvent) -> None:
    """Publish, logging instead of raising on failure."""
    result = await L.catching_async(lambda: notifier.publish(event), on_error=repr)
    match result:
        case Error(reason):
            log.error(
                "payment.notify_failed",
                order_id=event.order_id,
                status=event.status.value,
                reason=reason,
            )


__all__ = (
    "PaymentEvent",
    "Notifier",
    "MemoryNotifier",
    "LoggingNotifier",
    "notify",
)
