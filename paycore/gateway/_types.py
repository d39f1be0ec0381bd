"""
Gateway types — what the core needs from an external payment processor.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

import structlog
from kungfu import Result, Error


log = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway Results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class GatewayConfirmation:
    """Gateway's answer to a successful confirm. raw is the full payload."""

    payment_key: str
    order_id: str
    status: str
    method: str | None
    total_amount: Decimal
    approved_at: datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GatewayCancellation:
    """Gateway's answer to a successful cancel."""

    payment_key: str
    status: str
    cancel_amount: Decimal
    raw: dict[str, Any] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway Failure
# ═══════════════════════════════════════════════════════════════════════════════


class GatewayFailureKind(Enum):
    """Why the gateway call did not succeed."""

    TIMEOUT = "timeout"
    REJECTED = "rejected"  # 4xx: the gateway said no
    UNAVAILABLE = "unavailable"  # 5xx
    TRANSPORT = "transport"  # connection, DNS, TLS
    INVALID_RESPONSE = "invalid_response"
    ADAPTER = "adapter"  # the adapter itself raised


@dataclass(frozen=True, slots=True)
class GatewayFailure:
    """
    Gateway error converted to a value at the adapter boundary.

    code/message come from the gateway when it sent them. Internal only;
    never shown to the client.
    """

    kind: GatewayFailureKind
    message: str
    code: str | None = None
    raw: dict[str, Any] | None = None

    def describe(self) -> str:
        if self.code is None:
            return f"{self.kind.value}: {self.message}"
        return f"{self.kind.value}: [{self.code}] {self.message}"


class GatewayFailures:
    """Constructors for gateway failures."""

    @staticmethod
    def timeout(seconds: float) -> GatewayFailure:
        return GatewayFailure(GatewayFailureKind.TIMEOUT, f"no response within {seconds}s")

    @staticmethod
    def rejected(
        message: str, code: str | None = None, raw: dict[str, Any] | None = None
    ) -> GatewayFailure:
        return GatewayFailure(GatewayFailureKind.REJECTED, message, code, raw)

    @staticmethod
    def unavailable(
        message: str, code: str | None = None, raw: dict[str, Any] | None = None
    ) -> GatewayFailure:
        return GatewayFailure(GatewayFailureKind.UNAVAILABLE, message, code, raw)

    @staticmethod
    def transport(message: str) -> GatewayFailure:
        return GatewayFailure(GatewayFailureKind.TRANSPORT, message)

    @staticmethod
    def invalid_response(
        message: str, raw: dict[str, Any] | None = None
    ) -> GatewayFailure:
        return GatewayFailure(GatewayFailureKind.INVALID_RESPONSE, message, raw=raw)

    @staticmethod
    def adapter(e: Exception) -> GatewayFailure:
        return GatewayFailure(GatewayFailureKind.ADAPTER, f"{type(e).__name__}: {e}")


# ═══════════════════════════════════════════════════════════════════════════════
# Gateway Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Gateway(Protocol):
    """
    External payment processor.

    Implementations convert every transport exception into GatewayFailure.
    Neither method raises.
    """

    async def confirm(
        self, gateway_key: str, order_id: str, amount: Decimal
    ) -> Result[GatewayConfirmation, GatewayFailure]:
        ...

    async def cancel(
        self, gateway_key: str, amount: Decimal, reason: str
    ) -> Result[GatewayCancellation, GatewayFailure]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Deadline
# ═══════════════════════════════════════════════════════════════════════════════


async def within_timeout[T](
    seconds: float,
    call: Callable[[], Awaitable[Result[T, GatewayFailure]]],
) -> Result[T, GatewayFailure]:
    """
    Run a gateway call under a deadline. Expiry is a TIMEOUT failure; an
    exception escaping the adapter is an ADAPTER failure, so callers holding
    a lease always get a Result back.
    """
    try:
        async with asyncio.timeout(seconds):
            return await call()
    except TimeoutError:
        return Error(GatewayFailures.timeout(seconds))
    except Exception as e:
        log.exception("gateway.adapter_raised", error=type(e).__name__)
        return Error(GatewayFailures.adapter(e))


__all__ = (
    "GatewayConfirmation",
    "GatewayCancellation",
    "GatewayFailureKind",
    "GatewayFailure",
    "GatewayFailures",
    "Gateway",
    "within_timeout",
)
