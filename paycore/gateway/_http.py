"""
HTTP gateway — Toss-Payments-shaped REST API over httpx.

    POST /v1/payments/confirm             {paymentKey, orderId, amount}
    POST /v1/payments/{paymentKey}/cancel {cancelReason, cancelAmount}

Auth is HTTP Basic with the secret key as username and an empty password.
Every httpx exception is converted to GatewayFailure by L.catching_async.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import quote

import httpx
import structlog
from combinators import lift as L
from kungfu import Result, Ok, Error

from paycore.config import PaymentSettings
from paycore.logs import mask_key
from paycore.gateway._types import (
    GatewayConfirmation,
    GatewayCancellation,
    GatewayFailure,
    GatewayFailures,
)


log = structlog.get_logger(__name__)


class HTTPGateway:
    """
    Gateway over HTTP.

    transport is for tests (httpx.MockTransport). A client is opened per call,
    so the gateway holds no connection state between payments.
    """

    def __init__(
        self,
        base_url: str,
        secret_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(secret_key, "")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: PaymentSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HTTPGateway:
        return cls(
            settings.gateway_base_url,
            settings.gateway_secret_key.get_secret_value(),
            timeout=settings.gateway_timeout_seconds,
            transport=transport,
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Gateway protocol
    # ───────────────────────────────────────────────────────────────────────────

    async def confirm(
        self, gateway_key: str, order_id: str, amount: Decimal
    ) -> Result[GatewayConfirmation, GatewayFailure]:
        body = {
            "paymentKey": gateway_key,
            "orderId": order_id,
            "amount": _wire_amount(amount),
        }
        result = await self._call("/v1/payments/confirm", body, _parse_confirmation)

        match result:
            case Error(failure):
                log.warning(
                    "gateway.confirm_failed",
                    order_id=order_id,
                    payment_key=mask_key(gateway_key),
                    reason=failure.describe(),
                )
        return result

    async def cancel(
        self, gateway_key: str, amount: Decimal, reason: str
    ) -> Result[GatewayCancellation, GatewayFailure]:
        body = {"cancelReason": reason, "cancelAmount": _wire_amount(amount)}
        path = f"/v1/payments/{quote(gateway_key, safe='')}/cancel"
        result = await self._call(
            path, body, lambda payload: _parse_cancellation(payload, gateway_key, amount)
        )

        match result:
            case Error(failure):
                log.warning(
                    "gateway.cancel_failed",
                    payment_key=mask_key(gateway_key),
                    reason=failure.describe(),
                )
        return result

    # ───────────────────────────────────────────────────────────────────────────
    # Transport
    # ───────────────────────────────────────────────────────────────────────────

    async def _call[T](
        self,
        path: str,
        body: dict[str, Any],
        parse: Callable[[dict[str, Any]], Result[T, GatewayFailure]],
    ) -> Result[T, GatewayFailure]:
        sent = await L.catching_async(
            lambda: self._post(path, body),
            on_error=self._transport_failure,
        )

        match sent:
            case Error(failure):
                return Error(failure)
            case Ok(response):
                match _read(response):
                    case Ok(payload):
                        return parse(payload)
                    case Error(failure):
                        return Error(failure)

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            auth=self._auth,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            return await client.post(path, json=body)

    def _transport_failure(self, e: Exception) -> GatewayFailure:
        if isinstance(e, httpx.TimeoutException):
            return GatewayFailures.timeout(self._timeout)
        if isinstance(e, httpx.RequestError):
            return GatewayFailures.transport(f"{type(e).__name__}: {e}")
        return GatewayFailures.transport(repr(e))


# ═══════════════════════════════════════════════════════════════════════════════
# Response decoding
# ═══════════════════════════════════════════════════════════════════════════════


def _read(response: httpx.Response) -> Result[dict[str, Any], GatewayFailure]:
    """2xx with a JSON object → Ok(payload). Anything else → GatewayFailure."""
    try:
        decoded = response.json()
    except ValueError:
        decoded = None
    payload = decoded if isinstance(decoded, dict) else None

    if response.is_success:
        if payload is None:
            return Error(
                GatewayFailures.invalid_response(
                    f"HTTP {response.status_code}: body is not a JSON object"
                )
            )
        return Ok(payload)

    error_body = payload or {}
    code = error_body.get("code")
    message = str(
        error_body.get("message") or response.reason_phrase or f"HTTP {response.status_code}"
    )
    if response.is_server_error:
        return Error(GatewayFailures.unavailable(message, code, payload))
    return Error(GatewayFailures.rejected(message, code, payload))


def _parse_confirmation(
    payload: dict[str, Any],
) -> Result[GatewayConfirmation, GatewayFailure]:
    try:
        return Ok(
            GatewayConfirmation(
                payment_key=str(payload["paymentKey"]),
                order_id=str(payload["orderId"]),
                status=str(payload["status"]),
                method=payload.get("method"),
                total_amount=Decimal(str(payload["totalAmount"])),
                approved_at=_parse_time(payload.get("approvedAt")),
                raw=payload,
            )
        )
    except (KeyError, ValueError, InvalidOperation) as e:
        return Error(
            GatewayFailures.invalid_response(f"malformed confirmation: {e!r}", raw=payload)
        )


def _parse_cancellation(
    payload: dict[str, Any],
    gateway_key: str,
    requested: Decimal,
) -> Result[GatewayCancellation, GatewayFailure]:
    """The last entry of 'cancels' is this cancellation, when present."""
    try:
        cancels = payload.get("cancels") or []
        cancelled = (
            Decimal(str(cancels[-1]["cancelAmount"])) if cancels else requested
        )
        return Ok(
            GatewayCancellation(
                payment_key=str(payload.get("paymentKey", gateway_key)),
                status=str(payload["status"]),
                cancel_amount=cancelled,
                raw=payload,
            )
        )
    except (KeyError, TypeError, ValueError, InvalidOperation) as e:
        return Error(
            GatewayFailures.invalid_response(f"malformed cancellation: {e!r}", raw=payload)
        )


def _parse_time(value: Any) -> datetime | None:
    """ISO timestamp as naive local time, the form every record timestamp takes."""
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _wire_amount(amount: Decimal | int) -> int | str:
    """Integral amounts go out as JSON integers; others as exact text."""
    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return int(amount)
    return format(amount, "f")


__all__ = ("HTTPGateway",)
