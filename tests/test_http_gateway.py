import asyncio
import base64
import json
from decimal import Decimal

import httpx
from structlog.testing import capture_logs

from paycore.gateway import GatewayFailureKind, HTTPGateway, within_timeout

from tests._support import make_settings, unwrap, unwrap_error


BASE_URL = "https://gateway.test"
KEY = "tgen_20250301_abcdef123456"


def gateway_with(handler, seen=None):
    def recording(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return handler(request)

    return HTTPGateway(
        BASE_URL, "test_sk_secret", timeout=1.0, transport=httpx.MockTransport(recording)
    )


def done_payload(**overrides):
    payload = {
        "paymentKey": KEY,
        "orderId": "O1",
        "status": "DONE",
        "method": "CARD",
        "totalAmount": 50000,
        "approvedAt": "2025-03-01T09:00:05+09:00",
    }
    payload.update(overrides)
    return payload


# ═══════════════════════════════════════════════════════════════════════════════
# Confirm
# ═══════════════════════════════════════════════════════════════════════════════


def test_confirm_sends_basic_auth_and_body():
    seen = []
    gateway = gateway_with(lambda r: httpx.Response(200, json=done_payload()), seen)

    confirmation = unwrap(asyncio.run(gateway.confirm(KEY, "O1", Decimal("50000"))))

    request = seen[0]
    expected = base64.b64encode(b"test_sk_secret:").decode()
    assert request.method == "POST"
    assert request.url.path == "/v1/payments/confirm"
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert json.loads(request.content) == {
        "paymentKey": KEY,
        "orderId": "O1",
        "amount": 50000,
    }

    assert confirmation.status == "DONE"
    assert confirmation.method == "CARD"
    assert confirmation.total_amount == Decimal("50000")
    assert confirmation.approved_at is not None
    assert confirmation.raw["paymentKey"] == KEY


def test_fractional_amount_goes_out_as_exact_text():
    seen = []
    gateway = gateway_with(
        lambda r: httpx.Response(200, json=done_payload(totalAmount="19.99")), seen
    )

    confirmation = unwrap(asyncio.run(gateway.confirm(KEY, "O1", Decimal("19.99"))))

    assert json.loads(seen[0].content)["amount"] == "19.99"
    assert confirmation.total_amount == Decimal("19.99")


def test_client_error_is_rejection_with_gateway_code():
    body = {"code": "REJECT_CARD_PAYMENT", "message": "Limit exceeded"}
    gateway = gateway_with(lambda r: httpx.Response(400, json=body))

    failure = unwrap_error(asyncio.run(gateway.confirm(KEY, "O1", Decimal("50000"))))

    assert failure.kind is GatewayFailureKind.REJECTED
    assert failure.code == "REJECT_CARD_PAYMENT"
    assert failure.message == "Limit exceeded"
    assert failure.raw == body
    assert "REJECT_CARD_PAYMENT" in failure.describe()


def test_server_error_is_unavailable():
    gateway = gateway_with(lambda r: httpx.Response(503, text="maintenance"))

    failure = unwrap_error(asyncio.run(gateway.confirm(KEY, "O1", Decimal("50000"))))

    assert failure.kind is GatewayFailureKind.UNAVAILABLE
    assert failure.code is None


def test_read_timeout_is_timeout():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    failure = unwrap_error(
        asyncio.run(gateway_with(handler).confirm(KEY, "O1", Decimal("50000")))
    )

    assert failure.kind is GatewayFailureKind.TIMEOUT


def test_connection_error_is_transport_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    failure = unwrap_error(
        asyncio.run(gateway_with(handler).confirm(KEY, "O1", Decimal("50000")))
    )

    assert failure.kind is GatewayFailureKind.TRANSPORT
    assert "ConnectError" in failure.message


def test_non_json_success_is_invalid_response():
    gateway = gateway_with(lambda r: httpx.Response(200, text="<html>ok</html>"))

    failure = unwrap_error(asyncio.run(gateway.confirm(KEY, "O1", Decimal("50000"))))

    assert failure.kind is GatewayFailureKind.INVALID_RESPONSE


def test_success_without_required_fields_is_invalid_response():
    gateway = gateway_with(lambda r: httpx.Response(200, json={"paymentKey": KEY}))

    failure = unwrap_error(asyncio.run(gateway.confirm(KEY, "O1", Decimal("50000"))))

    assert failure.kind is GatewayFailureKind.INVALID_RESPONSE
    assert failure.raw == {"paymentKey": KEY}


# ═══════════════════════════════════════════════════════════════════════════════
# Cancel
# ═══════════════════════════════════════════════════════════════════════════════


def test_cancel_posts_to_key_path_and_reads_last_cancel():
    seen = []
    payload = {
        "paymentKey": KEY,
        "status": "PARTIAL_CANCELED",
        "cancels": [
            {"cancelAmount": 1000, "cancelReason": "first"},
            {"cancelAmount": 2500, "cancelReason": "second"},
        ],
    }
    gateway = gateway_with(lambda r: httpx.Response(200, json=payload), seen)

    cancellation = unwrap(asyncio.run(gateway.cancel(KEY, Decimal("2500"), "second")))

    request = seen[0]
    assert request.url.path == f"/v1/payments/{KEY}/cancel"
    assert json.loads(request.content) == {"cancelReason": "second", "cancelAmount": 2500}
    assert cancellation.status == "PARTIAL_CANCELED"
    assert cancellation.cancel_amount == Decimal("2500")


def test_cancel_without_cancels_falls_back_to_requested_amount():
    gateway = gateway_with(
        lambda r: httpx.Response(200, json={"paymentKey": KEY, "status": "CANCELED"})
    )

    cancellation = unwrap(asyncio.run(gateway.cancel(KEY, Decimal("50000"), "refund")))

    assert cancellation.cancel_amount == Decimal("50000")


def test_cancel_of_unknown_payment_is_rejected():
    body = {"code": "NOT_FOUND_PAYMENT", "message": "No such payment"}
    gateway = gateway_with(lambda r: httpx.Response(404, json=body))

    failure = unwrap_error(asyncio.run(gateway.cancel(KEY, Decimal("1"), "refund")))

    assert failure.kind is GatewayFailureKind.REJECTED
    assert failure.code == "NOT_FOUND_PAYMENT"


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════


def test_from_settings_uses_configured_url_and_key():
    seen = []
    settings = make_settings(
        gateway_base_url="https://pg.example.com/",
        gateway_secret_key="live_sk_configured",
    )

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=done_payload())

    gateway = HTTPGateway.from_settings(settings, transport=httpx.MockTransport(handler))
    unwrap(asyncio.run(gateway.confirm(KEY, "O1", Decimal("50000"))))

    expected = base64.b64encode(b"live_sk_configured:").decode()
    assert seen[0].url.host == "pg.example.com"
    assert seen[0].headers["Authorization"] == f"Basic {expected}"


def test_integer_cancel_amount_goes_out_as_json_integer():
    seen = []
    gateway = gateway_with(
        lambda r: httpx.Response(200, json={"paymentKey": KEY, "status": "CANCELED"}), seen
    )

    cancellation = unwrap(asyncio.run(gateway.cancel(KEY, 20000, "refund")))

    assert json.loads(seen[0].content)["cancelAmount"] == 20000
    assert cancellation.cancel_amount == Decimal("20000")


# ═══════════════════════════════════════════════════════════════════════════════
# Deadline
# ═══════════════════════════════════════════════════════════════════════════════


def test_exception_from_adapter_becomes_failure():
    async def broken():
        raise ValueError("bad amount")

    with capture_logs() as logs:
        failure = unwrap_error(asyncio.run(within_timeout(1.0, broken)))

    assert failure.kind is GatewayFailureKind.ADAPTER
    assert failure.message == "ValueError: bad amount"
    assert logs[0]["event"] == "gateway.adapter_raised"
    assert logs[0]["error"] == "ValueError"
