import asyncio
from datetime import datetime
from decimal import Decimal

from kungfu import Ok, Error
from structlog.testing import capture_logs

from paycore.errors import GENERIC_FAILURE_MESSAGE, PaymentErrorKind
from paycore.gateway import GatewayFailures, MemoryGateway
from paycore.payments import VOID_REASON
from paycore.records import MemoryPaymentStore, PaymentStatus, StoreError

from tests._support import make_harness, request, unwrap, unwrap_error


KEY = "tgen_20250301_K1abcdefghij"


def stored(harness, order_id="O1"):
    return unwrap(asyncio.run(harness.store.find_by_order_id(order_id)))


def test_confirm_completes_pending_payment(harness):
    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    summary = unwrap(asyncio.run(scenario()))

    assert summary.status is PaymentStatus.COMPLETED
    assert summary.status_description == "Payment completed"
    assert summary.payment_method == "CARD"
    assert summary.approved_at is not None

    record = stored(harness)
    assert record.gateway_payment_key == KEY
    assert record.gateway_raw_response["status"] == "DONE"
    assert record.claim_token is None
    assert harness.gateway.confirm_calls == [(KEY, "O1", Decimal("50000"))]
    assert harness.notifier.statuses("O1") == [PaymentStatus.COMPLETED]


def test_amount_mismatch_leaves_record_pending():
    harness = make_harness()

    async def scenario():
        await harness.service.create_payment(request(order_id="O2", amount=Decimal("10000")))
        return await harness.service.confirm_payment("O2", "K2", Decimal("9999"))

    err = unwrap_error(asyncio.run(scenario()))

    assert err.kind is PaymentErrorKind.AMOUNT_MISMATCH
    record = stored(harness, "O2")
    assert record.status is PaymentStatus.PENDING
    assert record.claim_token is None
    assert harness.gateway.confirm_count == 0
    assert harness.notifier.events == []


def test_confirm_unknown_order_is_not_found(harness):
    err = unwrap_error(asyncio.run(harness.service.confirm_payment("nope", KEY, Decimal("1"))))

    assert err.kind is PaymentErrorKind.PAYMENT_NOT_FOUND
    assert err.code == "PAYMENT_NOT_FOUND"


def test_second_confirm_is_invalid_state_transition(harness):
    async def scenario():
        await harness.service.create_payment(request())
        first = await harness.service.confirm_payment("O1", KEY, Decimal("50000"))
        second = await harness.service.confirm_payment("O1", KEY, Decimal("50000"))
        return first, second

    first, second = asyncio.run(scenario())

    unwrap(first)
    assert unwrap_error(second).kind is PaymentErrorKind.INVALID_STATE_TRANSITION
    assert harness.gateway.confirm_count == 1
    assert stored(harness).status is PaymentStatus.COMPLETED


def test_confirm_on_failed_record_changes_nothing(harness):
    harness.gateway.fail_next_confirm()

    async def scenario():
        await harness.service.create_payment(request())
        await harness.service.confirm_payment("O1", KEY, Decimal("50000"))
        return await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    err = unwrap_error(asyncio.run(scenario()))

    assert err.kind is PaymentErrorKind.INVALID_STATE_TRANSITION
    assert stored(harness).status is PaymentStatus.FAILED
    assert harness.gateway.confirm_count == 1


def test_concurrent_confirms_complete_exactly_once():
    harness = make_harness(gateway=MemoryGateway(delay=0.05))

    async def scenario():
        await harness.service.create_payment(request(order_id="O3"))
        return await asyncio.gather(
            harness.service.confirm_payment("O3", KEY, Decimal("50000")),
            harness.service.confirm_payment("O3", KEY, Decimal("50000")),
        )

    results = asyncio.run(scenario())

    completed = [r for r in results if isinstance(r, Ok)]
    refused = [unwrap_error(r) for r in results if isinstance(r, Error)]
    assert len(completed) == 1
    assert [e.kind for e in refused] == [PaymentErrorKind.INVALID_STATE_TRANSITION]
    assert harness.gateway.confirm_count == 1
    assert stored(harness, "O3").status is PaymentStatus.COMPLETED


def test_gateway_rejection_marks_failed_with_generic_message(harness):
    harness.gateway.fail_next_confirm(
        GatewayFailures.rejected("Card limit exceeded", code="EXCEED_MAX_CARD_AMOUNT")
    )

    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    err = unwrap_error(asyncio.run(scenario()))

    assert err.kind is PaymentErrorKind.GATEWAY_ERROR
    assert err.message == GENERIC_FAILURE_MESSAGE
    assert "EXCEED_MAX_CARD_AMOUNT" in err.detail

    record = stored(harness)
    assert record.status is PaymentStatus.FAILED
    assert record.gateway_payment_key is None
    assert "Card limit exceeded" in record.cancel_reason
    assert record.claim_token is None
    assert harness.notifier.statuses("O1") == [PaymentStatus.FAILED]


def test_gateway_timeout_marks_failed_without_key():
    harness = make_harness(gateway=MemoryGateway(delay=1.0), gateway_timeout_seconds=0.05)

    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    err = unwrap_error(asyncio.run(scenario()))

    assert err.kind is PaymentErrorKind.GATEWAY_ERROR
    assert err.message == GENERIC_FAILURE_MESSAGE
    assert err.detail.startswith("timeout")

    record = stored(harness)
    assert record.status is PaymentStatus.FAILED
    assert record.gateway_payment_key is None


def test_unexpected_gateway_status_is_voided_and_failed(harness):
    harness.gateway.confirm_status = "WAITING_FOR_DEPOSIT"

    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    err = unwrap_error(asyncio.run(scenario()))

    assert err.kind is PaymentErrorKind.GATEWAY_ERROR
    assert harness.gateway.cancel_calls == [(KEY, Decimal("50000"), VOID_REASON)]
    record = stored(harness)
    assert record.status is PaymentStatus.FAILED
    assert record.gateway_payment_key is None


def test_gateway_total_mismatch_is_voided_and_failed(harness):
    harness.gateway.reported_amount = Decimal("5000")

    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    unwrap_error(asyncio.run(scenario()))

    assert harness.gateway.cancel_count == 1
    assert stored(harness).status is PaymentStatus.FAILED


class RefusingCompletionStore(MemoryPaymentStore):
    """Fails every write that would move a record to COMPLETED."""

    async def conditional_update(self, record_id, guard, transition):
        if transition.values().get("status") is PaymentStatus.COMPLETED:
            return Error(StoreError("disk I/O error"))
        return await super().conditional_update(record_id, guard, transition)


def test_unrecordable_confirmation_is_voided_then_failed():
    harness = make_harness(store=RefusingCompletionStore())

    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    err = unwrap_error(asyncio.run(scenario()))

    assert err.kind is PaymentErrorKind.INTERNAL_ERROR
    assert err.message == GENERIC_FAILURE_MESSAGE
    assert harness.gateway.cancel_calls == [(KEY, Decimal("50000"), VOID_REASON)]

    record = stored(harness)
    assert record.status is PaymentStatus.FAILED
    assert record.gateway_payment_key is None
    assert record.gateway_raw_response["voided"] is True
    assert record.gateway_raw_response["unrecorded_confirmation"]["paymentKey"] == KEY


def test_failed_void_is_reported_in_audit_payload():
    harness = make_harness(store=RefusingCompletionStore())
    harness.gateway.fail_next_cancel()

    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    unwrap_error(asyncio.run(scenario()))

    record = stored(harness)
    assert record.status is PaymentStatus.FAILED
    assert record.gateway_raw_response["voided"] is False


class FailingNotifier:
    async def publish(self, event):
        raise RuntimeError("broker down")


def test_notifier_failure_does_not_change_outcome():
    harness = make_harness(notifier=FailingNotifier())

    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    assert unwrap(asyncio.run(scenario())).status is PaymentStatus.COMPLETED


def test_float_claimed_amount_is_invalid_and_leaves_record_pending(harness):
    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, 50000.0)

    err = unwrap_error(asyncio.run(scenario()))

    assert err.kind is PaymentErrorKind.INVALID_AMOUNT
    assert stored(harness).status is PaymentStatus.PENDING
    assert harness.gateway.confirm_count == 0


def test_integer_claimed_amount_is_accepted(harness):
    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, 50000)

    assert unwrap(asyncio.run(scenario())).status is PaymentStatus.COMPLETED


def test_gateway_approval_time_is_recorded(harness):
    harness.gateway.approved_at = datetime(2025, 3, 1, 8, 59, 58)

    async def scenario():
        await harness.service.create_payment(request())
        return await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    summary = unwrap(asyncio.run(scenario()))

    assert summary.approved_at == datetime(2025, 3, 1, 8, 59, 58)
    assert stored(harness).approved_at == datetime(2025, 3, 1, 8, 59, 58)


def test_rejections_log_client_errors_at_info_and_gateway_errors_at_warning(harness):
    async def scenario():
        await harness.service.create_payment(request())
        await harness.service.confirm_payment("O1", KEY, Decimal("1"))
        harness.gateway.fail_next_confirm()
        await harness.service.confirm_payment("O1", KEY, Decimal("50000"))

    with capture_logs() as logs:
        asyncio.run(scenario())

    rejected = [e for e in logs if e["event"] == "payment.confirm_rejected"]
    assert [(e["code"], e["log_level"]) for e in rejected] == [
        ("AMOUNT_MISMATCH", "info"),
        ("GATEWAY_ERROR", "warning"),
    ]
