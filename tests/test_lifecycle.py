import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from paycore.errors import PaymentErrorKind
from paycore.lifecycle import LifecycleManager, can_transition, check_transition
from paycore.records import MemoryPaymentStore, NewPayment, PaymentStatus

from tests._support import FakeClock, unwrap, unwrap_error


PENDING = PaymentStatus.PENDING
COMPLETED = PaymentStatus.COMPLETED
FAILED = PaymentStatus.FAILED
CANCELLED = PaymentStatus.CANCELLED


@pytest.mark.parametrize(
    ("source", "target", "allowed"),
    [
        (PENDING, COMPLETED, True),
        (PENDING, FAILED, True),
        (COMPLETED, CANCELLED, True),
        (PENDING, CANCELLED, False),
        (COMPLETED, FAILED, False),
        (COMPLETED, COMPLETED, False),
        (FAILED, COMPLETED, False),
        (FAILED, CANCELLED, False),
        (CANCELLED, COMPLETED, False),
        (CANCELLED, CANCELLED, False),
    ],
)
def test_transition_table(source, target, allowed):
    assert can_transition(source, target) is allowed


def test_status_helpers():
    assert PENDING.is_payable and not COMPLETED.is_payable
    assert COMPLETED.is_cancellable and not CANCELLED.is_cancellable
    assert FAILED.is_terminal and CANCELLED.is_terminal
    assert not COMPLETED.is_terminal
    assert COMPLETED.is_revenue and not CANCELLED.is_revenue
    assert FAILED.description == "Payment failed"


def make_manager(ttl_seconds: float = 60.0):
    store = MemoryPaymentStore()
    clock = FakeClock()
    manager = LifecycleManager(store, clock=clock, claim_ttl=timedelta(seconds=ttl_seconds))
    return store, clock, manager


async def pending_record(store, clock, order_id="L1"):
    created = await store.create(
        NewPayment(
            order_id=order_id,
            user_id=1,
            amount=Decimal("30000"),
            order_name="Keyboard",
            customer_name="Choi",
            created_at=clock(),
        )
    )
    return unwrap(created)


def test_claim_stamps_token_and_blocks_second_claim():
    store, clock, manager = make_manager()

    async def scenario():
        record = await pending_record(store, clock)
        first = await manager.claim(record, COMPLETED)
        second = await manager.claim(record, COMPLETED)
        return first, second

    first, second = asyncio.run(scenario())

    lease = unwrap(first)
    assert lease.record.claim_token == lease.token
    assert lease.record.claimed_at is not None
    assert unwrap_error(second).kind is PaymentErrorKind.INVALID_STATE_TRANSITION


def test_stale_claim_can_be_taken_over_and_old_lease_is_refused():
    store, clock, manager = make_manager(ttl_seconds=30)

    async def scenario():
        record = await pending_record(store, clock)
        abandoned = unwrap(await manager.claim(record, COMPLETED))
        clock.advance(seconds=31)
        fresh = unwrap(await manager.claim(record, COMPLETED))
        late = await manager.complete(abandoned, payment_key="K-old", method="CARD", raw=None)
        done = await manager.complete(fresh, payment_key="K-new", method="CARD", raw=None)
        return fresh, late, done

    fresh, late, done = asyncio.run(scenario())

    assert unwrap_error(late).kind is PaymentErrorKind.INVALID_STATE_TRANSITION
    record = unwrap(done)
    assert record.status is COMPLETED
    assert record.gateway_payment_key == "K-new"
    assert record.claim_token is None


def test_claim_refused_for_disallowed_target():
    store, clock, manager = make_manager()

    async def scenario():
        record = await pending_record(store, clock)
        return await manager.claim(record, CANCELLED)

    assert unwrap_error(asyncio.run(scenario())).kind is PaymentErrorKind.INVALID_STATE_TRANSITION


def test_fail_records_reason_and_releases_claim():
    store, clock, manager = make_manager()

    async def scenario():
        record = await pending_record(store, clock)
        lease = unwrap(await manager.claim(record, COMPLETED))
        return await manager.fail(lease, reason="timeout: no response", raw={"code": "X"})

    record = unwrap(asyncio.run(scenario()))

    assert record.status is FAILED
    assert record.cancel_reason == "timeout: no response"
    assert record.gateway_raw_response == {"code": "X"}
    assert record.gateway_payment_key is None
    assert record.claim_token is None


def test_release_keeps_status():
    store, clock, manager = make_manager()

    async def scenario():
        record = await pending_record(store, clock)
        lease = unwrap(await manager.claim(record, COMPLETED))
        released = await manager.release(lease)
        again = await manager.claim(record, COMPLETED)
        return released, again

    released, again = asyncio.run(scenario())

    assert unwrap(released).status is PENDING
    assert unwrap(released).claim_token is None
    unwrap(again)


def test_cancel_over_amount_is_refused_by_manager():
    store, clock, manager = make_manager()

    async def scenario():
        record = await pending_record(store, clock)
        lease = unwrap(await manager.claim(record, COMPLETED))
        completed = unwrap(
            await manager.complete(lease, payment_key="K1", method="CARD", raw=None)
        )
        cancel_lease = unwrap(await manager.claim(completed, CANCELLED))
        return await manager.cancel(cancel_lease, reason="r", amount=Decimal("30001"))

    assert unwrap_error(asyncio.run(scenario())).kind is PaymentErrorKind.INVALID_AMOUNT


def test_check_transition_distinguishes_already_cancelled():
    store, clock, manager = make_manager()

    async def scenario():
        record = await pending_record(store, clock)
        lease = unwrap(await manager.claim(record, COMPLETED))
        completed = unwrap(
            await manager.complete(lease, payment_key="K1", method="CARD", raw=None)
        )
        cancel_lease = unwrap(await manager.claim(completed, CANCELLED))
        return unwrap(await manager.cancel(cancel_lease, reason="r", amount=Decimal("30000")))

    cancelled = asyncio.run(scenario())

    err = unwrap_error(check_transition(cancelled, CANCELLED))
    assert err.kind is PaymentErrorKind.ALREADY_CANCELLED
    err = unwrap_error(check_transition(cancelled, COMPLETED))
    assert err.kind is PaymentErrorKind.INVALID_STATE_TRANSITION
