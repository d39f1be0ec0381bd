"""
Checkout Flow Example

Create → confirm → retry → cancel against SQLite and an in-memory gateway.

Run: uv run python -m examples.checkout_flow
"""

import asyncio
import tempfile
from decimal import Decimal
from pathlib import Path

from combinators import batch, lift as L
from kungfu import Ok, Error

from paycore import CreatePayment, PaymentService, PaymentStatus
from paycore.config import PaymentSettings
from paycore.events import MemoryNotifier
from paycore.gateway import MemoryGateway
from paycore.logs import configure_logging
from paycore.records import SQLAlchemyPaymentStore, create_database


def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def show(label: str, result) -> None:
    match result:
        case Ok(value):
            print(f"   {label}: {value.status.value} ({value.status.description})")
        case Error(e):
            print(f"   {label}: {e.code} - {e.message}")


async def main() -> None:
    banner("Checkout Flow")

    workdir = Path(tempfile.mkdtemp())
    settings = PaymentSettings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{workdir / 'payments.db'}",
        log_level="WARNING",
    )
    configure_logging(settings)

    session_factory, engine = await create_database(settings.database_url)
    gateway = MemoryGateway(delay=0.05)
    notifier = MemoryNotifier()
    service = PaymentService(
        SQLAlchemyPaymentStore(session_factory), gateway, notifier=notifier, settings=settings
    )

    request = CreatePayment(
        user_id=7,
        amount=Decimal("50000"),
        order_name="Premium plan",
        customer_name="Kim Minji",
    )

    try:
        # 1. Create
        print("1. Create:")
        match await service.create_payment(request):
            case Ok(summary):
                order_id = summary.order_id
                print(f"   Order: {order_id}, amount {summary.amount}")
            case Error(e):
                print(f"   Error: {e.code}")
                return

        # 2. Same request again (order id now fixed)
        print("2. Resubmit:")
        resubmit = CreatePayment(
            user_id=request.user_id,
            amount=request.amount,
            order_name=request.order_name,
            customer_name=request.customer_name,
            order_id=order_id,
        )
        show("Resubmit", await service.create_payment(resubmit))

        # 3. Tampered amount
        print("3. Confirm with a tampered amount:")
        show("Confirm", await service.confirm_payment(order_id, "K-demo", Decimal("500")))

        # 4. Concurrent confirms (5 via combinators.batch)
        print("4. Concurrent confirms (5 requests):")
        key = "tgen_20250301_demo_key_0001"
        await batch(
            range(5),
            handler=lambda _: L.catching_async(
                lambda: service.confirm_payment(order_id, key, Decimal("50000")),
                on_error=str,
            ),
            concurrency=5,
        )
        print(f"   Gateway confirm calls: {gateway.confirm_count} (only 1!)")

        # 5. Refund
        print("5. Cancel:")
        show("Cancel", await service.cancel_payment(order_id, "Customer request"))
        show("Cancel again", await service.cancel_payment(order_id, "Customer request"))

        # 6. History
        print("6. History:")
        match await service.get_history(7):
            case Ok(history):
                for p in history.payments:
                    print(f"   {p.order_id} {p.amount} {p.status.value}")

        # 7. Dashboard
        print("7. Stats:")
        match await service.get_stats(user_id=7):
            case Ok(stats):
                print(
                    f"   {stats.day}: {stats.completed_count} completed, "
                    f"total {stats.completed_total}; user 7 has {stats.user_payment_count} payments"
                )

        events = [s.value for s in notifier.statuses(order_id)]
        print(f"\nEvents: {events}")
        final = await service.get_detail(order_id)
        match final:
            case Ok(detail) if detail.status is PaymentStatus.CANCELLED:
                print(f"Refunded {detail.cancel_amount} at {detail.cancelled_at}")

    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
