from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from kungfu import Ok, Error

from paycore.config import PaymentSettings
from paycore.events import MemoryNotifier
from paycore.gateway import MemoryGateway
from paycore.payments import CreatePayment, PaymentService
from paycore.records import MemoryPaymentStore


class FakeClock:
    """Deterministic clock. Each reading moves time forward by one millisecond."""

    def __init__(self, start: datetime = datetime(2025, 3, 1, 9, 0, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(milliseconds=1)
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@dataclass
class Harness:
    service: PaymentService
    store: MemoryPaymentStore
    gateway: MemoryGateway
    notifier: MemoryNotifier
    clock: FakeClock
    settings: PaymentSettings


def make_settings(**overrides) -> PaymentSettings:
    values = {
        "gateway_timeout_seconds": 0.2,
        "claim_ttl_seconds": 60.0,
        "order_id_prefix": "ORDER",
        "history_page_size": 20,
    }
    values.update(overrides)
    return PaymentSettings(_env_file=None, **values)


def make_harness(store=None, gateway=None, notifier=None, **overrides) -> Harness:
    store = store if store is not None else MemoryPaymentStore()
    gateway = gateway if gateway is not None else MemoryGateway()
    notifier = notifier if notifier is not None else MemoryNotifier()
    clock = FakeClock()
    settings = make_settings(**overrides)
    service = PaymentService(store, gateway, notifier=notifier, settings=settings, clock=clock)
    return Harness(service, store, gateway, notifier, clock, settings)


def request(
    order_id: str | None = "O1",
    user_id: int = 7,
    amount: Decimal | int | float = Decimal("50000"),
    order_name: str = "Premium plan",
    customer_name: str = "Kim Minji",
) -> CreatePayment:
    return CreatePayment(
        user_id=user_id,
        amount=amount,
        order_name=order_name,
        customer_name=customer_name,
        order_id=order_id,
        customer_email="minji@example.com",
        customer_phone="010-1234-5678",
    )


def unwrap(result):
    """Value of Ok, or fail the test with the error."""
    match result:
        case Ok(value):
            return value
        case Error(err):
            raise AssertionError(f"expected Ok, got Error({err!r})")


def unwrap_error(result):
    """Error value, or fail the test."""
    match result:
        case Error(err):
            return err
        case Ok(value):
            raise AssertionError(f"expected Error, got Ok({value!r})")
