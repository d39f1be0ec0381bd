"""
Records — the payment entity and its stores.

    from paycore import records as R

    store = R.MemoryPaymentStore()
    created = await store.create(R.NewPayment(...))

    # Compare-and-swap: apply only while PENDING with no live claim
    updated = await store.conditional_update(
        record.id,
        R.Guard(R.PaymentStatus.PENDING),
        R.Transition(claim_token=token, claimed_at=now),
    )

Stores:
    MemoryPaymentStore      — tests / single process
    SQLAlchemyPaymentStore  — async SQLAlchemy (aiosqlite, asyncpg, ...)
"""

from paycore.records._types import (
    PaymentStatus,
    canonical_amount,
    Fingerprint,
    PaymentRecord,
    NewPayment,
    Guard,
    UNSET,
    Transition,
    Page,
    Tally,
)
from paycore.records._store import (
    StoreError,
    PaymentStore,
    MemoryPaymentStore,
)
from paycore.records._sqlalchemy import (
    DecimalText,
    Base,
    PaymentTable,
    create_database,
    SQLAlchemyPaymentStore,
)

__all__ = (
    # Types
    "PaymentStatus",
    "canonical_amount",
    "Fingerprint",
    "PaymentRecord",
    "NewPayment",
    "Guard",
    "UNSET",
    "Transition",
    "Page",
    "Tally",
    # Stores
    "StoreError",
    "PaymentStore",
    "MemoryPaymentStore",
    # SQLAlchemy
    "DecimalText",
    "Base",
    "PaymentTable",
    "create_database",
    "SQLAlchemyPaymentStore",
)
