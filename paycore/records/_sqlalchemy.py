"""
SQLAlchemy integration — durable payment store on any async driver.

Usage:
    session_factory, engine = await create_database("sqlite+aiosqlite:///./payments.db")
    store = SQLAlchemyPaymentStore(session_factory)

Atomicity:
    - create relies on a partial unique index over the live fingerprint
      (order_id, user_id, amount) WHERE status IN ('PENDING', 'COMPLETED').
    - conditional_update is a single UPDATE ... WHERE id AND status AND claim,
      checked through rowcount.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, cast

from sqlalchemy import (
    JSON,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    and_,
    func,
    or_,
    select,
    text,
    update,
)
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from kungfu import Result, Ok, Error

from paycore.records._types import (
    PaymentStatus,
    canonical_amount,
    Fingerprint,
    PaymentRecord,
    NewPayment,
    Guard,
    Transition,
    Page,
    Tally,
)
from paycore.records._store import StoreError


# ═══════════════════════════════════════════════════════════════════════════════
# Exact Decimal Column
# ═══════════════════════════════════════════════════════════════════════════════


class DecimalText(TypeDecorator[Decimal]):
    """
    Decimal stored as canonical text.

    Note: SQLite has no exact decimal type; Numeric round-trips through float.
    Canonical text keeps equality exact, which the fingerprint index relies on.
    """

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: Any) -> str | None:
        if value is None:
            return None
        return canonical_amount(Decimal(value))

    def process_result_value(self, value: str | None, dialect: Any) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


# ═══════════════════════════════════════════════════════════════════════════════
# Base + Payments Table
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


_LIVE_STATUSES = "status IN ('PENDING', 'COMPLETED')"


class PaymentTable(Base):
    """Payments table. One row per payment attempt, never deleted."""

    __tablename__ = "payment"
    __table_args__ = (
        Index("idx_payment_order_id", "order_id"),
        Index("idx_payment_user_id", "user_id"),
        Index("idx_payment_status", "status"),
        Index("idx_payment_created_at", "created_at"),
        Index(
            "uq_payment_live_fingerprint",
            "order_id",
            "user_id",
            "amount",
            unique=True,
            sqlite_where=text(_LIVE_STATUSES),
            postgresql_where=text(_LIVE_STATUSES),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Order data
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalText, nullable=False)
    order_name: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(100), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Lifecycle
    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus, native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    gateway_payment_key: Mapped[str | None] = mapped_column(
        String(200), nullable=True, unique=True
    )
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    cancel_amount: Mapped[Decimal | None] = mapped_column(DecimalText, nullable=True)
    gateway_raw_response: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # In-flight claim
    claim_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create tables and return (session_factory, engine)."""
    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyPaymentStore:
    """PaymentStore over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_by_order_id(
        self, order_id: str
    ) -> Result[PaymentRecord | None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(PaymentTable)
                    .where(PaymentTable.order_id == order_id)
                    .order_by(PaymentTable.created_at.desc(), PaymentTable.id.desc())
                    .limit(1)
                )
                row = (await session.execute(stmt)).scalar_one_or_none()
                return Ok(_to_record(row) if row is not None else None)

        except Exception as e:
            return Error(StoreError(f"Failed to find by order id: {e}", e))

    async def find_by_fingerprint(
        self, fingerprint: Fingerprint
    ) -> Result[PaymentRecord | None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(PaymentTable).where(
                    PaymentTable.order_id == fingerprint.order_id,
                    PaymentTable.user_id == fingerprint.user_id,
                    PaymentTable.amount == fingerprint.amount,
                    PaymentTable.status.in_((PaymentStatus.PENDING, PaymentStatus.COMPLETED)),
                )
                row = (await session.execute(stmt)).scalars().first()
                return Ok(_to_record(row) if row is not None else None)

        except Exception as e:
            return Error(StoreError(f"Failed to find by fingerprint: {e}", e))

    async def find_by_payment_key(
        self, payment_key: str
    ) -> Result[PaymentRecord | None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(PaymentTable).where(
                    PaymentTable.gateway_payment_key == payment_key
                )
                row = (await session.execute(stmt)).scalar_one_or_none()
                return Ok(_to_record(row) if row is not None else None)

        except Exception as e:
            return Error(StoreError(f"Failed to find by payment key: {e}", e))

    async def find_by_user(
        self,
        user_id: int,
        status: PaymentStatus | None = None,
    ) -> Result[list[PaymentRecord], StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = select(PaymentTable).where(PaymentTable.user_id == user_id)
                if status is not None:
                    stmt = stmt.where(PaymentTable.status == status)
                stmt = stmt.order_by(PaymentTable.created_at.desc(), PaymentTable.id.desc())
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_to_record(row) for row in rows])

        except Exception as e:
            return Error(StoreError(f"Failed to find by user: {e}", e))

    async def list_all(
        self,
        status: PaymentStatus | None,
        offset: int,
        limit: int,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> Result[Page, StoreError]:
        try:
            async with self._session_factory() as session:
                conditions = _created_window(created_from, created_before)
                if status is not None:
                    conditions.append(PaymentTable.status == status)
                count_stmt = select(func.count()).select_from(PaymentTable)
                stmt = select(PaymentTable)
                if conditions:
                    count_stmt = count_stmt.where(*conditions)
                    stmt = stmt.where(*conditions)
                stmt = (
                    stmt.order_by(PaymentTable.created_at.desc(), PaymentTable.id.desc())
                    .offset(offset)
                    .limit(limit)
                )

                total = (await session.execute(count_stmt)).scalar_one()
                rows = (await session.execute(stmt)).scalars().all()
                return Ok(
                    Page(
                        records=tuple(_to_record(row) for row in rows),
                        total=total,
                        has_more=offset + len(rows) < total,
                    )
                )

        except Exception as e:
            return Error(StoreError(f"Failed to list payments: {e}", e))

    async def tally(
        self,
        *,
        user_id: int | None = None,
        statuses: tuple[PaymentStatus, ...] | None = None,
        created_from: datetime | None = None,
        created_before: datetime | None = None,
    ) -> Result[Tally, StoreError]:
        """Summed as Decimal after the fetch; amount is a text column."""
        try:
            async with self._session_factory() as session:
                conditions = _created_window(created_from, created_before)
                if user_id is not None:
                    conditions.append(PaymentTable.user_id == user_id)
                if statuses is not None:
                    conditions.append(PaymentTable.status.in_(statuses))
                stmt = select(PaymentTable.amount)
                if conditions:
                    stmt = stmt.where(*conditions)
                amounts = (await session.execute(stmt)).scalars().all()
                return Ok(Tally(count=len(amounts), total=sum(amounts, Decimal(0))))

        except Exception as e:
            return Error(StoreError(f"Failed to tally payments: {e}", e))

    async def create(
        self, payment: NewPayment
    ) -> Result[PaymentRecord | None, StoreError]:
        """Insert PENDING row; the live-fingerprint index rejects duplicates."""
        try:
            async with self._session_factory() as session:
                row = PaymentTable(
                    order_id=payment.order_id,
                    user_id=payment.user_id,
                    amount=payment.amount,
                    order_name=payment.order_name,
                    customer_name=payment.customer_name,
                    customer_email=payment.customer_email,
                    customer_phone=payment.customer_phone,
                    status=PaymentStatus.PENDING,
                    created_at=payment.created_at,
                )
                session.add(row)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    return Ok(None)

                await session.refresh(row)
                return Ok(_to_record(row))

        except Exception as e:
            return Error(StoreError(f"Failed to create payment: {e}", e))

    async def conditional_update(
        self,
        record_id: int,
        guard: Guard,
        transition: Transition,
    ) -> Result[PaymentRecord | None, StoreError]:
        try:
            async with self._session_factory() as session:
                stmt = (
                    update(PaymentTable)
                    .where(
                        PaymentTable.id == record_id,
                        PaymentTable.status == guard.status,
                        _claim_clause(guard),
                    )
                    .values(**transition.values())
                    .execution_options(synchronize_session=False)
                )
                cursor = cast(CursorResult[Any], await session.execute(stmt))

                if cursor.rowcount == 0:
                    await session.rollback()
                    exists = await session.get(PaymentTable, record_id)
                    if exists is None:
                        return Error(StoreError(f"No record with id: {record_id}"))
                    return Ok(None)

                await session.commit()
                row = await session.get(PaymentTable, record_id, populate_existing=True)
                if row is None:
                    return Error(StoreError(f"Record vanished after update: {record_id}"))
                return Ok(_to_record(row))

        except Exception as e:
            return Error(StoreError(f"Failed to update payment: {e}", e))


def _claim_clause(guard: Guard) -> Any:
    if guard.claim is not None:
        return PaymentTable.claim_token == guard.claim
    if guard.stale_before is None:
        return PaymentTable.claim_token.is_(None)
    return or_(
        PaymentTable.claim_token.is_(None),
        and_(
            PaymentTable.claimed_at.is_not(None),
            PaymentTable.claimed_at < guard.stale_before,
        ),
    )


def _created_window(
    created_from: datetime | None, created_before: datetime | None
) -> list[Any]:
    conditions: list[Any] = []
    if created_from is not None:
        conditions.append(PaymentTable.created_at >= created_from)
    if created_before is not None:
        conditions.append(PaymentTable.created_at < created_before)
    return conditions


def _to_record(row: PaymentTable) -> PaymentRecord:
    """Convert row to immutable snapshot."""
    return PaymentRecord(
        id=row.id,
        order_id=row.order_id,
        user_id=row.user_id,
        amount=row.amount,
        order_name=row.order_name,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        customer_phone=row.customer_phone,
        status=row.status,
        created_at=row.created_at,
        gateway_payment_key=row.gateway_payment_key,
        payment_method=row.payment_method,
        approved_at=row.approved_at,
        cancelled_at=row.cancelled_at,
        cancel_reason=row.cancel_reason,
        cancel_amount=row.cancel_amount,
        gateway_raw_response=row.gateway_raw_response,
        claim_token=row.claim_token,
        claimed_at=row.claimed_at,
    )


__all__ = (
    "DecimalText",
    "Base",
    "PaymentTable",
    "create_database",
    "SQLAlchemyPaymentStore",
)
