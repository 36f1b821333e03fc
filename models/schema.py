# models/schema.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String, Numeric, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, Index
)
from models.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


ORDER_STATUSES = ("unpaid", "paid", "shipped", "completed", "cancelled")
SETTLEMENT_STATUSES = ("pending", "completed")


def _status_check(statuses) -> str:
    return "status in (" + ",".join(f"'{s}'" for s in statuses) + ")"


# --- ORDERS (written by the ordering flow; the payment core only stamps payment fields)

class Order(Base):
    __tablename__ = "orders"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_number: Mapped[str] = mapped_column(String(64), nullable=False)
    wholesaler_id: Mapped[str | None] = mapped_column(String(64))

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="unpaid")

    # set once by the payment core, never rewritten
    payment_key: Mapped[str | None] = mapped_column(String(200))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    settlement = relationship("Settlement", back_populates="order", uselist=False)

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_orders_total_ge_0"),
        CheckConstraint(_status_check(ORDER_STATUSES), name="ck_orders_status"),
        UniqueConstraint("order_number", name="uq_orders_order_number"),
        # NULLs never collide, so only stamped keys are constrained
        UniqueConstraint("payment_key", name="uq_orders_payment_key"),
    )


# --- SETTLEMENTS (exactly one per order)

class Settlement(Base):
    __tablename__ = "settlements"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(String(64), ForeignKey(
        "orders.id", ondelete="RESTRICT"), nullable=False)
    wholesaler_id: Mapped[str | None] = mapped_column(String(64))

    order_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    platform_fee_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4), nullable=False)   # 0.0500 = 5%
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    payout_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending")
    scheduled_payout_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    order = relationship("Order", back_populates="settlement")

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_settlements_order_id"),
        CheckConstraint(_status_check(SETTLEMENT_STATUSES), name="ck_settlements_status"),
        CheckConstraint("order_amount >= 0", name="ck_settlements_amount_ge_0"),
        CheckConstraint("platform_fee >= 0", name="ck_settlements_fee_ge_0"),
        Index("idx_settlements_status_payout", "status", "scheduled_payout_at"),
    )


# --- PAYMENTS (best-effort audit of the gateway confirmation)

class Payment(Base):
    __tablename__ = "payments"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(String(64), ForeignKey(
        "orders.id", ondelete="RESTRICT"), nullable=False)
    settlement_id: Mapped[str | None] = mapped_column(String(36), ForeignKey(
        "settlements.id", ondelete="SET NULL"))
    method: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    payment_key: Mapped[str | None] = mapped_column(String(200))
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="paid")
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payments_amount_ge_0"),
        UniqueConstraint("payment_key", name="uq_payments_payment_key"),
        Index("idx_payments_order", "order_id"),
    )
