"""create orders, settlements, payments

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2025-01-20 09:12:03.114527

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "orders",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("order_number", sa.String(64), nullable=False),
        sa.Column("wholesaler_id", sa.String(64)),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("payment_key", sa.String(200)),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("total_amount >= 0", name="ck_orders_total_ge_0"),
        sa.CheckConstraint(
            "status in ('unpaid','paid','shipped','completed','cancelled')", name="ck_orders_status"),
        sa.UniqueConstraint("order_number", name="uq_orders_order_number"),
        # at-most-once effect per payment key is enforced here, not in the app
        sa.UniqueConstraint("payment_key", name="uq_orders_payment_key"),
    )

    op.create_table(
        "settlements",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(64), sa.ForeignKey(
            "orders.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("wholesaler_id", sa.String(64)),
        sa.Column("order_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("platform_fee_rate", sa.Numeric(6, 4), nullable=False),
        sa.Column("platform_fee", sa.Numeric(18, 2), nullable=False),
        sa.Column("payout_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("scheduled_payout_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("order_id", name="uq_settlements_order_id"),
        sa.CheckConstraint("status in ('pending','completed')",
                           name="ck_settlements_status"),
        sa.CheckConstraint("order_amount >= 0",
                           name="ck_settlements_amount_ge_0"),
        sa.CheckConstraint("platform_fee >= 0", name="ck_settlements_fee_ge_0"),
    )
    op.create_index("idx_settlements_status_payout", "settlements",
                    ["status", "scheduled_payout_at"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(64), sa.ForeignKey(
            "orders.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("settlement_id", sa.String(36), sa.ForeignKey(
            "settlements.id", ondelete="SET NULL")),
        sa.Column("method", sa.String(32), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("payment_key", sa.String(200)),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_payments_amount_ge_0"),
        sa.UniqueConstraint("payment_key", name="uq_payments_payment_key"),
    )
    op.create_index("idx_payments_order", "payments", ["order_id"])


def downgrade():
    op.drop_index("idx_payments_order", table_name="payments")
    op.drop_table("payments")
    op.drop_index("idx_settlements_status_payout", table_name="settlements")
    op.drop_table("settlements")
    op.drop_table("orders")
