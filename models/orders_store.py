# models/orders_store.py (SQLAlchemy)
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from models.base import session_scope
from models.schema import Order, Settlement
from services.datetimex import as_utc, now_utc

ORDER_COLUMNS = ("id", "order_number", "wholesaler_id", "total_amount", "status",
                 "payment_key", "paid_at", "created_at", "updated_at")

PAID_STATUS = "paid"


def _order_dict(o: Order) -> dict:
    d = {c: getattr(o, c) for c in ORDER_COLUMNS}
    for k in ("paid_at", "created_at", "updated_at"):
        d[k] = as_utc(d[k])
    return d


def create_order(order_id: str, order_number: str, total_amount, wholesaler_id: str | None = None) -> dict:
    """Insert an unpaid order. The real ordering flow lives elsewhere; this is its write contract."""
    now = now_utc()
    with session_scope() as s:
        o = Order(
            id=order_id, order_number=order_number, wholesaler_id=wholesaler_id,
            total_amount=Decimal(str(total_amount)), status="unpaid",
            payment_key=None, paid_at=None, created_at=now, updated_at=now,
        )
        s.add(o)
        s.flush()
        return _order_dict(o)


def get_order(order_id: str) -> Optional[dict]:
    if not order_id:
        return None
    with session_scope() as s:
        o = s.get(Order, order_id)
        if not o:
            return None
        return _order_dict(o)


def mark_order_paid(order_id: str, payment_key: str, paid_at: datetime) -> bool:
    """
    Stamp status/payment_key/paid_at in one conditional write.

    Returns True if this call performed the transition, False if the order
    already carries a payment key (another delivery got there first).
    Store failures propagate; IntegrityError means the key belongs to
    another order.
    """
    with session_scope() as s:
        res = s.execute(
            update(Order)
            .where(Order.id == order_id, Order.payment_key.is_(None))
            .values(status=PAID_STATUS, payment_key=payment_key,
                    paid_at=paid_at, updated_at=now_utc())
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1


def list_paid_orders_without_settlement(limit: int | None = None) -> list[dict]:
    """Orders that carry a payment key but never got their settlement row."""
    with session_scope() as s:
        stmt = (
            select(Order)
            .outerjoin(Settlement, Settlement.order_id == Order.id)
            .where(Order.payment_key.is_not(None),
                   Order.paid_at.is_not(None),
                   Settlement.id.is_(None))
            .order_by(Order.paid_at.asc(), Order.id.asc())
        )
        if limit:
            stmt = stmt.limit(limit)
        return [_order_dict(o) for o in s.execute(stmt).scalars().all()]
