# models/payments_store.py (SQLAlchemy)
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from models.base import session_scope
from models.schema import Payment
from services.datetimex import as_utc, now_utc

PAYMENT_COLUMNS = ("id", "order_id", "settlement_id", "method", "amount",
                   "payment_key", "status", "paid_at", "created_at")


def _payment_dict(p: Payment) -> dict:
    d = {c: getattr(p, c) for c in PAYMENT_COLUMNS}
    d["paid_at"] = as_utc(d["paid_at"])
    d["created_at"] = as_utc(d["created_at"])
    return d


def get_payment(payment_id: str) -> Optional[dict]:
    with session_scope() as s:
        p = s.get(Payment, payment_id)
        return _payment_dict(p) if p else None


def get_payment_by_key(payment_key: str) -> Optional[dict]:
    if not payment_key:
        return None
    with session_scope() as s:
        p = s.execute(select(Payment).where(
            Payment.payment_key == payment_key)).scalars().first()
        return _payment_dict(p) if p else None


def record_payment(order_id: str, settlement_id: str | None, method: str, amount: Decimal,
                   payment_key: str, paid_at: datetime) -> Tuple[dict, bool]:
    """
    Insert the audit row for a confirmed payment. Returns (row, created);
    an existing row for the same payment_key comes back with created=False.
    """
    try:
        with session_scope() as s:
            p = Payment(
                order_id=order_id, settlement_id=settlement_id, method=method,
                amount=amount, payment_key=payment_key, status="paid",
                paid_at=paid_at, created_at=now_utc(),
            )
            s.add(p)
            s.flush()
            return _payment_dict(p), True
    except IntegrityError:
        existing = get_payment_by_key(payment_key)
        if existing is None:
            raise
        return existing, False
