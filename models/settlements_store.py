# models/settlements_store.py (SQLAlchemy)
from __future__ import annotations
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from models.base import session_scope
from models.schema import Settlement, SETTLEMENT_STATUSES
from services.datetimex import as_utc, now_utc
from services.settlement import SettlementCalculation

SETTLEMENT_COLUMNS = ("id", "order_id", "wholesaler_id", "order_amount", "platform_fee_rate",
                      "platform_fee", "payout_amount", "status", "scheduled_payout_at",
                      "completed_at", "created_at", "updated_at")


def _settlement_dict(st: Settlement) -> dict:
    d = {c: getattr(st, c) for c in SETTLEMENT_COLUMNS}
    for k in ("scheduled_payout_at", "completed_at", "created_at", "updated_at"):
        d[k] = as_utc(d[k])
    return d


def get_settlement(settlement_id: str) -> Optional[dict]:
    with session_scope() as s:
        st = s.get(Settlement, settlement_id)
        return _settlement_dict(st) if st else None


def get_settlement_for_order(order_id: str) -> Optional[dict]:
    with session_scope() as s:
        st = s.execute(select(Settlement).where(
            Settlement.order_id == order_id)).scalars().first()
        return _settlement_dict(st) if st else None


def create_settlement(order_id: str, wholesaler_id: str | None,
                      calc: SettlementCalculation) -> Tuple[dict, bool]:
    """
    Insert the settlement for an order. Returns (row, created).

    The unique index on order_id makes this idempotent: if a concurrent
    writer already inserted it, the existing row comes back with
    created=False. Any other failure propagates.
    """
    now = now_utc()
    try:
        with session_scope() as s:
            st = Settlement(
                order_id=order_id, wholesaler_id=wholesaler_id,
                order_amount=calc.order_amount,
                platform_fee_rate=calc.platform_fee_rate,
                platform_fee=calc.platform_fee,
                payout_amount=calc.payout_amount,
                status=calc.status,
                scheduled_payout_at=calc.scheduled_payout_at,
                completed_at=None, created_at=now, updated_at=now,
            )
            s.add(st)
            s.flush()
            return _settlement_dict(st), True
    except IntegrityError:
        existing = get_settlement_for_order(order_id)
        if existing is None:
            raise
        return existing, False


def update_settlement_status(settlement_id: str, status: str) -> Optional[dict]:
    """pending -> completed stamps completed_at; back to pending clears it."""
    if status not in SETTLEMENT_STATUSES:
        raise ValueError(
            f"status must be one of {'|'.join(SETTLEMENT_STATUSES)}")
    with session_scope() as s:
        st = s.get(Settlement, settlement_id)
        if not st:
            return None
        now = now_utc()
        if status == "completed" and st.status != "completed":
            st.completed_at = now
        elif status == "pending":
            st.completed_at = None
        st.status = status
        st.updated_at = now
        s.add(st)
        s.flush()
        return _settlement_dict(st)
