# tests/utils.py
from sqlalchemy import func, select

from models.base import session_scope
from models.orders_store import create_order
from models.schema import Payment, Settlement


def make_order(order_id="ORD-1", total=50000, wholesaler_id="WS-1"):
    return create_order(order_id, f"N-{order_id}", total, wholesaler_id=wholesaler_id)


def webhook_payload(order_id="ORD-1", payment_key="PK-100", status="DONE",
                    approved_at="2025-01-20T10:00:00Z",
                    event_type="PAYMENT_STATUS_CHANGED", **extra):
    data = {"paymentKey": payment_key, "orderId": order_id,
            "status": status, "approvedAt": approved_at}
    data.update(extra)
    return {"eventType": event_type, "createdAt": "2025-01-20T10:00:01Z", "data": data}


def post_webhook(client, payload):
    return client.post("/api/payments/callback", json=payload)


def count_settlements(order_id=None) -> int:
    with session_scope() as s:
        stmt = select(func.count(Settlement.id))
        if order_id:
            stmt = stmt.where(Settlement.order_id == order_id)
        return s.execute(stmt).scalar_one()


def count_payments() -> int:
    with session_scope() as s:
        return s.execute(select(func.count(Payment.id))).scalar_one()
