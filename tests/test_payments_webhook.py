from datetime import datetime, timezone
from decimal import Decimal

import pytest

from models.orders_store import get_order
from models.payments_store import get_payment
from models.settlements_store import get_settlement, get_settlement_for_order
from tests.utils import (
    make_order, webhook_payload, post_webhook, count_settlements, count_payments,
)


def test_first_confirmation_marks_paid_and_settles(client):
    make_order("ORD-1", total=50000)

    r = post_webhook(client, webhook_payload())
    assert r.status_code == 200
    body = r.get_json()
    assert body["success"] is True
    assert body["orderId"] == "ORD-1"
    assert body["settlementId"]
    assert body["paymentId"]

    order = get_order("ORD-1")
    assert order["status"] == "paid"
    assert order["payment_key"] == "PK-100"
    assert order["paid_at"] == datetime(2025, 1, 20, 10, 0, tzinfo=timezone.utc)

    st = get_settlement(body["settlementId"])
    assert st["order_id"] == "ORD-1"
    assert st["wholesaler_id"] == "WS-1"
    assert st["status"] == "pending"
    assert st["order_amount"] == Decimal("50000")
    assert st["platform_fee"] == Decimal("2500")
    assert st["payout_amount"] == Decimal("47500")
    assert st["scheduled_payout_at"] == datetime(2025, 1, 27, 10, 0, tzinfo=timezone.utc)

    pay = get_payment(body["paymentId"])
    assert pay["settlement_id"] == st["id"]
    assert pay["payment_key"] == "PK-100"
    assert pay["method"] == "CARD"
    assert pay["status"] == "paid"
    assert pay["amount"] == Decimal("50000")


def test_redelivery_returns_same_settlement_without_new_rows(client):
    make_order("ORD-1", total=50000)

    first = post_webhook(client, webhook_payload()).get_json()
    r = post_webhook(client, webhook_payload())

    assert r.status_code == 200
    again = r.get_json()
    assert again["success"] is True
    assert again["settlementId"] == first["settlementId"]
    assert again["paymentId"] == first["paymentId"]
    assert count_settlements("ORD-1") == 1
    assert count_payments() == 1


@pytest.mark.parametrize("overrides", [
    {"status": "CANCELED"},
    {"status": "WAITING_FOR_DEPOSIT"},
    {"event_type": "DEPOSIT_CALLBACK"},
])
def test_non_terminal_events_are_ignored_without_writes(client, overrides):
    make_order("ORD-1")

    r = post_webhook(client, webhook_payload(**overrides))

    assert r.status_code == 200
    assert r.get_json() == {"message": "Ignored"}
    order = get_order("ORD-1")
    assert order["status"] == "unpaid"
    assert order["payment_key"] is None
    assert count_settlements() == 0
    assert count_payments() == 0


def test_ignored_event_may_lack_every_field(client):
    r = post_webhook(client, {"eventType": "PAYMENT_STATUS_CHANGED"})
    assert r.status_code == 200
    assert r.get_json() == {"message": "Ignored"}


@pytest.mark.parametrize("field", ["orderId", "paymentKey", "approvedAt"])
def test_missing_required_field_is_400_without_writes(client, field):
    make_order("ORD-1")
    payload = webhook_payload()
    del payload["data"][field]

    r = post_webhook(client, payload)

    assert r.status_code == 400
    assert "error" in r.get_json()
    assert get_order("ORD-1")["payment_key"] is None
    assert count_settlements() == 0


@pytest.mark.parametrize("amount", [1e20, 10 ** 16, 100.005])
def test_out_of_range_amount_is_400_without_writes(client, amount):
    make_order("ORD-1")

    r = post_webhook(client, webhook_payload(totalAmount=amount))

    assert r.status_code == 400
    assert "totalAmount" in r.get_json()["error"]
    order = get_order("ORD-1")
    assert order["status"] == "unpaid"
    assert order["payment_key"] is None
    assert count_settlements() == 0


def test_malformed_body_is_400(client):
    r = client.post("/api/payments/callback", data=b"{oops",
                    content_type="application/json")
    assert r.status_code == 400
    assert "error" in r.get_json()


def test_unknown_order_is_404_without_writes(client):
    make_order("ORD-1")

    r = post_webhook(client, webhook_payload(order_id="ORD-404"))

    assert r.status_code == 404
    assert r.get_json()["orderId"] == "ORD-404"
    assert "error" in r.get_json()
    assert count_settlements() == 0
    assert get_order("ORD-1")["payment_key"] is None


def test_gateway_amount_feeds_settlement_but_not_order_total(client):
    make_order("ORD-1", total=50000)

    r = post_webhook(client, webhook_payload(totalAmount=40000, method="TRANSFER"))

    assert r.status_code == 200
    body = r.get_json()
    assert get_order("ORD-1")["total_amount"] == Decimal("50000")
    st = get_settlement(body["settlementId"])
    assert st["order_amount"] == Decimal("40000")
    assert st["payout_amount"] == Decimal("38000")
    pay = get_payment(body["paymentId"])
    assert pay["amount"] == Decimal("40000")
    assert pay["method"] == "TRANSFER"


def test_different_key_on_paid_order_is_500_and_not_overwritten(client):
    make_order("ORD-1")
    post_webhook(client, webhook_payload(payment_key="PK-100"))

    r = post_webhook(client, webhook_payload(payment_key="PK-999"))

    assert r.status_code == 500
    assert r.get_json()["orderId"] == "ORD-1"
    assert get_order("ORD-1")["payment_key"] == "PK-100"
    assert count_settlements() == 1


def test_fee_rate_comes_from_app_config(client, app, monkeypatch):
    monkeypatch.setitem(app.config, "PLATFORM_FEE_RATE", "0.10")
    make_order("ORD-1", total=50000)

    post_webhook(client, webhook_payload())

    st = get_settlement_for_order("ORD-1")
    assert st["platform_fee"] == Decimal("5000")
    assert st["payout_amount"] == Decimal("45000")


def test_probe_endpoint(client):
    r = client.get("/api/payments/callback")
    assert r.status_code == 200
    assert r.get_json()["message"]
