from datetime import datetime, timezone
from decimal import Decimal

import pytest

from services.payments.base import WebhookValidationError
from services.payments.registry import get_provider
from services.payments.toss_provider import TossProvider
from tests.utils import webhook_payload


def _parse(app, body=None, data=None, content_type=None):
    kw = {"json": body} if data is None else {"data": data, "content_type": content_type}
    with app.test_request_context("/api/payments/callback", method="POST", **kw):
        from flask import request
        return TossProvider().parse_webhook(request)


def test_registry_defaults_to_toss(app):
    with app.app_context():
        p = get_provider()
    assert p.name == "toss"
    assert p.event_type == "PAYMENT_STATUS_CHANGED"


def test_registry_rejects_unknown_provider(app, monkeypatch):
    monkeypatch.setitem(app.config, "PAYMENT_PROVIDER", "paypal")
    with app.app_context(), pytest.raises(RuntimeError):
        get_provider()


def test_parse_and_confirm_happy_path(app):
    evt = _parse(app, webhook_payload(totalAmount=50000, method="TRANSFER"))
    p = TossProvider()
    assert p.is_payment_done(evt)

    conf = p.to_confirmation(evt, "CARD")
    assert conf.order_id == "ORD-1"
    assert conf.payment_key == "PK-100"
    assert conf.approved_at == datetime(2025, 1, 20, 10, 0, tzinfo=timezone.utc)
    assert conf.total_amount == Decimal("50000")
    assert conf.method == "TRANSFER"


def test_offset_timestamp_is_normalized_to_utc(app):
    evt = _parse(app, webhook_payload(approved_at="2025-01-20T19:00:00+09:00"))
    conf = TossProvider().to_confirmation(evt, "CARD")
    assert conf.approved_at == datetime(2025, 1, 20, 10, 0, tzinfo=timezone.utc)


def test_method_and_amount_are_optional(app):
    conf = TossProvider().to_confirmation(_parse(app, webhook_payload()), "CARD")
    assert conf.method == "CARD"
    assert conf.total_amount is None


@pytest.mark.parametrize("event_type,status", [
    ("PAYMENT_STATUS_CHANGED", "CANCELED"),
    ("PAYMENT_STATUS_CHANGED", "WAITING_FOR_DEPOSIT"),
    ("DEPOSIT_CALLBACK", "DONE"),
    ("", "DONE"),
])
def test_only_status_changed_done_is_terminal(app, event_type, status):
    evt = _parse(app, webhook_payload(event_type=event_type, status=status))
    assert TossProvider().is_payment_done(evt) is False


def test_custom_event_type(app):
    evt = _parse(app, webhook_payload(event_type="PAYMENT_CONFIRMED"))
    assert TossProvider(event_type="PAYMENT_CONFIRMED").is_payment_done(evt)
    assert not TossProvider().is_payment_done(evt)


@pytest.mark.parametrize("field", ["orderId", "paymentKey", "approvedAt"])
def test_missing_required_field(app, field):
    body = webhook_payload()
    del body["data"][field]
    evt = _parse(app, body)
    with pytest.raises(WebhookValidationError) as ei:
        TossProvider().to_confirmation(evt, "CARD")
    assert field in str(ei.value)


@pytest.mark.parametrize("amount", ["lots", True, -5, "NaN", 1e20, 10 ** 16, 12.345])
def test_bad_total_amount(app, amount):
    evt = _parse(app, webhook_payload(totalAmount=amount))
    with pytest.raises(WebhookValidationError):
        TossProvider().to_confirmation(evt, "CARD")


def test_unparseable_approved_at(app):
    evt = _parse(app, webhook_payload(approved_at="yesterday-ish"))
    with pytest.raises(WebhookValidationError):
        TossProvider().to_confirmation(evt, "CARD")


def test_non_object_body_is_rejected(app):
    with pytest.raises(WebhookValidationError):
        _parse(app, data=b"not json", content_type="text/plain")
    with pytest.raises(WebhookValidationError):
        _parse(app, body=[1, 2, 3])
    with pytest.raises(WebhookValidationError):
        _parse(app, body={"eventType": "PAYMENT_STATUS_CHANGED", "data": "DONE"})


def test_amount_just_under_the_column_limit(app):
    evt = _parse(app, webhook_payload(totalAmount="9999999999999999.99"))
    conf = TossProvider().to_confirmation(evt, "CARD")
    assert conf.total_amount == Decimal("9999999999999999.99")
