# services/payments/toss_provider.py
"""
TossPayments webhook adapter.

Toss posts {"eventType": "...", "createdAt": "...", "data": {...payment...}}.
Only PAYMENT_STATUS_CHANGED with data.status == "DONE" confirms a payment;
every other combination is acknowledged and dropped by the endpoint.
"""

from __future__ import annotations
from decimal import Decimal, InvalidOperation

from services.datetimex import parse_iso_to_utc
from services.payments.base import (
    PaymentProvider, WebhookEvent, PaymentConfirmation, WebhookValidationError,
)

DONE_STATUS = "DONE"
DEFAULT_EVENT_TYPE = "PAYMENT_STATUS_CHANGED"
MAX_AMOUNT = Decimal(10) ** 16
CENT = Decimal("0.01")


def _text(v) -> str | None:
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class TossProvider(PaymentProvider):
    name = "toss"

    def __init__(self, event_type: str = DEFAULT_EVENT_TYPE):
        self.event_type = event_type

    def parse_webhook(self, request) -> WebhookEvent:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise WebhookValidationError("request body must be a JSON object")
        data = payload.get("data")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise WebhookValidationError("'data' must be an object")

        return WebhookEvent(
            provider=self.name,
            event_type=_text(payload.get("eventType")) or "",
            status=_text(data.get("status")),
            order_id=_text(data.get("orderId")),
            payment_key=_text(data.get("paymentKey")),
            approved_at=_text(data.get("approvedAt")),
            total_amount=data.get("totalAmount"),
            method=_text(data.get("method")),
        )

    def is_payment_done(self, event: WebhookEvent) -> bool:
        return event.event_type == self.event_type and event.status == DONE_STATUS

    def to_confirmation(self, event: WebhookEvent, default_method: str) -> PaymentConfirmation:
        missing = [name for name, v in (("orderId", event.order_id),
                                        ("paymentKey", event.payment_key),
                                        ("approvedAt", event.approved_at)) if not v]
        if missing:
            raise WebhookValidationError(
                "missing required field(s): " + ", ".join(missing))

        approved_at = parse_iso_to_utc(event.approved_at)
        if approved_at is None:
            raise WebhookValidationError(
                f"approvedAt is not an ISO-8601 timestamp: {event.approved_at!r}")

        amount = None
        if event.total_amount is not None:
            # bool is an int subclass; reject it explicitly
            if isinstance(event.total_amount, bool):
                raise WebhookValidationError("totalAmount must be a number")
            try:
                amount = Decimal(str(event.total_amount))
            except InvalidOperation:
                raise WebhookValidationError("totalAmount must be a number")
            if not amount.is_finite() or amount < 0:
                raise WebhookValidationError(
                    "totalAmount must be a non-negative number")
            # must fit the Numeric(18, 2) money columns
            if amount >= MAX_AMOUNT:
                raise WebhookValidationError(
                    f"totalAmount must be less than {MAX_AMOUNT:,}")
            if amount != amount.quantize(CENT):
                raise WebhookValidationError(
                    "totalAmount must have at most 2 decimal places")

        return PaymentConfirmation(
            order_id=event.order_id,
            payment_key=event.payment_key,
            approved_at=approved_at,
            total_amount=amount,
            method=event.method or default_method,
        )
