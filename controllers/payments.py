# controllers/payments.py
from __future__ import annotations
from flask import Blueprint, request, jsonify, current_app

from services.metrics import WEBHOOK_EVENTS
from services.payments.base import WebhookValidationError
from services.payments.processing import process_payment_confirmation
from services.payments.registry import get_provider
from services.payments.results import OutcomeKind
from services.settlement import settlement_policy_from_config

payments_bp = Blueprint("payments", __name__)

_ERROR_STATUS = {
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.STORE_ERROR: 500,
    OutcomeKind.PARTIAL_FAILURE: 500,
    OutcomeKind.CONFLICTING_REFERENCE: 500,
}


def _count(provider: str, event_type: str, outcome: OutcomeKind) -> None:
    WEBHOOK_EVENTS.labels(provider=provider, event=event_type,
                          outcome=outcome.value).inc()


# ----- provider webhook (no session auth; CSRF-exempt in app.py) -----

@payments_bp.post("/api/payments/callback")
def webhook():
    """
    Payment confirmation webhook. The gateway retries on timeout or any
    non-2xx, so everything below runs synchronously inside the request.
    """
    provider = get_provider()
    try:
        evt = provider.parse_webhook(request)
    except WebhookValidationError as e:
        current_app.logger.warning("webhook rejected: %s", e)
        _count(provider.name, "unknown", OutcomeKind.VALIDATION)
        return jsonify({"error": str(e)}), 400

    is_done = provider.is_payment_done(evt)
    event_label = "payment_status_changed" if is_done else "other"
    if not is_done:
        current_app.logger.info("webhook ignored: eventType=%s status=%s orderId=%s",
                                evt.event_type, evt.status, evt.order_id)
        _count(provider.name, event_label, OutcomeKind.IGNORED)
        return jsonify({"message": "Ignored"}), 200

    try:
        conf = provider.to_confirmation(
            evt, current_app.config.get("DEFAULT_PAYMENT_METHOD", "CARD"))
    except WebhookValidationError as e:
        current_app.logger.warning("webhook rejected: orderId=%s %s", evt.order_id, e)
        _count(provider.name, event_label, OutcomeKind.VALIDATION)
        return jsonify({"error": str(e)}), 400

    outcome = process_payment_confirmation(
        conf,
        settlement_policy_from_config(current_app.config),
        lookup_attempts=current_app.config.get("SETTLEMENT_LOOKUP_ATTEMPTS", 5),
        lookup_delay=current_app.config.get("SETTLEMENT_LOOKUP_DELAY_SEC", 0.05),
    )
    _count(provider.name, event_label, outcome.kind)

    if outcome.kind.is_success:
        return jsonify({
            "success": True,
            "orderId": outcome.order_id,
            "settlementId": outcome.settlement_id,
            "paymentId": outcome.payment_id,
        }), 200

    status = _ERROR_STATUS.get(outcome.kind, 500)
    return jsonify({"error": outcome.error or outcome.kind.value,
                    "orderId": outcome.order_id}), status


@payments_bp.get("/api/payments/callback")
def webhook_probe():
    # gateways ping the URL when it is registered
    return jsonify({"message": "Payment callback endpoint"}), 200
