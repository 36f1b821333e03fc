# services/payments/registry.py
import os
from flask import current_app, has_app_context
# replace/add real adapters here
from services.payments.toss_provider import TossProvider, DEFAULT_EVENT_TYPE


def _cfg(key: str, default: str | None = None) -> str | None:
    if has_app_context():
        v = current_app.config.get(key)
        if v is not None:
            return v
    v = os.environ.get(key)
    return v if v is not None else default


def get_provider():
    name = (_cfg("PAYMENT_PROVIDER") or "toss").lower()
    if name == "toss":
        return TossProvider(event_type=_cfg("WEBHOOK_EVENT_TYPE") or DEFAULT_EVENT_TYPE)
    raise RuntimeError(f"Unknown PAYMENT_PROVIDER: {name}")
