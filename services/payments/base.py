# services/payments/base.py
"""
Gateway-neutral webhook model.
Adapters must implement PaymentProvider.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Any, Protocol


class WebhookValidationError(ValueError):
    """The webhook body is malformed or lacks a required field (HTTP 400)."""


@dataclass
class WebhookEvent:
    provider: str                 # 'toss' | ...
    event_type: str               # e.g. 'PAYMENT_STATUS_CHANGED'
    status: Optional[str]         # gateway payment status, 'DONE' when paid
    order_id: Optional[str]
    payment_key: Optional[str]    # gateway's payment reference
    approved_at: Optional[str]    # raw ISO-8601 string as delivered
    total_amount: Any             # raw value; validated in to_confirmation
    method: Optional[str]


@dataclass(frozen=True)
class PaymentConfirmation:
    order_id: str
    payment_key: str
    approved_at: datetime         # aware UTC
    total_amount: Optional[Decimal]
    method: str


class PaymentProvider(Protocol):
    name: str

    def parse_webhook(self, request) -> WebhookEvent:
        """
        Parse the provider webhook into a WebhookEvent.
        Raise WebhookValidationError only when the body is not usable at all;
        missing fields are checked later so ignorable events stay ignorable.
        """

    def is_payment_done(self, event: WebhookEvent) -> bool:
        """True only for events that report a terminal 'paid' outcome."""

    def to_confirmation(self, event: WebhookEvent, default_method: str) -> PaymentConfirmation:
        """Validate required fields and normalize types; raise WebhookValidationError."""
