# services/payments/results.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OutcomeKind(str, Enum):
    PROCESSED = "processed"                      # first confirmation, rows written
    DUPLICATE = "duplicate"                      # same payment key seen before; existing rows returned
    IGNORED = "ignored"                          # not a terminal paid event
    VALIDATION = "validation"                    # malformed payload
    NOT_FOUND = "not_found"                      # unknown order id
    STORE_ERROR = "store_error"                  # datastore failed before the order transition
    PARTIAL_FAILURE = "partial_failure"          # order paid, settlement missing
    CONFLICTING_REFERENCE = "conflicting_reference"  # order already paid with another key

    @property
    def is_success(self) -> bool:
        return self in (OutcomeKind.PROCESSED, OutcomeKind.DUPLICATE)


@dataclass(frozen=True)
class PaymentOutcome:
    """
    Result of one confirmation. A failed audit write is not an OutcomeKind:
    the outcome stays PROCESSED with payment_id None and audit_failed True.
    """
    kind: OutcomeKind
    order_id: Optional[str] = None
    # always set when kind.is_success
    settlement_id: Optional[str] = None
    # None when the best-effort audit row could not be written
    payment_id: Optional[str] = None
    audit_failed: bool = False
    error: Optional[str] = None
