# services/payments/processing.py
"""
Payment confirmation pipeline.

    guard -> order transition -> settlement math -> settlement row -> payment row

A gateway delivers each confirmation at least once; this module turns that into
at most one order transition and one settlement per order. The in-process
guard is only the fast path: the conditional UPDATE on orders and the unique
constraints on orders.payment_key / settlements.order_id / payments.payment_key
decide who wins when two deliveries race.

Every store call runs in its own short transaction. The order transition is
committed before the settlement insert: if the settlement write
fails the order stays paid and the outcome is PARTIAL_FAILURE, which the
reconciliation sweep (services/reconcile.py) repairs.
"""

from __future__ import annotations
import logging
import time
from decimal import Decimal
from enum import Enum

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.orders_store import get_order, mark_order_paid
from models.settlements_store import create_settlement, get_settlement_for_order
from models.payments_store import record_payment, get_payment_by_key
from services.metrics import SETTLEMENTS_CREATED, PARTIAL_FAILURES, AUDIT_WRITE_FAILURES
from services.payments.base import PaymentConfirmation
from services.payments.results import OutcomeKind, PaymentOutcome
from services.settlement import SettlementPolicy, calculate_settlement, D

log = logging.getLogger(__name__)


class GuardDecision(str, Enum):
    PROCEED = "proceed"
    DUPLICATE = "duplicate"
    CONFLICT = "conflict"


def check_idempotency(order: dict, payment_key: str) -> GuardDecision:
    stored = order.get("payment_key")
    if stored is None:
        return GuardDecision.PROCEED
    if stored == payment_key:
        return GuardDecision.DUPLICATE
    return GuardDecision.CONFLICT


def _await_settlement(order_id: str, attempts: int, delay: float) -> dict | None:
    # a racing winner commits the order before its settlement row
    attempts = max(1, int(attempts))
    for i in range(attempts):
        st = get_settlement_for_order(order_id)
        if st is not None:
            return st
        if i < attempts - 1 and delay > 0:
            time.sleep(delay)
    return None


def _replay(conf: PaymentConfirmation, attempts: int, delay: float) -> PaymentOutcome:
    """Already processed: hand back what the first delivery created, write nothing."""
    try:
        settlement = _await_settlement(conf.order_id, attempts, delay)
    except SQLAlchemyError:
        log.exception("settlement lookup failed on replay: order_id=%s", conf.order_id)
        return PaymentOutcome(OutcomeKind.STORE_ERROR, order_id=conf.order_id,
                              error="settlement lookup failed")

    if settlement is None:
        log.error(
            "order is paid but has no settlement (needs reconciliation): order_id=%s payment_key=%s",
            conf.order_id, conf.payment_key)
        return PaymentOutcome(OutcomeKind.PARTIAL_FAILURE, order_id=conf.order_id,
                              error="order paid but settlement missing")

    payment_id = None
    try:
        payment = get_payment_by_key(conf.payment_key)
        payment_id = payment["id"] if payment else None
    except SQLAlchemyError:
        log.warning("payment lookup failed on replay: payment_key=%s",
                    conf.payment_key, exc_info=True)

    log.info("duplicate confirmation: order_id=%s payment_key=%s settlement_id=%s",
             conf.order_id, conf.payment_key, settlement["id"])
    return PaymentOutcome(OutcomeKind.DUPLICATE, order_id=conf.order_id,
                          settlement_id=settlement["id"], payment_id=payment_id)


def _conflict(conf: PaymentConfirmation, stored_key: str | None) -> PaymentOutcome:
    log.error(
        "payment key conflict, manual review required: order_id=%s stored_key=%s incoming_key=%s",
        conf.order_id, stored_key, conf.payment_key)
    return PaymentOutcome(OutcomeKind.CONFLICTING_REFERENCE, order_id=conf.order_id,
                          error="order already paid with a different payment key")


def _record_payment_best_effort(conf: PaymentConfirmation, settlement_id: str,
                                amount: Decimal) -> str | None:
    try:
        payment, _ = record_payment(
            order_id=conf.order_id, settlement_id=settlement_id, method=conf.method,
            amount=amount, payment_key=conf.payment_key, paid_at=conf.approved_at,
        )
        return payment["id"]
    except Exception:  # audit row only; the settlement already stands
        AUDIT_WRITE_FAILURES.inc()
        log.warning("payment audit row not written: order_id=%s payment_key=%s settlement_id=%s",
                    conf.order_id, conf.payment_key, settlement_id, exc_info=True)
        return None


def process_payment_confirmation(conf: PaymentConfirmation, policy: SettlementPolicy, *,
                                 lookup_attempts: int = 5, lookup_delay: float = 0.05) -> PaymentOutcome:
    """
    Apply one gateway confirmation. Never raises for store failures; the
    returned PaymentOutcome.kind says what happened.
    """
    try:
        order = get_order(conf.order_id)
    except SQLAlchemyError:
        log.exception("order lookup failed: order_id=%s", conf.order_id)
        return PaymentOutcome(OutcomeKind.STORE_ERROR, order_id=conf.order_id,
                              error="order lookup failed")
    if order is None:
        log.warning("confirmation for unknown order: order_id=%s payment_key=%s",
                    conf.order_id, conf.payment_key)
        return PaymentOutcome(OutcomeKind.NOT_FOUND, order_id=conf.order_id,
                              error="order not found")

    decision = check_idempotency(order, conf.payment_key)
    if decision is GuardDecision.DUPLICATE:
        return _replay(conf, lookup_attempts, lookup_delay)
    if decision is GuardDecision.CONFLICT:
        return _conflict(conf, order["payment_key"])

    # the order row stays the amount of record; the gateway figure only feeds the math
    recorded = D(order["total_amount"])
    amount = conf.total_amount if conf.total_amount is not None else recorded
    if amount != recorded:
        log.warning("gateway amount differs from order total: order_id=%s order=%s gateway=%s",
                    conf.order_id, recorded, amount)

    try:
        transitioned = mark_order_paid(conf.order_id, conf.payment_key, conf.approved_at)
    except IntegrityError:
        log.error("payment key already stamped on another order: order_id=%s payment_key=%s",
                  conf.order_id, conf.payment_key)
        return PaymentOutcome(OutcomeKind.CONFLICTING_REFERENCE, order_id=conf.order_id,
                              error="payment key already used by another order")
    except SQLAlchemyError:
        log.exception("order transition failed: order_id=%s", conf.order_id)
        return PaymentOutcome(OutcomeKind.STORE_ERROR, order_id=conf.order_id,
                              error="order update failed")

    if not transitioned:
        # another delivery stamped the order between our read and our write
        try:
            order = get_order(conf.order_id)
        except SQLAlchemyError:
            log.exception("order re-read failed: order_id=%s", conf.order_id)
            return PaymentOutcome(OutcomeKind.STORE_ERROR, order_id=conf.order_id,
                                  error="order lookup failed")
        if order is None:
            return PaymentOutcome(OutcomeKind.NOT_FOUND, order_id=conf.order_id,
                                  error="order not found")
        decision = check_idempotency(order, conf.payment_key)
        if decision is GuardDecision.DUPLICATE:
            return _replay(conf, lookup_attempts, lookup_delay)
        if decision is GuardDecision.CONFLICT:
            return _conflict(conf, order["payment_key"])
        log.error("order transition matched no row: order_id=%s", conf.order_id)
        return PaymentOutcome(OutcomeKind.STORE_ERROR, order_id=conf.order_id,
                              error="order update failed")

    log.info("order marked paid: order_id=%s payment_key=%s", conf.order_id, conf.payment_key)

    calc = calculate_settlement(amount, conf.approved_at, policy)
    try:
        settlement, created = create_settlement(conf.order_id, order["wholesaler_id"], calc)
    except SQLAlchemyError as e:
        PARTIAL_FAILURES.inc()
        log.critical(
            "order marked paid but settlement write failed: order_id=%s payment_key=%s error=%s",
            conf.order_id, conf.payment_key, e,
            extra={"order_id": conf.order_id, "payment_key": conf.payment_key,
                   "failure": "paid_but_unsettled"})
        return PaymentOutcome(OutcomeKind.PARTIAL_FAILURE, order_id=conf.order_id,
                              error="settlement creation failed")
    if created:
        SETTLEMENTS_CREATED.labels(source="webhook").inc()
        log.info("settlement created: order_id=%s settlement_id=%s payout=%s scheduled=%s",
                 conf.order_id, settlement["id"], calc.payout_amount,
                 calc.scheduled_payout_at.isoformat())

    payment_id = _record_payment_best_effort(conf, settlement["id"], amount)
    return PaymentOutcome(OutcomeKind.PROCESSED, order_id=conf.order_id,
                          settlement_id=settlement["id"], payment_id=payment_id,
                          audit_failed=payment_id is None)
