# services/reconcile.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from models.orders_store import list_paid_orders_without_settlement
from models.settlements_store import create_settlement
from services.metrics import SETTLEMENTS_CREATED
from services.settlement import SettlementPolicy, calculate_settlement

log = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    scanned: int = 0
    created: list[str] = field(default_factory=list)    # order ids that got a settlement
    failed: list[str] = field(default_factory=list)     # order ids still unsettled
    dry_run: bool = False


def reconcile_unsettled_orders(policy: SettlementPolicy, *, limit: int | None = None,
                               dry_run: bool = False) -> ReconcileReport:
    """
    Create the missing settlement for every order that carries a payment key
    but has none (a settlement write that failed after the order was marked
    paid). Uses the order's recorded total and paid_at with the given policy.
    Safe to run repeatedly and alongside live webhooks.
    """
    report = ReconcileReport(dry_run=dry_run)
    orders = list_paid_orders_without_settlement(limit=limit)
    report.scanned = len(orders)

    for o in orders:
        if dry_run:
            log.info("would settle order_id=%s paid_at=%s total=%s",
                     o["id"], o["paid_at"], o["total_amount"])
            report.created.append(o["id"])
            continue
        calc = calculate_settlement(o["total_amount"], o["paid_at"], policy)
        try:
            settlement, created = create_settlement(o["id"], o["wholesaler_id"], calc)
        except SQLAlchemyError:
            log.exception("reconcile: settlement write failed: order_id=%s", o["id"])
            report.failed.append(o["id"])
            continue
        if created:
            SETTLEMENTS_CREATED.labels(source="reconcile").inc()
            log.warning("reconcile: settlement created for paid-but-unsettled order: "
                        "order_id=%s settlement_id=%s", o["id"], settlement["id"])
        report.created.append(o["id"])

    log.info("reconcile done: scanned=%d created=%d failed=%d dry_run=%s",
             report.scanned, len(report.created), len(report.failed), dry_run)
    return report
