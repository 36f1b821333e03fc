# scripts/reconcile_settlements.py
"""
Create missing settlements for orders that were marked paid but never
settled (settlement write failed after the order transition).

    python -m scripts.reconcile_settlements [--dry-run] [--limit N]

Reads DATABASE_URL, PLATFORM_FEE_RATE and PAYOUT_DELAY_DAYS from the
environment / .env, same as the web app. Exit code 1 if any order is still
unsettled afterwards.
"""
import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from models.base import init_engine_and_session
from services.reconcile import reconcile_unsettled_orders
from services.settlement import settlement_policy_from_config

# Load .env from project root
load_dotenv(Path(__file__).resolve().parents[1] / ".env")


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    ap.add_argument("--dry-run", action="store_true",
                    help="list the orders that would be settled, write nothing")
    ap.add_argument("--limit", type=int, default=None,
                    help="settle at most N orders in this run")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    init_engine_and_session()
    policy = settlement_policy_from_config(os.environ)
    report = reconcile_unsettled_orders(
        policy, limit=args.limit, dry_run=args.dry_run)

    verb = "would settle" if report.dry_run else "settled"
    print(f"[reconcile] scanned={report.scanned} {verb}={len(report.created)} "
          f"failed={len(report.failed)}")
    for oid in report.failed:
        print(f"[!] still unsettled: {oid}")
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
