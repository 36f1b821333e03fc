# services/settlement.py
"""
Settlement math for a paid order.

Everything here is pure: the fee rate and payout delay come in through a
SettlementPolicy, never from the environment, so callers (webhook pipeline,
reconciliation sweep, tests) all get the same numbers for the same inputs.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Mapping

DEFAULT_PLATFORM_FEE_RATE = Decimal("0.05")
DEFAULT_PAYOUT_DELAY_DAYS = 7

# fees are floored to whole currency units (KRW has no minor unit)
FEE_QUANTUM = Decimal("1")


def D(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    # never pass float directly; stringify first to avoid binary artifacts
    return Decimal(str(x or 0))


@dataclass(frozen=True)
class SettlementPolicy:
    platform_fee_rate: Decimal = DEFAULT_PLATFORM_FEE_RATE
    payout_delay_days: int = DEFAULT_PAYOUT_DELAY_DAYS

    def __post_init__(self):
        rate = D(self.platform_fee_rate)
        if rate < 0 or rate > 1:
            raise ValueError(
                f"platform_fee_rate must be within [0, 1], got {rate}")
        if int(self.payout_delay_days) < 0:
            raise ValueError(
                f"payout_delay_days must be >= 0, got {self.payout_delay_days}")
        object.__setattr__(self, "platform_fee_rate", rate)
        object.__setattr__(self, "payout_delay_days",
                           int(self.payout_delay_days))


def settlement_policy_from_config(config: Mapping[str, Any]) -> SettlementPolicy:
    """Build the policy from a Flask config (or any mapping)."""
    return SettlementPolicy(
        platform_fee_rate=D(config.get(
            "PLATFORM_FEE_RATE", DEFAULT_PLATFORM_FEE_RATE)),
        payout_delay_days=int(config.get(
            "PAYOUT_DELAY_DAYS", DEFAULT_PAYOUT_DELAY_DAYS)),
    )


@dataclass(frozen=True)
class SettlementCalculation:
    order_amount: Decimal
    platform_fee_rate: Decimal
    platform_fee: Decimal
    payout_amount: Decimal
    scheduled_payout_at: datetime
    status: str = "pending"


def calculate_settlement(order_amount, paid_at: datetime,
                         policy: SettlementPolicy) -> SettlementCalculation:
    amount = D(order_amount)
    if amount < 0:
        raise ValueError(f"order amount must be >= 0, got {amount}")
    if paid_at is None:
        raise ValueError("paid_at is required")

    fee = (amount * policy.platform_fee_rate).quantize(
        FEE_QUANTUM, rounding=ROUND_FLOOR)
    return SettlementCalculation(
        order_amount=amount,
        platform_fee_rate=policy.platform_fee_rate,
        platform_fee=fee,
        payout_amount=amount - fee,
        scheduled_payout_at=paid_at + timedelta(days=policy.payout_delay_days),
    )
