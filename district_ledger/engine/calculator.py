"""
Bill and transaction calculators – the single source of every derived amount.

Bill:
  gst_amount   = round2(bill_amount × gst_percent / 100)
  total_amount = round2(bill_amount × 1.18)            (independent of gst_percent)

Transaction:
  gst_amount         = round2(expected × gst_percent / 100)
  gst_balance        = round2(gst_amount − advance)
  bills_received     = round2(Σ bill_amount)
  remaining_expected = round2(max(0, expected − Σ round2(bill_amount × 1.18)))
"""
from __future__ import annotations

import math
from typing import Iterable, NamedTuple

from district_ledger.core.exceptions import ValidationError
from district_ledger.engine.money import (
    BILL_TOTAL_RATE,
    GST_RATES,
    PROFIT_RATE,
    is_valid_gst_rate,
    round2,
)


class BillAmounts(NamedTuple):
    gst_amount: float
    total_amount: float


class TransactionGst(NamedTuple):
    gst_amount: float
    gst_balance: float


class BillAggregate(NamedTuple):
    sum_total: float
    bills_received: float
    remaining_expected: float


# ── Validation helpers ────────────────────────────────────────────────────────


def require_positive(value: float, field: str) -> float:
    if not _is_number(value) or value <= 0:
        raise ValidationError(f"{field} must be greater than 0, got {value!r}")
    return float(value)


def require_non_negative(value: float, field: str) -> float:
    if not _is_number(value) or value < 0:
        raise ValidationError(f"{field} cannot be negative, got {value!r}")
    return float(value)


def require_gst_rate(rate: float) -> float:
    if not _is_number(rate) or not is_valid_gst_rate(rate):
        allowed = ", ".join(f"{r:g}" for r in GST_RATES)
        raise ValidationError(f"gst_percent must be one of {allowed}; got {rate!r}")
    return float(rate)


def _is_number(value) -> bool:
    # bool is an int subclass; True must not pass as 1 rupee
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


# ── Calculators ───────────────────────────────────────────────────────────────


def bill_total(bill_amount: float) -> float:
    return round2(bill_amount * BILL_TOTAL_RATE)


def calculate_bill(bill_amount: float, gst_percent: float) -> BillAmounts:
    """Return (gst_amount, total_amount) for one bill. Pure."""
    bill_amount = require_positive(bill_amount, "bill_amount")
    gst_percent = require_gst_rate(gst_percent)
    return BillAmounts(
        gst_amount=round2(bill_amount * gst_percent / 100),
        total_amount=bill_total(bill_amount),
    )


def transaction_gst(expected_amount: float, advance_amount: float, gst_percent: float) -> TransactionGst:
    """GST owed on the expected amount, and what is left after the advance."""
    gst_amount = round2(expected_amount * gst_percent / 100)
    return TransactionGst(gst_amount, round2(gst_amount - advance_amount))


def aggregate_bills(expected_amount: float, bill_amounts: Iterable[float]) -> BillAggregate:
    """
    Fold a transaction's bill set into bills_received / remaining_expected.

    Each bill total is rounded on its own before it is added, so two bills of
    33.335 give 39.34 + 39.34 and not round2(78.6706).
    """
    amounts = list(bill_amounts)
    sum_total = 0.0
    for amount in amounts:
        sum_total += bill_total(amount)
    return BillAggregate(
        sum_total=round2(sum_total),
        bills_received=round2(sum(amounts)),
        remaining_expected=round2(max(0.0, expected_amount - sum_total)),
    )


def profit_for(expected_amount: float) -> float:
    """Fixed 8% of the expected amount (not of bills or GST)."""
    return round2(expected_amount * PROFIT_RATE)
