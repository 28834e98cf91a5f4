"""
Fixed-point money helpers and the locked business rates.

Every amount the engine stores or compares goes through ``round2`` first.
Aggregates are sums of already-rounded parts, never a rounded raw sum.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# Total-amount multiplier for bills. Pinned at 18% regardless of the bill's GST%.
BILL_TOTAL_RATE = 1.18

# Admin profit on a confirmed transaction, as a share of its expected amount.
PROFIT_RATE = 0.08

# Allowed GST percentages: 1, 1.5, 2, … 8
GST_RATES: tuple[float, ...] = tuple(step / 2 for step in range(2, 17))


def round2(value: float) -> float:
    """
    Round to 2 decimals, half away from zero.

    The scaling by 100 happens in float (as the figures were always computed),
    then the scaled value is rounded on its shortest decimal representation so
    that 306656.00000000006 and 306655.99999999994 both land on 306656.
    """
    scaled = Decimal(repr(float(value) * 100))
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP)) / 100


def is_valid_gst_rate(rate: float) -> bool:
    return rate in GST_RATES
