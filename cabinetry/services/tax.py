from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

MONEY = Decimal("0.01")


def to_decimal(x: Any) -> Decimal:
    if x is None:
        return Decimal("0")
    if isinstance(x, Decimal):
        return x
    # via str so floats keep their printed value
    return Decimal(str(x))


def qmoney(x: Any) -> Decimal:
    return to_decimal(x).quantize(MONEY, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class GstBreakdown:
    subtotal_ex_gst: Decimal
    gst_rate: Decimal
    gst_amount: Decimal
    total_inc_gst: Decimal


def calc_gst(subtotal_ex_gst: Any, gst_rate: Any) -> GstBreakdown:
    subtotal = qmoney(subtotal_ex_gst)
    rate = to_decimal(gst_rate)
    gst_amount = qmoney(subtotal * rate)
    total = qmoney(subtotal + gst_amount)
    return GstBreakdown(subtotal, rate, gst_amount, total)


def split_inclusive(amount_inc_gst: Any, gst_rate: Any) -> GstBreakdown:
    """Split a GST-inclusive amount into its ex-GST and GST parts."""
    total = qmoney(amount_inc_gst)
    rate = to_decimal(gst_rate)
    subtotal = qmoney(total / (Decimal("1") + rate))
    return GstBreakdown(subtotal, rate, total - subtotal, total)
