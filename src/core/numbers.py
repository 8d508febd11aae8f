"""Decimal rounding and guarded division helpers.

Every ratio in the engines goes through these so that an empty period
yields zeros instead of ``DivisionByZero`` errors.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
CENT = Decimal("0.01")
UNIT = Decimal("1")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round0(value) -> Decimal:
    return to_decimal(value).quantize(UNIT, rounding=ROUND_HALF_UP)


def safe_ratio(numerator, denominator) -> Decimal:
    denominator = to_decimal(denominator)
    if not denominator:
        return ZERO
    return to_decimal(numerator) / denominator


def percent(numerator, denominator) -> Decimal:
    """``numerator / denominator * 100`` rounded to cents, 0 when undefined."""
    return round2(safe_ratio(numerator, denominator) * 100)
