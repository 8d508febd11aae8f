from datetime import date
from decimal import Decimal

import pytest

from core.numbers import percent, round0, round2, safe_ratio
from core.periods import (
    days_in_period,
    is_valid_period,
    last_periods,
    parse_period,
    period_bounds,
    previous_period,
    shift_period,
)


@pytest.mark.parametrize("period", ["2025-2", "25-02", "2025-13", "2025/02", "", None])
def test_malformed_periods_are_rejected(period):
    assert is_valid_period(period) is False
    with pytest.raises(ValueError):
        parse_period(period)


def test_period_bounds_cross_year():
    assert period_bounds("2025-12") == (date(2025, 12, 1), date(2026, 1, 1))


def test_days_in_february():
    assert days_in_period("2024-02") == 29
    assert days_in_period("2025-02") == 28


def test_shift_and_window():
    assert shift_period("2025-01", -1) == "2024-12"
    assert previous_period("2025-03") == "2025-02"
    assert last_periods("2025-02", 3) == ["2024-12", "2025-01", "2025-02"]


def test_guarded_ratios():
    assert safe_ratio(Decimal("10"), 0) == 0
    assert percent(1, 3) == Decimal("33.33")
    assert round2("2.005") == Decimal("2.01")
    assert round0(Decimal("6.5")) == Decimal("7")
