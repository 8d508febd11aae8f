"""Helpers for ``YYYY-MM`` period keys.

A period is a calendar month. Keys are zero padded so plain string
comparison gives chronological order.
"""
from __future__ import annotations

import calendar
from datetime import date

from django.utils import timezone


def parse_period(period: str) -> tuple[int, int]:
    """Return ``(year, month)`` for a period key, raising ``ValueError`` if malformed."""
    try:
        year_raw, month_raw = period.split("-")
        year, month = int(year_raw), int(month_raw)
    except (AttributeError, TypeError, ValueError):
        raise ValueError(f"Periode invalide: {period!r} (attendu: YYYY-MM).")
    if len(year_raw) != 4 or len(month_raw) != 2 or not 1 <= month <= 12:
        raise ValueError(f"Periode invalide: {period!r} (attendu: YYYY-MM).")
    return year, month


def is_valid_period(period) -> bool:
    try:
        parse_period(period)
    except ValueError:
        return False
    return True


def format_period(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


def period_of(value: date) -> str:
    return format_period(value.year, value.month)


def current_period(today: date | None = None) -> str:
    return period_of(today or timezone.localdate())


def period_bounds(period: str) -> tuple[date, date]:
    """First day of the period and first day of the next one (exclusive end)."""
    year, month = parse_period(period)
    start = date(year, month, 1)
    if month == 12:
        end = date(year + 1, 1, 1)
    else:
        end = date(year, month + 1, 1)
    return start, end


def days_in_period(period: str) -> int:
    year, month = parse_period(period)
    return calendar.monthrange(year, month)[1]


def shift_period(period: str, months: int) -> str:
    year, month = parse_period(period)
    index = year * 12 + (month - 1) + months
    return format_period(index // 12, index % 12 + 1)


def previous_period(period: str) -> str:
    return shift_period(period, -1)


def last_periods(period: str, count: int) -> list[str]:
    """``count`` periods ending with ``period``, oldest first."""
    return [shift_period(period, -offset) for offset in range(count - 1, -1, -1)]


def window_bounds(periods: list[str]) -> tuple[date, date]:
    """Date range covering every period in ``periods``."""
    ordered = sorted(periods)
    return period_bounds(ordered[0])[0], period_bounds(ordered[-1])[1]
