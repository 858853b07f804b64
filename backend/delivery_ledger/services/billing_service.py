# Overview: Monthly totals and rounding for delivery calendars.

from __future__ import annotations

from typing import Iterable

from ..validation import parse_positive_int, parse_year_month
from .calendar_service import CalendarDay, build_customer_month
from .customer_service import get_customer
from .customer_settings_service import is_rounding_enabled


# Totals are rounded down to this unit when rounding is enabled
ROUNDING_UNIT = 10


def sum_calendar(days: Iterable[CalendarDay]) -> int:
    """Raw total: every line item amount across the month."""
    return sum(item.amount for day in days for item in day.items)


def apply_rounding(raw_total: int, rounding_enabled: bool) -> int:
    if not rounding_enabled:
        return raw_total
    return (raw_total // ROUNDING_UNIT) * ROUNDING_UNIT


def rounded_base(raw_total: int, rounding_enabled: bool) -> int:
    """Rounded total, never negative."""
    return max(0, apply_rounding(raw_total, rounding_enabled))


def compute_monthly_total(customer_id: int, year: int, month: int) -> dict:
    """
    Compute a customer-month's billable amount from its calendar.

    Returns:
        {"raw_total", "rounding_enabled", "rounded_total", "rounded_base"}
        where rounded_total is the unclamped rounded value
    """
    days, _patterns, _changes = build_customer_month(customer_id, year, month)
    raw_total = sum_calendar(days)
    rounding = is_rounding_enabled(customer_id)
    return {
        "raw_total": raw_total,
        "rounding_enabled": rounding,
        "rounded_total": apply_rounding(raw_total, rounding),
        "rounded_base": rounded_base(raw_total, rounding),
    }


def get_monthly_total(customer_id, year, month) -> dict:
    """Validated entry point for compute_monthly_total."""
    cid = parse_positive_int(customer_id, "customer_id")
    y, m = parse_year_month(year, month)
    get_customer(cid)
    return {"customer_id": cid, "year": y, "month": m, **compute_monthly_total(cid, y, m)}
