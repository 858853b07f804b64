# Overview: Pure pattern-selection rules; no database access.

"""
Pattern Resolver

Picks the single effective DeliveryPattern per product for a date and
computes the scheduled quantity it yields.

SELECTION RULE:
- Only patterns whose [start_date, end_date] contains the date are candidates
  (end_date None = open-ended). A future-dated pattern never wins before its
  own start date, however recently it was created.
- Among candidates, the latest start_date wins.
- Equal start dates: the most recently created pattern wins (created_at,
  then id).

Works on any object exposing the DeliveryPattern attributes, so it can be
exercised without a session.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from delivery_ledger.time_utils import weekday_index


def is_valid_on(pattern, d: date) -> bool:
    if pattern.start_date is not None and d < pattern.start_date:
        return False
    if pattern.end_date is not None and d > pattern.end_date:
        return False
    return True


def _precedence(pattern) -> tuple:
    created = pattern.created_at or datetime.min
    return (pattern.start_date or date.min, created, pattern.id or 0)


def select_effective_pattern(patterns: Iterable, d: date):
    """Effective pattern among `patterns` at date `d`, or None."""
    best = None
    for pattern in patterns:
        if not is_valid_on(pattern, d):
            continue
        if best is None or _precedence(pattern) > _precedence(best):
            best = pattern
    return best


def resolve_patterns_by_product(patterns: Iterable, d: date) -> dict:
    """Map product_id -> effective pattern at date `d`."""
    grouped: dict = {}
    for pattern in patterns:
        grouped.setdefault(pattern.product_id, []).append(pattern)

    resolved = {}
    for product_id, candidates in grouped.items():
        best = select_effective_pattern(candidates, d)
        if best is not None:
            resolved[product_id] = best
    return resolved


def scheduled_quantity(pattern, d: date) -> int:
    """
    Quantity the pattern schedules on date `d`, ignoring overrides.

    A per-weekday map wins over the weekday set: map[weekday] (default 0).
    Otherwise the flat quantity on listed weekdays, 0 elsewhere.
    """
    weekday = weekday_index(d)
    daily = pattern.daily_quantities
    if daily:
        value = daily.get(str(weekday), daily.get(weekday, 0)) if isinstance(daily, dict) else 0
        return int(value or 0)

    days = pattern.delivery_days or []
    if weekday in {int(day) for day in days}:
        return int(pattern.quantity or 0)
    return 0
