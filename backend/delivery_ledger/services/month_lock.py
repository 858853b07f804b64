# Overview: Month-lock policy shared by every mutation of patterns and temporary changes.

"""
Month Lock

A confirmed invoice for (customer, year, month) freezes the delivery data
behind it. Every entry point that writes DeliveryPattern or TemporaryChange
rows goes through this module so the policy stays in one place.

RULES:
- TemporaryChange create/update/delete: the change date's month must be open.
- Pattern create / toggle / field edits: no confirmed month may fall inside
  the pattern's span (open end = every later month).
- Pattern end date shortened: no confirmed month may lose days, i.e. the new
  end may not fall before the last day of the latest confirmed month inside
  the old span.
- Pattern end date extended / start moved: no newly covered month may be
  confirmed.
"""

from __future__ import annotations

from datetime import date, timedelta

from ..extensions import db
from ..models import Invoice
from ..models.ledger import INVOICE_STATUS_CONFIRMED
from delivery_ledger.time_utils import (
    OPEN_END_MONTH_KEY,
    date_month_key,
    month_key,
    split_month_key,
)


class MonthLockedError(ValueError):
    """Raised when a mutation targets a confirmed (locked) customer-month."""

    def __init__(self, customer_id: int, year: int, month: int, message: str | None = None):
        self.customer_id = customer_id
        self.year = year
        self.month = month
        super().__init__(
            message
            or f"{year:04d}-{month:02d} is confirmed for customer {customer_id}; unconfirm it first"
        )

    @property
    def year_month(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "year": self.year,
            "month": self.month,
            "year_month": self.year_month,
        }


def is_month_confirmed(customer_id: int, year: int, month: int) -> bool:
    row = (
        db.session.query(Invoice.id)
        .filter_by(customer_id=customer_id, year=year, month=month, status=INVOICE_STATUS_CONFIRMED)
        .first()
    )
    return row is not None


def confirmed_month_keys(customer_id: int, start_key: int, end_key: int) -> list[int]:
    """Confirmed month keys for a customer within [start_key, end_key], ascending."""
    if start_key > end_key:
        return []
    key_expr = Invoice.year * 100 + Invoice.month
    rows = (
        db.session.query(Invoice.year, Invoice.month)
        .filter(
            Invoice.customer_id == customer_id,
            Invoice.status == INVOICE_STATUS_CONFIRMED,
            key_expr >= start_key,
            key_expr <= end_key,
        )
        .all()
    )
    return sorted(month_key(y, m) for y, m in rows)


def latest_confirmed_month_key(customer_id: int) -> int | None:
    keys = confirmed_month_keys(customer_id, 0, OPEN_END_MONTH_KEY)
    return keys[-1] if keys else None


def confirmed_customer_ids(year: int, month: int) -> set[int]:
    """Snapshot of customers whose (year, month) invoice is confirmed."""
    rows = (
        db.session.query(Invoice.customer_id)
        .filter_by(year=year, month=month, status=INVOICE_STATUS_CONFIRMED)
        .all()
    )
    return {int(r[0]) for r in rows}


def _raise_for_key(customer_id: int, key: int, message: str | None = None):
    year, month = split_month_key(key)
    raise MonthLockedError(customer_id, year, month, message)


def assert_month_open(customer_id: int, year: int, month: int) -> None:
    if is_month_confirmed(customer_id, year, month):
        raise MonthLockedError(customer_id, year, month)


def assert_date_open(customer_id: int, d: date) -> None:
    assert_month_open(customer_id, d.year, d.month)


def assert_range_open(customer_id: int, start: date, end: date | None) -> None:
    """No confirmed month within [start, end]; end=None means open-ended."""
    keys = confirmed_month_keys(customer_id, date_month_key(start), date_month_key(end))
    if keys:
        _raise_for_key(customer_id, keys[0])


def check_pattern_update(
    customer_id: int,
    *,
    old_start: date,
    old_end: date | None,
    new_start: date,
    new_end: date | None,
    other_fields_changed: bool,
) -> None:
    """
    Validate a pattern edit against confirmed months.

    Raises:
        MonthLockedError: naming the first offending year-month
    """
    if other_fields_changed:
        # quantity/price/schedule edits rewrite every month the pattern covers
        assert_range_open(customer_id, old_start, old_end)
        assert_range_open(customer_id, new_start, new_end)
        return

    if new_start != old_start:
        span_start = min(old_start, new_start)
        span_end = max(old_start, new_start) - timedelta(days=1)
        assert_range_open(customer_id, span_start, span_end)

    old_end_key = date_month_key(old_end)

    if new_end is not None and (old_end is None or new_end < old_end):
        # Shortening: no confirmed month may lose days in (new_end, old_end]
        keys = confirmed_month_keys(customer_id, date_month_key(new_end + timedelta(days=1)), old_end_key)
        if keys:
            year, month = split_month_key(keys[-1])
            raise MonthLockedError(
                customer_id,
                year,
                month,
                f"End date {new_end.isoformat()} would remove deliveries from confirmed month "
                f"{year:04d}-{month:02d}; choose an end date on or after the end of the latest confirmed month",
            )
    elif old_end is not None and (new_end is None or new_end > old_end):
        # Extension: months newly covered by (old_end, new_end] must be open
        assert_range_open(customer_id, old_end + timedelta(days=1), new_end)
