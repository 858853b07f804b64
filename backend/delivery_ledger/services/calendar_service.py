# Overview: Service-layer operations for delivery calendars; combines patterns and overrides.

"""
Delivery Calendar

For every date of a month: resolve one pattern per product, apply that
date's temporary changes, and emit the resulting line items.

OVERLAY RULES:
- skip (for the product, or blanket with product_id NULL) forces quantity 0
- otherwise the latest-created modify replaces quantity (and unit price if set)
- add rows are always extra lines, never suppressed by skip/modify

Calendars are derived data: nothing here writes to the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable

from ..extensions import db
from ..models import DeliveryPattern, Product, TemporaryChange
from ..models.schedules import CHANGE_TYPE_ADD, CHANGE_TYPE_MODIFY, CHANGE_TYPE_SKIP
from ..validation import parse_positive_int, parse_year_month
from .customer_service import get_customer, list_course_customers
from .pattern_resolver import resolve_patterns_by_product, scheduled_quantity
from delivery_ledger.time_utils import iter_dates, month_bounds, to_iso_date, weekday_index


EXTRA_LINE_PREFIX = "(extra) "


@dataclass(frozen=True)
class LineItem:
    product_id: int | None
    name: str
    quantity: int
    unit_price: int
    amount: int
    unit: str | None = None
    is_extra: bool = False

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "amount": self.amount,
            "unit": self.unit,
            "is_extra": self.is_extra,
        }


@dataclass
class CalendarDay:
    date: date
    items: list[LineItem] = field(default_factory=list)

    @property
    def weekday(self) -> int:
        return weekday_index(self.date)

    @property
    def total(self) -> int:
        return sum(item.amount for item in self.items)

    def to_dict(self) -> dict:
        return {
            "date": to_iso_date(self.date),
            "day": self.date.day,
            "day_of_week": self.weekday,
            "products": [item.to_dict() for item in self.items],
            "total": self.total,
        }


@dataclass
class CustomerCalendar:
    customer: object
    year: int
    month: int
    days: list[CalendarDay]
    temporary_changes: list[TemporaryChange]
    patterns: list[DeliveryPattern] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "customer": self.customer.to_dict(),
            "customer_id": self.customer.id,
            "year": self.year,
            "month": self.month,
            "calendar": [day.to_dict() for day in self.days],
            "temporary_changes": [c.to_dict() for c in self.temporary_changes],
        }


# =============================================================================
# OVERLAY
# =============================================================================

def _change_order(change) -> tuple:
    return (change.created_at or datetime.min, change.id or 0)


def apply_overlay(quantity: int, unit_price: int, product_id: int, day_changes: Iterable) -> tuple[int, int]:
    """
    Apply one date's temporary changes to a scheduled line.

    Returns:
        (quantity, unit_price) after skip/modify
    """
    day_changes = list(day_changes)

    for change in day_changes:
        if change.change_type == CHANGE_TYPE_SKIP and change.product_id in (None, product_id):
            return 0, unit_price

    modifies = [
        c for c in day_changes
        if c.change_type == CHANGE_TYPE_MODIFY and c.product_id == product_id and c.quantity is not None
    ]
    if modifies:
        latest = max(modifies, key=_change_order)
        price = latest.unit_price if latest.unit_price is not None else unit_price
        return int(latest.quantity), price

    return quantity, unit_price


def extra_lines(day_changes: Iterable, products: dict) -> list[LineItem]:
    """Synthetic line items for `add` changes with a positive quantity."""
    lines = []
    for change in day_changes:
        if change.change_type != CHANGE_TYPE_ADD or not change.quantity or change.quantity <= 0:
            continue
        product = products.get(change.product_id)
        unit_price = change.unit_price
        if unit_price is None:
            unit_price = product.unit_price if product is not None else 0
        lines.append(LineItem(
            product_id=change.product_id,
            name=EXTRA_LINE_PREFIX + (product.name if product is not None else f"product {change.product_id}"),
            quantity=change.quantity,
            unit_price=unit_price,
            amount=change.quantity * unit_price,
            unit=product.unit if product is not None else None,
            is_extra=True,
        ))
    return lines


# =============================================================================
# CALENDAR GENERATION
# =============================================================================

def generate_monthly_calendar(
    year: int,
    month: int,
    patterns: Iterable,
    temporary_changes: Iterable = (),
    products: dict | None = None,
) -> list[CalendarDay]:
    """
    Build the day-by-day schedule for one customer-month.

    Args:
        patterns: the customer's active patterns (any dates)
        temporary_changes: the customer's changes for this month
        products: product_id -> Product, used for names and add-line prices

    Returns:
        One CalendarDay per date of the month, in order
    """
    patterns = list(patterns)
    products = products or {}

    changes_by_date: dict = {}
    for change in temporary_changes:
        changes_by_date.setdefault(change.change_date, []).append(change)

    first, last = month_bounds(year, month)
    days = []
    for current in iter_dates(first, last):
        day = CalendarDay(date=current)
        day_changes = changes_by_date.get(current, [])

        resolved = resolve_patterns_by_product(patterns, current)
        for product_id in sorted(resolved):
            pattern = resolved[product_id]
            quantity, unit_price = apply_overlay(
                scheduled_quantity(pattern, current),
                pattern.unit_price,
                product_id,
                day_changes,
            )
            if quantity <= 0:
                continue
            product = products.get(product_id)
            day.items.append(LineItem(
                product_id=product_id,
                name=product.name if product is not None else f"product {product_id}",
                quantity=quantity,
                unit_price=unit_price,
                amount=quantity * unit_price,
                unit=product.unit if product is not None else None,
            ))

        day.items.extend(extra_lines(day_changes, products))
        days.append(day)

    return days


# =============================================================================
# LOADERS
# =============================================================================

def load_active_patterns(customer_id: int, product_id: int | None = None) -> list[DeliveryPattern]:
    query = db.session.query(DeliveryPattern).filter_by(customer_id=customer_id, is_active=True)
    if product_id is not None:
        query = query.filter_by(product_id=product_id)
    return query.order_by(DeliveryPattern.start_date.asc(), DeliveryPattern.id.asc()).all()


def load_changes_between(customer_id: int, start: date, end: date) -> list[TemporaryChange]:
    return (
        db.session.query(TemporaryChange)
        .filter(
            TemporaryChange.customer_id == customer_id,
            TemporaryChange.change_date >= start,
            TemporaryChange.change_date <= end,
        )
        .order_by(TemporaryChange.change_date.asc(), TemporaryChange.created_at.desc())
        .all()
    )


def load_month_changes(customer_id: int, year: int, month: int) -> list[TemporaryChange]:
    first, last = month_bounds(year, month)
    return load_changes_between(customer_id, first, last)


def load_products(product_ids: Iterable) -> dict:
    ids = {pid for pid in product_ids if pid is not None}
    if not ids:
        return {}
    rows = db.session.query(Product).filter(Product.id.in_(ids)).all()
    return {p.id: p for p in rows}


def build_customer_month(customer_id: int, year: int, month: int) -> tuple[list[CalendarDay], list, list]:
    """Load inputs and generate one customer-month. Returns (days, patterns, changes)."""
    patterns = load_active_patterns(customer_id)
    changes = load_month_changes(customer_id, year, month)
    products = load_products([p.product_id for p in patterns] + [c.product_id for c in changes])
    days = generate_monthly_calendar(year, month, patterns, changes, products)
    return days, patterns, changes


def get_customer_calendar(customer_id, year, month) -> CustomerCalendar:
    cid = parse_positive_int(customer_id, "customer_id")
    y, m = parse_year_month(year, month)

    customer = get_customer(cid)
    days, patterns, changes = build_customer_month(cid, y, m)
    return CustomerCalendar(
        customer=customer,
        year=y,
        month=m,
        days=days,
        temporary_changes=changes,
        patterns=patterns,
    )


def get_course_calendars(course_id, year, month) -> list[CustomerCalendar]:
    course = parse_positive_int(course_id, "course_id")
    y, m = parse_year_month(year, month)

    items = []
    for customer in list_course_customers(course):
        days, patterns, changes = build_customer_month(customer.id, y, m)
        items.append(CustomerCalendar(
            customer=customer,
            year=y,
            month=m,
            days=days,
            temporary_changes=changes,
            patterns=patterns,
        ))
    return items
