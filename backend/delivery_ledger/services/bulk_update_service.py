# Overview: Service-layer bulk mutations over a course; holiday skips and price changes with rollback.

"""
Bulk Update Service

WHY: Route-wide edits (a delivery holiday, a product price revision) touch
every customer on a course. Each call leaves one OperationLog row that is
enough to undo it.

DESIGN PRINCIPLES:
- Customers are processed one at a time, in delivery order
- Holiday processing tolerates per-item failure: a locked customer-month
  is recorded in errors[] and the rest of the course proceeds
- Price change is all-or-nothing: a pre-check pass without writes blocks
  the whole batch if any customer would touch a confirmed month
- Nothing here deletes or edits confirmed data; locks come from month_lock
"""

from __future__ import annotations

import secrets
import time
from datetime import date, timedelta

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Customer, DeliveryPattern, TemporaryChange
from ..models.schedules import CHANGE_TYPE_MODIFY, CHANGE_TYPE_SKIP
from ..validation import (
    ValidationError,
    _coerce_int,
    parse_amount,
    parse_date,
    parse_month_string,
    parse_optional_date,
    parse_positive_int,
)
from .calendar_service import load_active_patterns
from .concurrency import run_in_transaction
from .customer_service import list_course_customers
from .month_lock import MonthLockedError, assert_date_open, assert_range_open
from .operation_log_service import (
    OP_TYPE_HOLIDAY,
    OP_TYPE_PRICE_CHANGE,
    HolidayParams,
    HolidayReversal,
    PriceChangeParams,
    PriceChangeReversal,
    append_operation_log,
    get_operation_log,
    load_payload,
    mark_reversed,
)
from .pattern_resolver import scheduled_quantity, select_effective_pattern
from delivery_ledger.time_utils import iter_dates, parse_iso_date, to_iso_date


class PartialBatchError(Exception):
    """One skipped (customer, product) item of a tolerant batch. Collected, never raised out."""

    def __init__(self, customer_id: int, product_id: int | None, message: str, year: int | None = None, month: int | None = None):
        self.customer_id = customer_id
        self.product_id = product_id
        self.year = year
        self.month = month
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "year": self.year,
            "month": self.month,
            "message": str(self),
        }


class BatchBlockedError(ValueError):
    """Raised when the pre-check finds customers whose months are confirmed."""

    def __init__(self, blocked: list[dict]):
        self.blocked = blocked
        super().__init__(
            f"{len(blocked)} customer(s) would change a confirmed month; nothing was changed"
        )


def new_op_id() -> str:
    return f"op-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def _tag(op_id: str) -> str:
    return f"[{op_id}]"


# =============================================================================
# HOLIDAY PROCESSING
# =============================================================================

def _product_deliveries(product_patterns: list, window: list[date]) -> list[tuple[date, int]]:
    """(date, quantity) pairs on which the product's effective pattern delivers."""
    deliveries = []
    for d in window:
        pattern = select_effective_pattern(product_patterns, d)
        if pattern is None:
            continue
        quantity = scheduled_quantity(pattern, d)
        if quantity > 0:
            deliveries.append((d, quantity))
    return deliveries


def _holiday_for_product(customer_id: int, product_id: int, deliveries, target: date | None, op_id: str,
                         created_ids: list, removed: list) -> None:
    """Write skips (and the aggregate modify) for one product. Raises MonthLockedError before any write."""
    if target is not None:
        assert_date_open(customer_id, target)
    for d, _quantity in deliveries:
        assert_date_open(customer_id, d)

    for d, _quantity in deliveries:
        if target is not None and d == target:
            continue
        skip = TemporaryChange(
            customer_id=customer_id,
            change_date=d,
            change_type=CHANGE_TYPE_SKIP,
            product_id=product_id,
            quantity=0,
            reason=f"Holiday skip {_tag(op_id)}",
        )
        db.session.add(skip)
        db.session.flush()
        created_ids.append(skip.id)

    if target is None:
        return

    total = sum(quantity for _d, quantity in deliveries)
    if total <= 0:
        return

    existing = (
        db.session.query(TemporaryChange)
        .filter_by(
            customer_id=customer_id,
            change_date=target,
            product_id=product_id,
            change_type=CHANGE_TYPE_SKIP,
        )
        .all()
    )
    for change in existing:
        if change.id in created_ids:
            continue
        removed.append({
            "customer_id": change.customer_id,
            "change_date": to_iso_date(change.change_date),
            "change_type": change.change_type,
            "product_id": change.product_id,
            "quantity": change.quantity,
            "unit_price": change.unit_price,
            "reason": change.reason,
        })
        db.session.delete(change)

    aggregate = TemporaryChange(
        customer_id=customer_id,
        change_date=target,
        change_type=CHANGE_TYPE_MODIFY,
        product_id=product_id,
        quantity=total,
        unit_price=None,
        reason=f"Holiday aggregate delivery {_tag(op_id)}",
    )
    db.session.add(aggregate)
    db.session.flush()
    created_ids.append(aggregate.id)


def process_holiday(course_id, start_date, end_date, target_date=None) -> dict:
    """
    Skip every scheduled delivery of a course within [start_date, end_date].

    With target_date, the skipped quantities of each product are summed and
    delivered on that date as one modify change.

    Returns:
        {"operation_log_id", "op_id", "affected_customers", "errors"}
    """
    course = parse_positive_int(course_id, "course_id")
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    target = parse_optional_date(target_date, "target_date")
    if end < start:
        raise ValidationError("end_date must be on or after start_date")

    op_id = new_op_id()
    window = list(iter_dates(start, end))

    def _op():
        created_ids: list[int] = []
        removed: list[dict] = []
        errors: list[PartialBatchError] = []
        affected: set[int] = set()

        for customer in list_course_customers(course):
            patterns = load_active_patterns(customer.id)
            by_product: dict = {}
            for pattern in patterns:
                if pattern.start_date <= end and (pattern.end_date is None or pattern.end_date >= start):
                    by_product.setdefault(pattern.product_id, []).append(pattern)

            for product_id in sorted(by_product):
                deliveries = _product_deliveries(by_product[product_id], window)
                if not deliveries:
                    continue

                before = len(created_ids)
                try:
                    _holiday_for_product(customer.id, product_id, deliveries, target, op_id, created_ids, removed)
                except MonthLockedError as exc:
                    item = PartialBatchError(customer.id, product_id, str(exc), exc.year, exc.month)
                    current_app.logger.warning(
                        "Holiday %s: skipped customer %s product %s: %s",
                        op_id, customer.id, product_id, exc,
                    )
                    errors.append(item)
                    continue
                if len(created_ids) > before:
                    affected.add(customer.id)

        params = HolidayParams(
            course_id=course,
            start_date=to_iso_date(start),
            end_date=to_iso_date(end),
            target_date=to_iso_date(target),
            op_id=op_id,
        )
        log = append_operation_log(
            OP_TYPE_HOLIDAY,
            "Holiday aggregate delivery" if target is not None else "Holiday skip",
            params,
            HolidayReversal(temp_change_ids=created_ids, removed_changes=removed),
        )
        return {
            "operation_log_id": log.id,
            "op_id": op_id,
            "affected_customers": len(affected),
            "created_changes": len(created_ids),
            "errors": [e.to_dict() for e in errors],
        }

    result = run_in_transaction(_op)
    current_app.logger.info(
        "Holiday %s on course %s: %s customers affected, %s changes, %s errors",
        op_id, course, result["affected_customers"], result["created_changes"], len(result["errors"]),
    )
    return result


# =============================================================================
# PRICE CHANGE
# =============================================================================

def _parse_price_change(product_id, new_unit_price, start_month, course_id):
    product = parse_positive_int(product_id, "product_id")
    price = parse_amount(new_unit_price, "new_unit_price", allow_zero=True)
    year, month = parse_month_string(start_month, "start_month")
    course = parse_positive_int(course_id, "course_id") if course_id not in (None, "") else None
    return product, price, date(year, month, 1), course


def _price_change_targets(product_id: int, requested_start: date, course_id: int | None) -> list[tuple]:
    """
    (customer, pattern, effective_start) per customer whose active pattern
    for the product starts on/before requested_start and is still open then.
    """
    query = (
        db.session.query(DeliveryPattern)
        .join(Customer, Customer.id == DeliveryPattern.customer_id)
        .filter(
            DeliveryPattern.product_id == product_id,
            DeliveryPattern.is_active.is_(True),
            DeliveryPattern.start_date <= requested_start,
            or_(DeliveryPattern.end_date.is_(None), DeliveryPattern.end_date >= requested_start),
        )
    )
    if course_id is not None:
        query = query.filter(Customer.course_id == course_id)

    by_customer: dict = {}
    for pattern in query.all():
        by_customer.setdefault(pattern.customer_id, []).append(pattern)

    targets = []
    customers = db.session.query(Customer).filter(Customer.id.in_(by_customer.keys())).all() if by_customer else []
    for customer in sorted(customers, key=lambda c: (c.delivery_order, c.id)):
        pattern = select_effective_pattern(by_customer[customer.id], requested_start)
        if pattern is None:
            continue
        effective_start = max(requested_start, pattern.start_date)
        targets.append((customer, pattern, effective_start))
    return targets


def _blocked_targets(targets) -> list[dict]:
    blocked = []
    for customer, _pattern, effective_start in targets:
        try:
            # the successor is open-ended, so every month from effective_start on must be open
            assert_range_open(customer.id, effective_start, None)
        except MonthLockedError as exc:
            blocked.append({"customer_id": customer.id, "year": exc.year, "month": exc.month})
    return blocked


def preview_price_change(product_id, new_unit_price, start_month, course_id=None) -> dict:
    """Candidates and blocked customers for a price change; no writes."""
    product, price, requested_start, course = _parse_price_change(
        product_id, new_unit_price, start_month, course_id
    )
    targets = _price_change_targets(product, requested_start, course)
    return {
        "product_id": product,
        "new_unit_price": price,
        "start_date": to_iso_date(requested_start),
        "customers": [
            {
                "customer_id": customer.id,
                "name": customer.name,
                "pattern_id": pattern.id,
                "current_unit_price": pattern.unit_price,
                "effective_start": to_iso_date(effective_start),
            }
            for customer, pattern, effective_start in targets
        ],
        "blocked": _blocked_targets(targets),
    }


def process_price_change(product_id, new_unit_price, start_month, course_id=None) -> dict:
    """
    Move every matching customer to a new unit price from start_month.

    The current pattern is ended the day before the effective start and an
    open-ended copy with the new price begins on it.
    A pattern that starts on the effective start is also deactivated.

    Raises:
        BatchBlockedError: some customer would touch a confirmed month;
            no pattern is changed
    """
    product, price, requested_start, course = _parse_price_change(
        product_id, new_unit_price, start_month, course_id
    )

    def _op():
        targets = _price_change_targets(product, requested_start, course)

        blocked = _blocked_targets(targets)
        if blocked:
            raise BatchBlockedError(blocked)

        new_ids: list[int] = []
        updated: list[dict] = []
        for customer, pattern, effective_start in targets:
            successor = DeliveryPattern(
                customer_id=customer.id,
                product_id=pattern.product_id,
                delivery_days=pattern.delivery_days,
                daily_quantities=pattern.daily_quantities,
                quantity=pattern.quantity,
                unit_price=price,
                start_date=effective_start,
                end_date=None,
                is_active=True,
            )
            updated.append({
                "id": pattern.id,
                "previous_end_date": to_iso_date(pattern.end_date),
                "previous_is_active": bool(pattern.is_active),
            })
            pattern.end_date = effective_start - timedelta(days=1)
            if pattern.start_date >= effective_start:
                # Fully superseded; an end before the start would be an empty span
                pattern.is_active = False
            db.session.add(successor)
            db.session.flush()
            new_ids.append(successor.id)

        log = append_operation_log(
            OP_TYPE_PRICE_CHANGE,
            "Bulk unit price change",
            PriceChangeParams(
                product_id=product,
                new_unit_price=price,
                start_month=requested_start.strftime("%Y-%m"),
                course_id=course,
            ),
            PriceChangeReversal(new_pattern_ids=new_ids, updated_patterns=updated),
        )
        return {
            "operation_log_id": log.id,
            "affected_customers": len(targets),
            "new_pattern_ids": new_ids,
        }

    try:
        result = run_in_transaction(_op)
    except BatchBlockedError as exc:
        current_app.logger.warning("Price change for product %s blocked: %s", product, exc.blocked)
        raise
    current_app.logger.info(
        "Price change for product %s to %s from %s: %s customers",
        product, price, to_iso_date(requested_start), result["affected_customers"],
    )
    return result


# =============================================================================
# ROLLBACK
# =============================================================================

def _rollback_holiday(params: HolidayParams, reversal: HolidayReversal) -> dict:
    ids = [_coerce_int("temp_change_ids", i) for i in reversal.temp_change_ids]
    if ids:
        deleted = (
            db.session.query(TemporaryChange)
            .filter(TemporaryChange.id.in_(ids))
            .delete(synchronize_session=False)
        )
    elif params.op_id:
        deleted = (
            db.session.query(TemporaryChange)
            .filter(TemporaryChange.reason.like(f"%{_tag(params.op_id)}%"))
            .delete(synchronize_session=False)
        )
    else:
        deleted = 0

    restored = 0
    for row in reversal.removed_changes:
        db.session.add(TemporaryChange(
            customer_id=row["customer_id"],
            change_date=parse_iso_date(row["change_date"]),
            change_type=row["change_type"],
            product_id=row.get("product_id"),
            quantity=row.get("quantity"),
            unit_price=row.get("unit_price"),
            reason=row.get("reason"),
        ))
        restored += 1

    return {"deleted_changes": deleted, "restored_changes": restored}


def _rollback_price_change(reversal: PriceChangeReversal) -> dict:
    ids = [_coerce_int("new_pattern_ids", i) for i in reversal.new_pattern_ids]
    deleted = 0
    if ids:
        deleted = (
            db.session.query(DeliveryPattern)
            .filter(DeliveryPattern.id.in_(ids))
            .delete(synchronize_session=False)
        )

    restored = 0
    for row in reversal.updated_patterns:
        pattern = db.session.get(DeliveryPattern, _coerce_int("id", row.get("id")))
        if pattern is None:
            continue
        pattern.end_date = parse_iso_date(row.get("previous_end_date"))
        if "previous_is_active" in row:
            pattern.is_active = bool(row["previous_is_active"])
        restored += 1

    return {"deleted_patterns": deleted, "restored_patterns": restored}


def rollback_operation(log_id) -> dict:
    """
    Reverse a logged bulk operation and mark the log reversed.

    Missing rows count as zero-effect deletions. An already-reversed log
    is returned unchanged.
    """
    def _op():
        log = get_operation_log(log_id, lock=True)
        if log.is_reversed:
            return {"operation_log_id": log.id, "op_type": log.op_type, "already_reversed": True}

        params, reversal = load_payload(log)
        if log.op_type == OP_TYPE_HOLIDAY:
            counts = _rollback_holiday(params, reversal)
        else:
            counts = _rollback_price_change(reversal)

        mark_reversed(log)
        return {"operation_log_id": log.id, "op_type": log.op_type, "already_reversed": False, **counts}

    result = run_in_transaction(_op)
    current_app.logger.info("Rolled back operation log %s (%s): %s", result["operation_log_id"], result["op_type"], result)
    return result
