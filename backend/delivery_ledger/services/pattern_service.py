# Overview: Service-layer operations for delivery patterns; validation and month-lock checks.

from __future__ import annotations

from ..extensions import db
from ..models import DeliveryPattern, Product
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_schedule,
    parse_positive_int,
    validate_payload,
)
from .concurrency import lock_for_update, run_in_transaction
from .customer_service import get_customer
from .month_lock import assert_range_open, check_pattern_update


PATTERN_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id",
        "delivery_days",
        "daily_quantities",
        "quantity",
        "unit_price",
        "start_date",
        "end_date",
        "is_active",
    },
    required_on_create={"product_id", "start_date"},
)

# Fields whose edit rewrites every month the pattern covers
_SPAN_FIELDS = {"start_date", "end_date"}


def _enforce_rules_pattern(patch: dict, *, start, end) -> None:
    enforce_rules_schedule(patch)
    if end is not None and start is not None and end < start:
        raise ValidationError("end_date must be on or after start_date")


def _get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _get_customer_pattern(cid: int, pattern_id: int) -> DeliveryPattern:
    pattern = lock_for_update(
        db.session.query(DeliveryPattern).filter_by(id=pattern_id, customer_id=cid)
    ).first()
    if pattern is None:
        raise NotFoundError(f"Pattern {pattern_id} not found for customer {cid}")
    return pattern


def list_patterns(customer_id, product_id=None, *, active_only: bool = False) -> list[DeliveryPattern]:
    cid = parse_positive_int(customer_id, "customer_id")
    query = db.session.query(DeliveryPattern).filter_by(customer_id=cid)
    if product_id not in (None, ""):
        query = query.filter_by(product_id=parse_positive_int(product_id, "product_id"))
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(
        DeliveryPattern.product_id.asc(),
        DeliveryPattern.start_date.desc(),
        DeliveryPattern.id.desc(),
    ).all()


def create_pattern(customer_id, payload: dict) -> DeliveryPattern:
    """
    Create a pattern for a customer.

    unit_price defaults to the product's list price. Rejected when any month
    from start_date to end_date (or onward, when open-ended) is confirmed.

    Raises:
        ValidationError, NotFoundError, MonthLockedError
    """
    cid = parse_positive_int(customer_id, "customer_id")
    patch = validate_payload(model=DeliveryPattern, payload=payload, policy=PATTERN_POLICY, partial=False)
    _enforce_rules_pattern(patch, start=patch.get("start_date"), end=patch.get("end_date"))
    if not patch.get("delivery_days") and not patch.get("daily_quantities"):
        raise ValidationError("delivery_days or daily_quantities is required")

    def _op():
        get_customer(cid)
        product = _get_product(patch["product_id"])
        assert_range_open(cid, patch["start_date"], patch.get("end_date"))

        pattern = DeliveryPattern(customer_id=cid, **patch)
        if pattern.unit_price is None:
            pattern.unit_price = product.unit_price
        if pattern.quantity is None:
            pattern.quantity = 0
        if pattern.is_active is None:
            pattern.is_active = True
        db.session.add(pattern)
        db.session.flush()
        return pattern

    return run_in_transaction(_op)


def update_pattern(customer_id, pattern_id, payload: dict) -> DeliveryPattern:
    """
    Partial update of a pattern.

    Date-only edits are checked month by month (see month_lock); any other
    field change requires the whole old and new span to be unconfirmed.
    """
    cid = parse_positive_int(customer_id, "customer_id")
    pid = parse_positive_int(pattern_id, "pattern_id")
    patch = validate_payload(model=DeliveryPattern, payload=payload, policy=PATTERN_POLICY, partial=True)
    enforce_rules_schedule(patch)

    def _op():
        pattern = _get_customer_pattern(cid, pid)

        new_start = patch.get("start_date", pattern.start_date)
        new_end = patch["end_date"] if "end_date" in patch else pattern.end_date
        if new_start is None:
            raise ValidationError("start_date cannot be null")
        if new_end is not None and new_end < new_start:
            raise ValidationError("end_date must be on or after start_date")
        if "product_id" in patch:
            _get_product(patch["product_id"])

        other_changed = any(
            getattr(pattern, key) != value
            for key, value in patch.items()
            if key not in _SPAN_FIELDS
        )
        check_pattern_update(
            cid,
            old_start=pattern.start_date,
            old_end=pattern.end_date,
            new_start=new_start,
            new_end=new_end,
            other_fields_changed=other_changed,
        )

        for key, value in patch.items():
            setattr(pattern, key, value)
        db.session.flush()
        return pattern

    return run_in_transaction(_op)


def set_pattern_active(customer_id, pattern_id, is_active: bool | None = None) -> DeliveryPattern:
    """Activate/deactivate a pattern; None flips the current flag."""
    cid = parse_positive_int(customer_id, "customer_id")
    pid = parse_positive_int(pattern_id, "pattern_id")
    if is_active is not None and not isinstance(is_active, bool):
        raise ValidationError("is_active must be a boolean")

    def _op():
        pattern = _get_customer_pattern(cid, pid)
        target = (not pattern.is_active) if is_active is None else is_active
        if target != bool(pattern.is_active):
            assert_range_open(cid, pattern.start_date, pattern.end_date)
            pattern.is_active = target
            db.session.flush()
        return pattern

    return run_in_transaction(_op)
