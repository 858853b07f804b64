# Overview: Service-layer operations for temporary changes; one-off skip/modify/add overrides.

from __future__ import annotations

from ..extensions import db
from ..models import Product, TemporaryChange
from ..models.schedules import CHANGE_TYPE_ADD, CHANGE_TYPE_MODIFY, VALID_CHANGE_TYPES
from ..validation import (
    MAX_AMOUNT_YEN,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    parse_date,
    parse_positive_int,
    validate_payload,
)
from .calendar_service import load_changes_between
from .concurrency import lock_for_update, run_in_transaction
from .customer_service import get_customer
from .month_lock import assert_date_open


CHANGE_POLICY = ModelValidationPolicy(
    writable_fields={"change_date", "change_type", "product_id", "quantity", "unit_price", "reason"},
    required_on_create={"change_date", "change_type"},
)


def _enforce_rules_change(change: dict) -> None:
    """Shape rules for the merged (stored + patch) change."""
    change_type = change.get("change_type")
    if change_type not in VALID_CHANGE_TYPES:
        raise ValidationError(f"change_type must be one of {', '.join(VALID_CHANGE_TYPES)}")

    if change_type in (CHANGE_TYPE_MODIFY, CHANGE_TYPE_ADD) and change.get("product_id") is None:
        raise ValidationError(f"product_id is required for {change_type}")

    quantity = change.get("quantity")
    if change_type == CHANGE_TYPE_ADD and (quantity is None or quantity <= 0):
        raise ValidationError("quantity must be > 0 for add")
    if quantity is not None and quantity < 0:
        raise ValidationError("quantity must be >= 0")

    unit_price = change.get("unit_price")
    if unit_price is not None and (unit_price < 0 or unit_price > MAX_AMOUNT_YEN):
        raise ValidationError(f"unit_price must be between 0 and {MAX_AMOUNT_YEN:,}")


def _check_product(product_id) -> None:
    if product_id is not None and db.session.get(Product, product_id) is None:
        raise NotFoundError(f"Product {product_id} not found")


def _get_change(change_id: int) -> TemporaryChange:
    change = lock_for_update(db.session.query(TemporaryChange).filter_by(id=change_id)).first()
    if change is None:
        raise NotFoundError(f"Temporary change {change_id} not found")
    return change


# =============================================================================
# QUERIES
# =============================================================================

def list_changes(customer_id) -> list[TemporaryChange]:
    cid = parse_positive_int(customer_id, "customer_id")
    return (
        db.session.query(TemporaryChange)
        .filter_by(customer_id=cid)
        .order_by(TemporaryChange.change_date.desc(), TemporaryChange.id.desc())
        .all()
    )


def list_changes_on(customer_id, change_date) -> list[TemporaryChange]:
    cid = parse_positive_int(customer_id, "customer_id")
    d = parse_date(change_date, "date")
    return (
        db.session.query(TemporaryChange)
        .filter_by(customer_id=cid, change_date=d)
        .order_by(TemporaryChange.created_at.desc(), TemporaryChange.id.desc())
        .all()
    )


def list_changes_between(customer_id, start_date, end_date) -> list[TemporaryChange]:
    cid = parse_positive_int(customer_id, "customer_id")
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if end < start:
        raise ValidationError("end_date must be on or after start_date")
    return load_changes_between(cid, start, end)


# =============================================================================
# MUTATIONS (month-locked)
# =============================================================================

def create_change(customer_id, payload: dict) -> TemporaryChange:
    """
    Create a one-off override.

    Raises:
        MonthLockedError: the change date's month is confirmed
    """
    cid = parse_positive_int(customer_id, "customer_id")
    patch = validate_payload(model=TemporaryChange, payload=payload, policy=CHANGE_POLICY, partial=False)
    _enforce_rules_change(patch)

    def _op():
        get_customer(cid)
        _check_product(patch.get("product_id"))
        assert_date_open(cid, patch["change_date"])

        change = TemporaryChange(customer_id=cid, **patch)
        db.session.add(change)
        db.session.flush()
        return change

    return run_in_transaction(_op)


def update_change(change_id, payload: dict) -> TemporaryChange:
    """Moving a change checks both the old and the new date's month."""
    tid = parse_positive_int(change_id, "change_id")
    patch = validate_payload(model=TemporaryChange, payload=payload, policy=CHANGE_POLICY, partial=True)

    def _op():
        change = _get_change(tid)
        merged = {
            "change_type": change.change_type,
            "product_id": change.product_id,
            "quantity": change.quantity,
            "unit_price": change.unit_price,
        }
        merged.update({k: v for k, v in patch.items() if k in merged})
        _enforce_rules_change(merged)
        if "product_id" in patch:
            _check_product(patch["product_id"])

        assert_date_open(change.customer_id, change.change_date)
        new_date = patch.get("change_date")
        if new_date is not None and new_date != change.change_date:
            assert_date_open(change.customer_id, new_date)

        for key, value in patch.items():
            setattr(change, key, value)
        db.session.flush()
        return change

    return run_in_transaction(_op)


def delete_change(change_id) -> dict:
    tid = parse_positive_int(change_id, "change_id")

    def _op():
        change = _get_change(tid)
        assert_date_open(change.customer_id, change.change_date)
        db.session.delete(change)
        db.session.flush()
        return {"id": tid, "deleted": True}

    return run_in_transaction(_op)
