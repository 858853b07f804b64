# Overview: Service-layer operations for per-customer billing settings.

"""
Customer Settings Service

A customer without a settings row is billed by collection with rounding
enabled. Saving is a partial upsert: fields left out of the payload keep
their stored value.
"""

from __future__ import annotations

from ..extensions import db
from ..models import CustomerSetting
from ..models.ledger import PAYMENT_METHOD_COLLECTION, VALID_PAYMENT_METHODS
from ..validation import ModelValidationPolicy, ValidationError, parse_positive_int, validate_payload
from .concurrency import lock_for_update, run_in_transaction
from .customer_service import get_customer


DEFAULT_BILLING_METHOD = PAYMENT_METHOD_COLLECTION
DEFAULT_ROUNDING_ENABLED = True

SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={
        "billing_method",
        "rounding_enabled",
        "bank_code",
        "branch_code",
        "account_type",
        "account_number",
        "account_holder_katakana",
    },
    required_on_create=set(),
)

_DIGIT_FIELDS = {"bank_code": 4, "branch_code": 3, "account_number": 7}


def get_customer_settings(customer_id: int) -> dict:
    """Settings with defaults filled in for a missing row or NULL fields."""
    row = db.session.get(CustomerSetting, customer_id)
    if row is None:
        return {
            "customer_id": customer_id,
            "billing_method": DEFAULT_BILLING_METHOD,
            "rounding_enabled": DEFAULT_ROUNDING_ENABLED,
            "bank_code": None,
            "branch_code": None,
            "account_type": None,
            "account_number": None,
            "account_holder_katakana": None,
            "updated_at": None,
        }

    data = row.to_dict()
    if data["billing_method"] is None:
        data["billing_method"] = DEFAULT_BILLING_METHOD
    if data["rounding_enabled"] is None:
        data["rounding_enabled"] = DEFAULT_ROUNDING_ENABLED
    data["rounding_enabled"] = bool(data["rounding_enabled"])
    return data


def is_rounding_enabled(customer_id: int) -> bool:
    return bool(get_customer_settings(customer_id)["rounding_enabled"])


def billing_method_for(customer_id: int) -> str:
    return get_customer_settings(customer_id)["billing_method"]


def _enforce_rules_settings(patch: dict) -> None:
    method = patch.get("billing_method")
    if method is not None and method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"billing_method must be one of {', '.join(VALID_PAYMENT_METHODS)}")

    account_type = patch.get("account_type")
    if account_type is not None and account_type not in (1, 2):
        raise ValidationError("account_type must be 1 (ordinary) or 2 (current)")

    for key, length in _DIGIT_FIELDS.items():
        value = patch.get(key)
        if value is None or value == "":
            continue
        if not value.isdigit() or len(value) != length:
            raise ValidationError(f"{key} must be {length} digits")


def save_customer_settings(customer_id, payload: dict) -> dict:
    """
    Partial upsert of a customer's settings.

    Raises:
        ValidationError: bad payload
        NotFoundError: unknown customer
    """
    cid = parse_positive_int(customer_id, "customer_id")
    patch = validate_payload(model=CustomerSetting, payload=payload, policy=SETTINGS_POLICY, partial=True)
    _enforce_rules_settings(patch)

    def _op():
        get_customer(cid)
        row = lock_for_update(db.session.query(CustomerSetting).filter_by(customer_id=cid)).first()
        if row is None:
            row = CustomerSetting(customer_id=cid)
            db.session.add(row)
        for key, value in patch.items():
            setattr(row, key, value)
        db.session.flush()
        return get_customer_settings(cid)

    return run_in_transaction(_op)
