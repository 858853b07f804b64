from __future__ import annotations
from datetime import date, datetime
from delivery_ledger.time_utils import parse_iso_date, parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, JSON, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum unit price / payment amount in yen
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_YEN = 99_999_999

MIN_YEAR = 1900
MAX_YEAR = 9999


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level missing customer/pattern/payment/log."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    # Booleans (0/1 integers are accepted for legacy clients)
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if value in (0, 1):
            return bool(value)
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        return parse_date(value, col.key)

    # JSON payloads are passed through; shape checks live with the domain rules
    if isinstance(coltype, JSON):
        return value

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


# =============================================================================
# SCALAR PARSERS
# =============================================================================

def parse_positive_int(value: Any, name: str) -> int:
    """Ids and counts: strict integer, > 0."""
    if value is None or value == "":
        raise ValidationError(f"{name} is required")
    parsed = _coerce_int(name, value)
    if parsed <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return parsed


def parse_year_month(year: Any, month: Any) -> tuple[int, int]:
    y = parse_positive_int(year, "year")
    m = parse_positive_int(month, "month")
    if y < MIN_YEAR or y > MAX_YEAR:
        raise ValidationError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")
    if m > 12:
        raise ValidationError("month must be between 1 and 12")
    return y, m


def parse_month_string(value: Any, name: str = "start_month") -> tuple[int, int]:
    """Parse "YYYY-MM"."""
    if not isinstance(value, str) or len(value.strip()) != 7 or value.strip()[4] != "-":
        raise ValidationError(f"{name} must be in YYYY-MM format")
    year_raw, month_raw = value.strip().split("-")
    return parse_year_month(year_raw, month_raw)


def parse_date(value: Any, name: str) -> date:
    if value is None or value == "":
        raise ValidationError(f"{name} is required")
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a YYYY-MM-DD date")
    if parsed is None:
        raise ValidationError(f"{name} must be a YYYY-MM-DD date")
    return parsed


def parse_optional_date(value: Any, name: str) -> date | None:
    if value is None or value == "":
        return None
    return parse_date(value, name)


def parse_amount(value: Any, name: str = "amount", *, allow_zero: bool = False) -> int:
    amount = _coerce_int(name, value) if value is not None else None
    if amount is None:
        raise ValidationError(f"{name} is required")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{name} must be {'>= 0' if allow_zero else '> 0'}")
    if amount > MAX_AMOUNT_YEN:
        raise ValidationError(f"{name} cannot exceed {MAX_AMOUNT_YEN:,}")
    return amount


def parse_id_list(values: Any, name: str = "customer_ids") -> list[int]:
    if not isinstance(values, (list, tuple)) or not values:
        raise ValidationError(f"{name} must be a non-empty list")
    return [parse_positive_int(v, name) for v in values]


# =============================================================================
# DOMAIN RULES
# =============================================================================

def enforce_rules_schedule(patch: dict) -> None:
    """
    Weekday schedule shape: delivery_days is a list of weekday numbers
    (Sunday=0 .. Saturday=6); daily_quantities maps weekday -> quantity.
    """
    days = patch.get("delivery_days")
    if days is not None:
        if not isinstance(days, list):
            raise ValidationError("delivery_days must be a list of weekday numbers")
        cleaned = []
        for day in days:
            day = _coerce_int("delivery_days", day)
            if day < 0 or day > 6:
                raise ValidationError("delivery_days entries must be between 0 and 6")
            cleaned.append(day)
        patch["delivery_days"] = sorted(set(cleaned))

    daily = patch.get("daily_quantities")
    if daily is not None:
        if not isinstance(daily, dict):
            raise ValidationError("daily_quantities must be an object of weekday -> quantity")
        cleaned_map = {}
        for day, qty in daily.items():
            day_int = _coerce_int("daily_quantities", day)
            if day_int < 0 or day_int > 6:
                raise ValidationError("daily_quantities keys must be between 0 and 6")
            qty_int = _coerce_int("daily_quantities", qty)
            if qty_int < 0:
                raise ValidationError("daily_quantities values must be >= 0")
            cleaned_map[str(day_int)] = qty_int
        patch["daily_quantities"] = cleaned_map

    for key in ("quantity", "unit_price"):
        if key in patch and patch[key] is not None:
            if patch[key] < 0:
                raise ValidationError(f"{key} must be >= 0")
            if patch[key] > MAX_AMOUNT_YEN:
                raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_YEN:,}")
