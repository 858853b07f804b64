# Overview: Service-layer operations for AR payments; encapsulates business logic and database work.

"""
AR Payment Service

WHY: Record money received against a customer-month so the next
confirmation can credit it as carryover.

DESIGN PRINCIPLES:
- Append-only: payments are never deleted or re-valued
- Cancellation appends a negated row; the net of the pair is 0
- Debit payments only land on confirmed months; collection may arrive early
- Batch registration decides eligibility from one upfront snapshot
"""

from __future__ import annotations

from sqlalchemy import desc

from ..extensions import db
from ..models import Payment
from ..models.ledger import PAYMENT_METHOD_COLLECTION, PAYMENT_METHOD_DEBIT, VALID_PAYMENT_METHODS
from ..validation import (
    ValidationError,
    NotFoundError,
    _coerce_int,
    parse_amount,
    parse_positive_int,
    parse_year_month,
)
from .concurrency import lock_for_update, run_in_transaction
from .customer_service import get_customer
from .month_lock import confirmed_customer_ids, is_month_confirmed
from delivery_ledger.time_utils import prev_year_month


# =============================================================================
# LIST LIMITS (CONSTANTS)
# =============================================================================

DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 500

CANCEL_NOTE_PREFIX = "Cancel: "
MAX_NOTE_LENGTH = 255


def _parse_method(method) -> str:
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"method must be one of {', '.join(VALID_PAYMENT_METHODS)}")
    return method


def _clean_note(note) -> str | None:
    if note is None:
        return None
    note = str(note).strip()
    if not note:
        return None
    if len(note) > MAX_NOTE_LENGTH:
        raise ValidationError(f"note exceeds max length {MAX_NOTE_LENGTH}")
    return note


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def register_payment(customer_id, year, month, amount, method, note=None) -> Payment:
    """
    Record one payment for a customer-month.

    Args:
        amount: positive integer yen
        method: collection or debit

    Returns:
        Payment record

    Raises:
        ValidationError: bad input, or a debit payment for an unconfirmed month
        NotFoundError: unknown customer
    """
    cid = parse_positive_int(customer_id, "customer_id")
    y, m = parse_year_month(year, month)
    amt = parse_amount(amount)
    method = _parse_method(method)
    note = _clean_note(note)

    def _op():
        get_customer(cid)
        if method == PAYMENT_METHOD_DEBIT and not is_month_confirmed(cid, y, m):
            raise ValidationError(
                f"{y:04d}-{m:02d} is not confirmed for customer {cid}; confirm the invoice before a debit payment"
            )
        payment = Payment(customer_id=cid, year=y, month=m, amount=amt, method=method, note=note)
        db.session.add(payment)
        db.session.flush()
        return payment

    return run_in_transaction(_op)


def register_batch_payments(year, month, entries, method=PAYMENT_METHOD_COLLECTION) -> dict:
    """
    Record many payments for one month.

    Eligibility is the set of customers whose previous month is confirmed,
    read once before any entry is applied. Entries that are malformed,
    non-positive or ineligible are counted as failed; the rest succeed.

    Returns:
        {"year", "month", "method", "success", "failed"}
    """
    y, m = parse_year_month(year, month)
    if not isinstance(entries, (list, tuple)) or not entries:
        raise ValidationError("entries must be a non-empty list")
    method = PAYMENT_METHOD_DEBIT if method == PAYMENT_METHOD_DEBIT else PAYMENT_METHOD_COLLECTION

    def _op():
        prev_year, prev_month = prev_year_month(y, m)
        eligible = confirmed_customer_ids(prev_year, prev_month)

        success = 0
        failed = 0
        for entry in entries:
            try:
                if not isinstance(entry, dict):
                    raise ValidationError("entry must be an object")
                cid = _coerce_int("customer_id", entry.get("customer_id"))
                amt = parse_amount(entry.get("amount"))
                note = _clean_note(entry.get("note"))
            except ValidationError:
                failed += 1
                continue

            if cid not in eligible:
                failed += 1
                continue

            db.session.add(Payment(customer_id=cid, year=y, month=m, amount=amt, method=method, note=note))
            success += 1

        db.session.flush()
        return {"year": y, "month": m, "method": method, "success": success, "failed": failed}

    return run_in_transaction(_op)


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

def list_payments(customer_id, *, year=None, month=None, method=None, q=None, limit=None, offset=None) -> list[Payment]:
    """Newest first; limit clamped to 1..500, offset to >= 0."""
    cid = parse_positive_int(customer_id, "customer_id")

    query = db.session.query(Payment).filter(Payment.customer_id == cid)
    if year not in (None, ""):
        query = query.filter(Payment.year == _coerce_int("year", year))
    if month not in (None, ""):
        query = query.filter(Payment.month == _coerce_int("month", month))
    if method in VALID_PAYMENT_METHODS:
        query = query.filter(Payment.method == method)
    if q is not None and str(q).strip():
        query = query.filter(Payment.note.like(f"%{str(q).strip()}%"))

    lim = _coerce_int("limit", limit) if limit not in (None, "") else DEFAULT_LIST_LIMIT
    lim = max(1, min(lim, MAX_LIST_LIMIT))
    off = _coerce_int("offset", offset) if offset not in (None, "") else 0
    off = max(0, off)

    return (
        query.order_by(desc(Payment.created_at), desc(Payment.id))
        .limit(lim)
        .offset(off)
        .all()
    )


def _get_customer_payment(cid: int, pid: int, *, lock: bool = False) -> Payment:
    query = db.session.query(Payment).filter_by(id=pid, customer_id=cid)
    if lock:
        query = lock_for_update(query)
    payment = query.first()
    if payment is None:
        raise NotFoundError(f"Payment {pid} not found for customer {cid}")
    return payment


# =============================================================================
# PAYMENT CORRECTIONS
# =============================================================================

def update_payment_note(customer_id, payment_id, note) -> Payment:
    cid = parse_positive_int(customer_id, "customer_id")
    pid = parse_positive_int(payment_id, "payment_id")
    note = _clean_note(note)

    def _op():
        payment = _get_customer_payment(cid, pid, lock=True)
        payment.note = note
        db.session.flush()
        return payment

    return run_in_transaction(_op)


def cancel_payment(customer_id, payment_id) -> Payment:
    """
    Cancel a payment by appending its negation.

    The original row is left untouched; the new row carries -abs(amount)
    and a note referencing the original.

    Returns:
        The cancellation Payment
    """
    cid = parse_positive_int(customer_id, "customer_id")
    pid = parse_positive_int(payment_id, "payment_id")

    def _op():
        original = _get_customer_payment(cid, pid, lock=True)
        note = f"{CANCEL_NOTE_PREFIX}{original.id}"
        if original.note:
            note = f"{note} ({original.note})"
        cancellation = Payment(
            customer_id=original.customer_id,
            year=original.year,
            month=original.month,
            amount=-abs(original.amount),
            method=original.method,
            note=note[:MAX_NOTE_LENGTH],
        )
        db.session.add(cancellation)
        db.session.flush()
        return cancellation

    return run_in_transaction(_op)
