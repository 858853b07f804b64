# Overview: Service-layer operations for the accounts-receivable ledger; invoices, carryover and summaries.

"""
AR Ledger Invariants (authoritative)

- Confirmed(M) = max(0, roundedBase(M)) + (Confirmed(M-1) - Payments(M)).
- Confirmed(M-1) is the stored invoice amount, or when that month was never
  confirmed, its freshly computed rounded total.
- Payments are summed with their sign; cancellations are negative rows.
- Confirmation is an upsert keyed by (customer, year, month): confirming
  twice with unchanged inputs stores the same amount.
- Summaries are read-only and never write an invoice.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, CustomerSetting, Invoice, Payment
from ..models.ledger import INVOICE_STATUS_CONFIRMED, PAYMENT_METHOD_COLLECTION, PAYMENT_METHOD_DEBIT
from ..validation import parse_id_list, parse_positive_int, parse_year_month
from .billing_service import compute_monthly_total
from .concurrency import lock_for_update, run_in_transaction
from .customer_service import get_customer, list_all_customer_ids, list_course_customer_ids, list_course_customers
from delivery_ledger.time_utils import month_key, prev_year_month, to_utc_z, utcnow


# =============================================================================
# AGGREGATES
# =============================================================================

def sum_payments(customer_id: int, year: int, month: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter_by(customer_id=customer_id, year=year, month=month)
        .scalar()
    )
    return int(total or 0)


def get_invoice(customer_id: int, year: int, month: int) -> Invoice | None:
    return db.session.query(Invoice).filter_by(customer_id=customer_id, year=year, month=month).first()


def prior_invoice_amount(customer_id: int, year: int, month: int) -> tuple[int, bool]:
    """
    Amount billed for the month before (year, month).

    Returns:
        (amount, confirmed): the stored amount when that month is confirmed,
        otherwise its computed rounded total
    """
    prev_year, prev_month = prev_year_month(year, month)
    invoice = get_invoice(customer_id, prev_year, prev_month)
    if invoice is not None and invoice.amount is not None:
        return int(invoice.amount), True
    totals = compute_monthly_total(customer_id, prev_year, prev_month)
    return totals["rounded_total"], False


def compute_confirm_amount(customer_id: int, year: int, month: int) -> dict:
    """Breakdown of the amount confirm_invoice would store; no writes."""
    totals = compute_monthly_total(customer_id, year, month)
    prev_amount, _ = prior_invoice_amount(customer_id, year, month)
    payments = sum_payments(customer_id, year, month)
    carryover = prev_amount - payments
    return {
        "raw_total": totals["raw_total"],
        "rounding_enabled": totals["rounding_enabled"],
        "rounded_base": totals["rounded_base"],
        "prev_invoice_amount": prev_amount,
        "current_payment_amount": payments,
        "carryover_amount": carryover,
        "amount": totals["rounded_base"] + carryover,
    }


# =============================================================================
# CONFIRMATION
# =============================================================================

def _upsert_invoice(customer_id: int, year: int, month: int, amount: int, rounding_enabled: bool) -> Invoice:
    """
    Insert or overwrite the (customer, year, month) invoice in one statement.

    SQLite and PostgreSQL use INSERT ... ON CONFLICT DO UPDATE; other
    dialects fall back to a locked read followed by insert/update.
    """
    now = utcnow()
    values = {
        "customer_id": customer_id,
        "year": year,
        "month": month,
        "amount": amount,
        "rounding_enabled": bool(rounding_enabled),
        "status": INVOICE_STATUS_CONFIRMED,
        "confirmed_at": now,
    }
    dialect = db.session.get_bind().dialect.name

    if dialect in ("sqlite", "postgresql"):
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            from sqlalchemy.dialects.postgresql import insert
        stmt = insert(Invoice.__table__).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["customer_id", "year", "month"],
            set_={
                "amount": stmt.excluded.amount,
                "rounding_enabled": stmt.excluded.rounding_enabled,
                "status": stmt.excluded.status,
                "confirmed_at": stmt.excluded.confirmed_at,
            },
        )
        db.session.execute(stmt)
        return (
            db.session.query(Invoice)
            .filter_by(customer_id=customer_id, year=year, month=month)
            .populate_existing()
            .one()
        )

    invoice = lock_for_update(
        db.session.query(Invoice).filter_by(customer_id=customer_id, year=year, month=month)
    ).first()
    if invoice is None:
        invoice = Invoice(**values)
        db.session.add(invoice)
    else:
        invoice.amount = amount
        invoice.rounding_enabled = bool(rounding_enabled)
        invoice.status = INVOICE_STATUS_CONFIRMED
        invoice.confirmed_at = now
    db.session.flush()
    return invoice


def _confirm_locked(customer_id: int, year: int, month: int) -> Invoice:
    breakdown = compute_confirm_amount(customer_id, year, month)
    return _upsert_invoice(customer_id, year, month, breakdown["amount"], breakdown["rounding_enabled"])


def confirm_invoice(customer_id, year, month) -> Invoice:
    """
    Freeze a customer-month's billing amount.

    Raises:
        ValidationError: bad ids or year/month
        NotFoundError: unknown customer
    """
    cid = parse_positive_int(customer_id, "customer_id")
    y, m = parse_year_month(year, month)

    def _op():
        get_customer(cid)
        return _confirm_locked(cid, y, m)

    return run_in_transaction(_op)


def _select_batch_targets(course_id=None, customer_ids=None) -> list[int]:
    """Explicit ids win over a course; neither means every customer."""
    if customer_ids:
        return parse_id_list(customer_ids)
    if course_id not in (None, ""):
        return list_course_customer_ids(parse_positive_int(course_id, "course_id"))
    return list_all_customer_ids()


def confirm_invoices_batch(year, month, *, course_id=None, customer_ids=None) -> dict:
    """Confirm every target customer in one transaction; any failure confirms none."""
    y, m = parse_year_month(year, month)

    def _op():
        targets = _select_batch_targets(course_id, customer_ids)
        results = []
        for cid in targets:
            get_customer(cid)
            results.append(_confirm_locked(cid, y, m).to_dict())
        return {"year": y, "month": m, "count": len(targets), "results": results}

    return run_in_transaction(_op)


def unconfirm_invoice(customer_id, year, month) -> dict:
    cid = parse_positive_int(customer_id, "customer_id")
    y, m = parse_year_month(year, month)

    def _op():
        removed = (
            db.session.query(Invoice)
            .filter_by(customer_id=cid, year=y, month=m)
            .delete(synchronize_session=False)
        )
        return {"customer_id": cid, "year": y, "month": m, "removed": bool(removed)}

    return run_in_transaction(_op)


def unconfirm_invoices_batch(year, month, *, course_id=None, customer_ids=None) -> dict:
    y, m = parse_year_month(year, month)

    def _op():
        targets = _select_batch_targets(course_id, customer_ids)
        results = []
        for cid in targets:
            removed = (
                db.session.query(Invoice)
                .filter_by(customer_id=cid, year=y, month=m)
                .delete(synchronize_session=False)
            )
            results.append({"customer_id": cid, "year": y, "month": m, "removed_count": removed})
        return {"year": y, "month": m, "count": len(targets), "results": results}

    return run_in_transaction(_op)


# =============================================================================
# READ MODELS
# =============================================================================

def get_invoice_status(customer_id, year, month) -> dict:
    cid = parse_positive_int(customer_id, "customer_id")
    y, m = parse_year_month(year, month)

    invoice = get_invoice(cid, y, m)
    if invoice is None:
        return {"confirmed": False}
    return {
        "confirmed": invoice.status == INVOICE_STATUS_CONFIRMED,
        "amount": invoice.amount,
        "rounding_enabled": bool(invoice.rounding_enabled),
        "confirmed_at": to_utc_z(invoice.confirmed_at),
    }


def get_ar_summary(customer_id, year, month) -> dict:
    """Previous invoice, payments and carryover for (year, month). Read-only."""
    cid = parse_positive_int(customer_id, "customer_id")
    y, m = parse_year_month(year, month)

    prev_year, prev_month = prev_year_month(y, m)
    prev_amount, prev_confirmed = prior_invoice_amount(cid, y, m)
    prev_payments = sum_payments(cid, prev_year, prev_month)
    current_payments = sum_payments(cid, y, m)

    return {
        "customer_id": cid,
        "year": y,
        "month": m,
        "prev_year": prev_year,
        "prev_month": prev_month,
        "prev_invoice_amount": prev_amount,
        "prev_invoice_confirmed": prev_confirmed,
        "prev_payment_amount": prev_payments,
        "current_payment_amount": current_payments,
        "carryover_amount": prev_amount - current_payments,
    }


def get_ar_summary_consistency(customer_id, year, month) -> dict:
    """
    Diagnostic for the previous month: stored invoice vs. fresh recomputation,
    plus cumulative invoices minus cumulative payments up to that month.
    """
    cid = parse_positive_int(customer_id, "customer_id")
    y, m = parse_year_month(year, month)
    prev_year, prev_month = prev_year_month(y, m)

    totals = compute_monthly_total(cid, prev_year, prev_month)
    invoice = get_invoice(cid, prev_year, prev_month)
    stored_amount = invoice.amount if invoice is not None else None

    prev_key = month_key(prev_year, prev_month)
    invoice_key = Invoice.year * 100 + Invoice.month
    payment_key = Payment.year * 100 + Payment.month
    cumulative_invoices = (
        db.session.query(func.coalesce(func.sum(Invoice.amount), 0))
        .filter(Invoice.customer_id == cid, invoice_key <= prev_key)
        .scalar()
    )
    cumulative_payments = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.customer_id == cid, payment_key <= prev_key)
        .scalar()
    )

    summary_prev_amount = stored_amount if stored_amount is not None else totals["rounded_total"]

    return {
        "prev_year": prev_year,
        "prev_month": prev_month,
        "rounding_enabled": totals["rounding_enabled"],
        "raw_total": totals["raw_total"],
        "expected_amount": totals["rounded_total"],
        "ar_invoice_amount": stored_amount,
        "summary_prev_invoice_amount": summary_prev_amount,
        "cumulative_carryover_amount": int(cumulative_invoices or 0) - int(cumulative_payments or 0),
        "prev_payment_total": sum_payments(cid, prev_year, prev_month),
        "is_prev_invoice_equal_to_expected": (
            stored_amount is not None and stored_amount == totals["rounded_total"]
        ),
    }


def get_course_invoice_amounts(course_id, year, month, method=PAYMENT_METHOD_COLLECTION) -> dict:
    """
    Per-customer amounts for a course's customers billed by `method`:
    the stored amount when confirmed, else the computed rounded total.
    """
    course = parse_positive_int(course_id, "course_id")
    y, m = parse_year_month(year, month)
    method = PAYMENT_METHOD_DEBIT if method == PAYMENT_METHOD_DEBIT else PAYMENT_METHOD_COLLECTION

    rows = (
        db.session.query(Customer, CustomerSetting.billing_method)
        .outerjoin(CustomerSetting, CustomerSetting.customer_id == Customer.id)
        .filter(Customer.course_id == course)
        .filter(func.coalesce(CustomerSetting.billing_method, PAYMENT_METHOD_COLLECTION) == method)
        .order_by(Customer.delivery_order.asc(), Customer.id.asc())
        .all()
    )

    items = []
    for customer, _billing_method in rows:
        invoice = get_invoice(customer.id, y, m)
        if invoice is not None:
            amount = invoice.amount
            confirmed = invoice.status == INVOICE_STATUS_CONFIRMED
            rounding = bool(invoice.rounding_enabled)
        else:
            totals = compute_monthly_total(customer.id, y, m)
            amount = totals["rounded_total"]
            confirmed = False
            rounding = totals["rounding_enabled"]
        items.append({
            "customer_id": customer.id,
            "customer_name": customer.name,
            "amount": amount,
            "confirmed": confirmed,
            "rounding_enabled": rounding,
        })

    return {"year": y, "month": m, "method": method, "items": items}


def get_course_invoice_statuses(course_id, year, month) -> dict:
    course = parse_positive_int(course_id, "course_id")
    y, m = parse_year_month(year, month)

    items = []
    for customer in list_course_customers(course):
        invoice = get_invoice(customer.id, y, m)
        items.append({
            "customer_id": customer.id,
            "confirmed": invoice is not None and invoice.status == INVOICE_STATUS_CONFIRMED,
            "amount": invoice.amount if invoice is not None else None,
            "rounding_enabled": bool(invoice.rounding_enabled) if invoice is not None else None,
        })
    return {"year": y, "month": m, "items": items}


def get_course_payments_sum(course_id, year, month) -> dict:
    course = parse_positive_int(course_id, "course_id")
    y, m = parse_year_month(year, month)

    items = [
        {"customer_id": customer.id, "total": sum_payments(customer.id, y, m)}
        for customer in list_course_customers(course)
    ]
    return {"year": y, "month": m, "items": items}
