# Overview: Flask API routes for invoice confirmation and AR summaries; parses input and returns JSON responses.

"""
Invoice / AR API Routes

DESIGN:
- Confirm/unconfirm one customer-month, or a batch (course or explicit ids)
- Confirmation status and AR summary (read-only)
- Course-level amounts, statuses and payment sums for billing screens
"""

from flask import Blueprint, jsonify, request

from ..decorators import handle_domain_errors
from ..services import ledger_service


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


# =============================================================================
# CONFIRMATION
# =============================================================================

@invoices_bp.post("/customers/<int:customer_id>/<int:year>/<int:month>/confirm")
@handle_domain_errors
def confirm_invoice_route(customer_id: int, year: int, month: int):
    """
    Confirm (freeze) a customer-month.

    Returns:
        200: Invoice
        400: Invalid input
        404: Customer not found
    """
    invoice = ledger_service.confirm_invoice(customer_id, year, month)
    return jsonify(invoice.to_dict()), 200


@invoices_bp.post("/customers/<int:customer_id>/<int:year>/<int:month>/unconfirm")
@handle_domain_errors
def unconfirm_invoice_route(customer_id: int, year: int, month: int):
    return jsonify(ledger_service.unconfirm_invoice(customer_id, year, month)), 200


@invoices_bp.post("/batch/confirm")
@handle_domain_errors
def confirm_batch_route():
    """
    Request body:
    {
        "year": 2025,
        "month": 7,
        "course_id": 1,            (optional)
        "customer_ids": [1, 2, 3]  (optional, wins over course_id)
    }
    """
    data = request.get_json(silent=True) or {}
    result = ledger_service.confirm_invoices_batch(
        data.get("year"),
        data.get("month"),
        course_id=data.get("course_id"),
        customer_ids=data.get("customer_ids"),
    )
    return jsonify(result), 200


@invoices_bp.post("/batch/unconfirm")
@handle_domain_errors
def unconfirm_batch_route():
    data = request.get_json(silent=True) or {}
    result = ledger_service.unconfirm_invoices_batch(
        data.get("year"),
        data.get("month"),
        course_id=data.get("course_id"),
        customer_ids=data.get("customer_ids"),
    )
    return jsonify(result), 200


# =============================================================================
# READ MODELS
# =============================================================================

@invoices_bp.get("/customers/<int:customer_id>/<int:year>/<int:month>/status")
@handle_domain_errors
def invoice_status_route(customer_id: int, year: int, month: int):
    return jsonify(ledger_service.get_invoice_status(customer_id, year, month)), 200


@invoices_bp.get("/customers/<int:customer_id>/<int:year>/<int:month>/ar-summary")
@handle_domain_errors
def ar_summary_route(customer_id: int, year: int, month: int):
    return jsonify(ledger_service.get_ar_summary(customer_id, year, month)), 200


@invoices_bp.get("/customers/<int:customer_id>/<int:year>/<int:month>/ar-summary/consistency")
@handle_domain_errors
def ar_summary_consistency_route(customer_id: int, year: int, month: int):
    return jsonify(ledger_service.get_ar_summary_consistency(customer_id, year, month)), 200


@invoices_bp.get("/courses/<int:course_id>/<int:year>/<int:month>/amounts")
@handle_domain_errors
def course_amounts_route(course_id: int, year: int, month: int):
    method = request.args.get("method", "collection")
    return jsonify(ledger_service.get_course_invoice_amounts(course_id, year, month, method)), 200


@invoices_bp.get("/courses/<int:course_id>/<int:year>/<int:month>/statuses")
@handle_domain_errors
def course_statuses_route(course_id: int, year: int, month: int):
    return jsonify(ledger_service.get_course_invoice_statuses(course_id, year, month)), 200


@invoices_bp.get("/courses/<int:course_id>/<int:year>/<int:month>/payments-sum")
@handle_domain_errors
def course_payments_sum_route(course_id: int, year: int, month: int):
    return jsonify(ledger_service.get_course_payments_sum(course_id, year, month)), 200
