# Overview: Flask API routes for AR payments; parses input and returns JSON responses.

"""
AR Payment API Routes

DESIGN:
- Register a single payment, or a month's batch
- List with filters (year, month, method, note search), newest first
- Notes are editable; amounts are not. Cancellation appends a negated row.
"""

from flask import Blueprint, jsonify, request

from ..decorators import handle_domain_errors
from ..services import payment_service


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/customers/<int:customer_id>")
@handle_domain_errors
def register_payment_route(customer_id: int):
    """
    Request body:
    {
        "year": 2025,
        "month": 7,
        "amount": 1200,
        "method": "collection",   (collection | debit)
        "note": "cash at door"    (optional)
    }

    Returns:
        201: Payment created
        400: Invalid input (or debit for an unconfirmed month)
        404: Customer not found
    """
    data = request.get_json(silent=True) or {}
    payment = payment_service.register_payment(
        customer_id,
        data.get("year"),
        data.get("month"),
        data.get("amount"),
        data.get("method"),
        data.get("note"),
    )
    return jsonify(payment.to_dict()), 201


@payments_bp.post("/batch")
@handle_domain_errors
def register_batch_route():
    """
    Request body:
    {
        "year": 2025,
        "month": 7,
        "method": "collection",
        "entries": [{"customer_id": 1, "amount": 1200, "note": "..."}]
    }
    """
    data = request.get_json(silent=True) or {}
    result = payment_service.register_batch_payments(
        data.get("year"),
        data.get("month"),
        data.get("entries"),
        data.get("method", "collection"),
    )
    return jsonify(result), 200


@payments_bp.get("/customers/<int:customer_id>")
@handle_domain_errors
def list_payments_route(customer_id: int):
    payments = payment_service.list_payments(
        customer_id,
        year=request.args.get("year"),
        month=request.args.get("month"),
        method=request.args.get("method"),
        q=request.args.get("q"),
        limit=request.args.get("limit"),
        offset=request.args.get("offset"),
    )
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200


@payments_bp.patch("/customers/<int:customer_id>/<int:payment_id>")
@handle_domain_errors
def update_payment_note_route(customer_id: int, payment_id: int):
    data = request.get_json(silent=True) or {}
    payment = payment_service.update_payment_note(customer_id, payment_id, data.get("note"))
    return jsonify(payment.to_dict()), 200


@payments_bp.post("/customers/<int:customer_id>/<int:payment_id>/cancel")
@handle_domain_errors
def cancel_payment_route(customer_id: int, payment_id: int):
    cancellation = payment_service.cancel_payment(customer_id, payment_id)
    return jsonify(cancellation.to_dict()), 201
