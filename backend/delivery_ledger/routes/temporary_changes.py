# Overview: Flask API routes for temporary changes; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import handle_domain_errors
from ..services import temporary_change_service


temporary_changes_bp = Blueprint("temporary_changes", __name__, url_prefix="/api/temporary-changes")


@temporary_changes_bp.get("/customers/<int:customer_id>")
@handle_domain_errors
def list_changes_route(customer_id: int):
    changes = temporary_change_service.list_changes(customer_id)
    return jsonify({"changes": [c.to_dict() for c in changes]}), 200


@temporary_changes_bp.get("/customers/<int:customer_id>/date/<change_date>")
@handle_domain_errors
def list_changes_on_route(customer_id: int, change_date: str):
    changes = temporary_change_service.list_changes_on(customer_id, change_date)
    return jsonify({"changes": [c.to_dict() for c in changes]}), 200


@temporary_changes_bp.get("/customers/<int:customer_id>/period/<start_date>/<end_date>")
@handle_domain_errors
def list_changes_between_route(customer_id: int, start_date: str, end_date: str):
    changes = temporary_change_service.list_changes_between(customer_id, start_date, end_date)
    return jsonify({"changes": [c.to_dict() for c in changes]}), 200


@temporary_changes_bp.post("/customers/<int:customer_id>")
@handle_domain_errors
def create_change_route(customer_id: int):
    """
    Request body:
    {
        "change_date": "2025-07-02",
        "change_type": "skip",     (skip | modify | add)
        "product_id": 1,           (optional for skip: omitted = every product)
        "quantity": 3,             (modify / add)
        "unit_price": 200,         (optional)
        "reason": "travel"
    }

    Returns:
        201: Change created
        409: The change date's month is confirmed
    """
    data = request.get_json(silent=True) or {}
    change = temporary_change_service.create_change(customer_id, data)
    return jsonify(change.to_dict()), 201


@temporary_changes_bp.put("/<int:change_id>")
@handle_domain_errors
def update_change_route(change_id: int):
    data = request.get_json(silent=True) or {}
    change = temporary_change_service.update_change(change_id, data)
    return jsonify(change.to_dict()), 200


@temporary_changes_bp.delete("/<int:change_id>")
@handle_domain_errors
def delete_change_route(change_id: int):
    return jsonify(temporary_change_service.delete_change(change_id)), 200
