# Overview: Flask API routes for delivery patterns; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import handle_domain_errors
from ..services import pattern_service


patterns_bp = Blueprint("patterns", __name__, url_prefix="/api/patterns")


@patterns_bp.get("/customers/<int:customer_id>")
@handle_domain_errors
def list_patterns_route(customer_id: int):
    patterns = pattern_service.list_patterns(
        customer_id,
        request.args.get("product_id"),
        active_only=request.args.get("active_only") in ("1", "true"),
    )
    return jsonify({"patterns": [p.to_dict() for p in patterns]}), 200


@patterns_bp.post("/customers/<int:customer_id>")
@handle_domain_errors
def create_pattern_route(customer_id: int):
    """
    Request body:
    {
        "product_id": 1,
        "delivery_days": [1, 3],          (Sunday=0 .. Saturday=6)
        "daily_quantities": {"1": 2},     (optional, wins over delivery_days)
        "quantity": 2,
        "unit_price": 180,                (optional, defaults to product price)
        "start_date": "2025-07-01",
        "end_date": null
    }

    Returns:
        201: Pattern created
        409: A month in the pattern's span is confirmed
    """
    data = request.get_json(silent=True) or {}
    pattern = pattern_service.create_pattern(customer_id, data)
    return jsonify(pattern.to_dict()), 201


@patterns_bp.patch("/customers/<int:customer_id>/<int:pattern_id>")
@handle_domain_errors
def update_pattern_route(customer_id: int, pattern_id: int):
    data = request.get_json(silent=True) or {}
    pattern = pattern_service.update_pattern(customer_id, pattern_id, data)
    return jsonify(pattern.to_dict()), 200


@patterns_bp.patch("/customers/<int:customer_id>/<int:pattern_id>/toggle")
@handle_domain_errors
def toggle_pattern_route(customer_id: int, pattern_id: int):
    data = request.get_json(silent=True) or {}
    pattern = pattern_service.set_pattern_active(customer_id, pattern_id, data.get("is_active"))
    return jsonify(pattern.to_dict()), 200
