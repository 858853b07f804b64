# Overview: Flask API routes for bulk updates and their rollback; parses input and returns JSON responses.

"""
Bulk Update API Routes

DESIGN:
- Holiday processing per course (skips, optional aggregate delivery date)
- Product unit price change from a month, with a no-write preview
- Operation log listing and rollback by log id
"""

from flask import Blueprint, jsonify, request

from ..decorators import handle_domain_errors
from ..services import bulk_update_service, operation_log_service


bulk_update_bp = Blueprint("bulk_update", __name__, url_prefix="/api/bulk-update")


@bulk_update_bp.post("/holiday")
@handle_domain_errors
def holiday_route():
    """
    Request body:
    {
        "course_id": 1,
        "start_date": "2025-07-01",
        "end_date": "2025-07-07",
        "target_date": "2025-06-30"   (optional)
    }

    Returns:
        200: {operation_log_id, op_id, affected_customers, errors[]}
    """
    data = request.get_json(silent=True) or {}
    result = bulk_update_service.process_holiday(
        data.get("course_id"),
        data.get("start_date"),
        data.get("end_date"),
        data.get("target_date"),
    )
    return jsonify(result), 200


@bulk_update_bp.post("/price-change/preview")
@handle_domain_errors
def price_change_preview_route():
    data = request.get_json(silent=True) or {}
    result = bulk_update_service.preview_price_change(
        data.get("product_id"),
        data.get("new_unit_price"),
        data.get("start_month"),
        data.get("course_id"),
    )
    return jsonify(result), 200


@bulk_update_bp.post("/price-change")
@handle_domain_errors
def price_change_route():
    """
    Request body:
    {
        "product_id": 1,
        "new_unit_price": 200,
        "start_month": "2025-08",
        "course_id": 1            (optional)
    }

    Returns:
        200: {operation_log_id, affected_customers, new_pattern_ids}
        409: Some customer's month is confirmed; nothing changed
    """
    data = request.get_json(silent=True) or {}
    result = bulk_update_service.process_price_change(
        data.get("product_id"),
        data.get("new_unit_price"),
        data.get("start_month"),
        data.get("course_id"),
    )
    return jsonify(result), 200


@bulk_update_bp.get("/logs")
@handle_domain_errors
def list_logs_route():
    logs = operation_log_service.list_operation_logs(request.args.get("limit"))
    return jsonify({"logs": [log.to_dict() for log in logs]}), 200


@bulk_update_bp.post("/logs/<int:log_id>/rollback")
@handle_domain_errors
def rollback_route(log_id: int):
    return jsonify(bulk_update_service.rollback_operation(log_id)), 200
