# Overview: Flask API routes for customer billing settings; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import handle_domain_errors
from ..services import customer_settings_service
from ..services.customer_service import get_customer


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/customers/<int:customer_id>")
@handle_domain_errors
def get_settings_route(customer_id: int):
    get_customer(customer_id)
    return jsonify(customer_settings_service.get_customer_settings(customer_id)), 200


@settings_bp.put("/customers/<int:customer_id>")
@handle_domain_errors
def save_settings_route(customer_id: int):
    """Partial upsert: omitted fields keep their stored value."""
    data = request.get_json(silent=True) or {}
    return jsonify(customer_settings_service.save_customer_settings(customer_id, data)), 200
