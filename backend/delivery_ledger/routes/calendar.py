# Overview: Flask API routes for delivery calendars; parses input and returns JSON responses.

from flask import Blueprint, jsonify

from ..decorators import handle_domain_errors
from ..services import billing_service, calendar_service


calendar_bp = Blueprint("calendar", __name__, url_prefix="/api/calendar")


@calendar_bp.get("/customers/<int:customer_id>/<int:year>/<int:month>")
@handle_domain_errors
def customer_calendar_route(customer_id: int, year: int, month: int):
    """
    Day-by-day delivery calendar for one customer-month.

    Returns:
        200: {customer, calendar[], temporary_changes[], raw_total}
    """
    cal = calendar_service.get_customer_calendar(customer_id, year, month)
    payload = cal.to_dict()
    payload["raw_total"] = billing_service.sum_calendar(cal.days)
    return jsonify(payload), 200


@calendar_bp.get("/courses/<int:course_id>/<int:year>/<int:month>")
@handle_domain_errors
def course_calendars_route(course_id: int, year: int, month: int):
    """Calendars for every customer of a course, in delivery order."""
    items = calendar_service.get_course_calendars(course_id, year, month)
    return jsonify({
        "course_id": course_id,
        "year": year,
        "month": month,
        "customers": [c.to_dict() for c in items],
    }), 200


@calendar_bp.get("/customers/<int:customer_id>/<int:year>/<int:month>/total")
@handle_domain_errors
def customer_total_route(customer_id: int, year: int, month: int):
    """Raw and rounded total for one customer-month."""
    return jsonify(billing_service.get_monthly_total(customer_id, year, month)), 200
