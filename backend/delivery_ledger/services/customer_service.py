# Overview: Read-only customer directory used by course-wide operations.

from __future__ import annotations

from ..extensions import db
from ..models import Customer
from ..validation import NotFoundError


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def list_course_customers(course_id: int) -> list[Customer]:
    """Customers of a course in delivery order."""
    return (
        db.session.query(Customer)
        .filter_by(course_id=course_id)
        .order_by(Customer.delivery_order.asc(), Customer.id.asc())
        .all()
    )


def list_course_customer_ids(course_id: int) -> list[int]:
    return [c.id for c in list_course_customers(course_id)]


def list_all_customer_ids() -> list[int]:
    rows = db.session.query(Customer.id).order_by(Customer.id.asc()).all()
    return [r[0] for r in rows]
