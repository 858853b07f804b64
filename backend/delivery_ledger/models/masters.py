from __future__ import annotations

from ..extensions import db
from delivery_ledger.time_utils import to_utc_z


class Course(db.Model):
    """
    Delivery course (route).

    Master data is maintained elsewhere; the ledger only reads it to
    enumerate customers for course-wide operations.
    """
    __tablename__ = "delivery_courses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Course id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """Deliverable product with its list price (yen)."""
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    unit = db.Column(db.String(32), nullable=True)
    unit_price = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "unit_price": self.unit_price,
            "created_at": to_utc_z(self.created_at),
        }


class Customer(db.Model):
    """Subscriber on a delivery course, visited in delivery_order."""
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_course_order", "course_id", "delivery_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey("delivery_courses.id"), nullable=True, index=True)
    delivery_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    course = db.relationship("Course", backref=db.backref("customers", lazy=True))

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "course_id": self.course_id,
            "delivery_order": self.delivery_order,
            "created_at": to_utc_z(self.created_at),
        }
