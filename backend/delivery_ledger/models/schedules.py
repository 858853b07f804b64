from __future__ import annotations

from ..extensions import db
from delivery_ledger.time_utils import to_iso_date, to_utc_z, utcnow


CHANGE_TYPE_SKIP = "skip"
CHANGE_TYPE_MODIFY = "modify"
CHANGE_TYPE_ADD = "add"

VALID_CHANGE_TYPES = (CHANGE_TYPE_SKIP, CHANGE_TYPE_MODIFY, CHANGE_TYPE_ADD)


class DeliveryPattern(db.Model):
    """
    Recurring delivery rule for one customer and product.

    Schedule is either a weekday set (delivery_days, Sunday=0) with a flat
    quantity, or a per-weekday quantity map (daily_quantities) which takes
    precedence when present.

    Patterns are never deleted to change history: a price or schedule change
    ends the current pattern and opens a successor.
    """
    __tablename__ = "delivery_patterns"
    __table_args__ = (
        db.Index("ix_delivery_patterns_customer_product", "customer_id", "product_id"),
        db.Index("ix_delivery_patterns_product_active", "product_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    delivery_days = db.Column(db.JSON, nullable=True)
    daily_quantities = db.Column(db.JSON, nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_price = db.Column(db.Integer, nullable=False)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)  # NULL = open-ended
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = db.relationship("Customer", backref=db.backref("delivery_patterns", lazy=True))
    product = db.relationship("Product")

    def __repr__(self) -> str:
        return (
            f"<DeliveryPattern id={self.id} customer={self.customer_id} product={self.product_id} "
            f"{self.start_date}..{self.end_date or 'open'}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "delivery_days": self.delivery_days or [],
            "daily_quantities": self.daily_quantities,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "is_active": bool(self.is_active),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class TemporaryChange(db.Model):
    """
    One-off override for a single delivery date.

    - skip:   no delivery of product_id (or of everything when product_id is NULL)
    - modify: replace the scheduled quantity (and optionally the unit price)
    - add:    extra delivery on top of the schedule
    """
    __tablename__ = "temporary_changes"
    __table_args__ = (
        db.Index("ix_temporary_changes_customer_date", "customer_id", "change_date"),
        db.CheckConstraint(
            "change_type IN ('skip', 'modify', 'add')",
            name="ck_temporary_changes_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    change_date = db.Column(db.Date, nullable=False)
    change_type = db.Column(db.String(16), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=True)
    unit_price = db.Column(db.Integer, nullable=True)
    reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "change_date": to_iso_date(self.change_date),
            "change_type": self.change_type,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
