from __future__ import annotations

from ..extensions import db
from delivery_ledger.time_utils import to_utc_z, utcnow


INVOICE_STATUS_CONFIRMED = "confirmed"

PAYMENT_METHOD_COLLECTION = "collection"
PAYMENT_METHOD_DEBIT = "debit"

VALID_PAYMENT_METHODS = (PAYMENT_METHOD_COLLECTION, PAYMENT_METHOD_DEBIT)


class Invoice(db.Model):
    """
    Confirmed monthly invoice for a customer.

    Existence of the row is the month lock: while it exists, the patterns
    and temporary changes behind that month cannot be edited. Unconfirming
    deletes the row.
    """
    __tablename__ = "ar_invoices"
    __table_args__ = (
        db.UniqueConstraint("customer_id", "year", "month", name="uq_ar_invoices_customer_month"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)

    amount = db.Column(db.Integer, nullable=False)
    # Snapshot of the customer's rounding setting at confirmation time
    rounding_enabled = db.Column(db.Boolean, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_CONFIRMED)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "year": self.year,
            "month": self.month,
            "amount": self.amount,
            "rounding_enabled": bool(self.rounding_enabled),
            "status": self.status,
            "confirmed_at": to_utc_z(self.confirmed_at),
        }


class Payment(db.Model):
    """
    Accounts-receivable payment entry.

    Append-only: a cancellation is a new row with the negated amount.
    """
    __tablename__ = "ar_payments"
    __table_args__ = (
        db.Index("ix_ar_payments_customer_month", "customer_id", "year", "month"),
        db.CheckConstraint("method IN ('collection', 'debit')", name="ck_ar_payments_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)

    amount = db.Column(db.Integer, nullable=False)  # signed; negative = cancellation
    method = db.Column(db.String(16), nullable=False)
    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "year": self.year,
            "month": self.month,
            "amount": self.amount,
            "method": self.method,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
