from __future__ import annotations

from ..extensions import db
from delivery_ledger.time_utils import to_utc_z, utcnow


class CustomerSetting(db.Model):
    """
    Per-customer billing settings.

    A missing row means the defaults: collection billing, rounding enabled.
    """
    __tablename__ = "customer_settings"
    __table_args__ = (
        db.CheckConstraint("billing_method IN ('collection', 'debit')", name="ck_customer_settings_method"),
        db.CheckConstraint("account_type IN (1, 2)", name="ck_customer_settings_account_type"),
    )

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), primary_key=True)
    billing_method = db.Column(db.String(16), nullable=True)
    rounding_enabled = db.Column(db.Boolean, nullable=True, default=True)

    # Bank transfer (debit) details
    bank_code = db.Column(db.String(4), nullable=True)
    branch_code = db.Column(db.String(3), nullable=True)
    account_type = db.Column(db.Integer, nullable=True)  # 1 = ordinary, 2 = current
    account_number = db.Column(db.String(7), nullable=True)
    account_holder_katakana = db.Column(db.String(64), nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "billing_method": self.billing_method,
            "rounding_enabled": self.rounding_enabled,
            "bank_code": self.bank_code,
            "branch_code": self.branch_code,
            "account_type": self.account_type,
            "account_number": self.account_number,
            "account_holder_katakana": self.account_holder_katakana,
            "updated_at": to_utc_z(self.updated_at),
        }
