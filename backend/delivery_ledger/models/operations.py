from __future__ import annotations

from ..extensions import db
from delivery_ledger.time_utils import to_utc_z, utcnow


class OperationLog(db.Model):
    """
    Audit record of a bulk mutation, carrying the data needed to reverse it.

    Append-only. Rollback mutates the affected rows and stamps reversed_at;
    the log row itself is kept.
    """
    __tablename__ = "operation_logs"
    __table_args__ = (
        db.Index("ix_operation_logs_op_type_created", "op_type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    op_type = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    params_json = db.Column(db.JSON, nullable=False, default=dict)
    data_json = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    reversed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_reversed(self) -> bool:
        return self.reversed_at is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "op_type": self.op_type,
            "description": self.description,
            "params": self.params_json or {},
            "data": self.data_json or {},
            "created_at": to_utc_z(self.created_at),
            "reversed_at": to_utc_z(self.reversed_at),
            "reversed": self.is_reversed,
        }
