# Overview: Operation log store; typed payloads for reversible bulk operations.

"""
Operation Log Invariants (authoritative)

- One row per bulk operation, written in the same transaction as its effects.
- op_type selects the payload classes: params describe the request,
  reversal carries exactly what rollback needs.
- Rows are never deleted; rollback only stamps reversed_at.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields

from flask import current_app
from sqlalchemy import desc

from ..extensions import db
from ..models import OperationLog
from ..validation import NotFoundError, ValidationError, parse_positive_int
from .concurrency import lock_for_update
from delivery_ledger.time_utils import utcnow


OP_TYPE_HOLIDAY = "holiday"
OP_TYPE_PRICE_CHANGE = "price_change"

DEFAULT_LIST_LIMIT = 200


class _Payload:
    """JSON round-trip for the payload dataclasses below."""

    def to_json(self) -> dict:
        return asdict(self)

    @classmethod
    def from_json(cls, data: dict | None):
        data = data or {}
        return cls(**{f.name: data[f.name] for f in fields(cls) if f.name in data})


@dataclass(frozen=True)
class HolidayParams(_Payload):
    course_id: int
    start_date: str
    end_date: str
    target_date: str | None = None
    op_id: str = ""


@dataclass(frozen=True)
class HolidayReversal(_Payload):
    temp_change_ids: list = field(default_factory=list)
    # Skips at the target date replaced by the aggregate modify
    removed_changes: list = field(default_factory=list)


@dataclass(frozen=True)
class PriceChangeParams(_Payload):
    product_id: int
    new_unit_price: int
    start_month: str
    course_id: int | None = None


@dataclass(frozen=True)
class PriceChangeReversal(_Payload):
    new_pattern_ids: list = field(default_factory=list)
    # [{"id": pattern_id, "previous_end_date": "YYYY-MM-DD" | None, "previous_is_active": bool}]
    updated_patterns: list = field(default_factory=list)


PAYLOAD_TYPES = {
    OP_TYPE_HOLIDAY: (HolidayParams, HolidayReversal),
    OP_TYPE_PRICE_CHANGE: (PriceChangeParams, PriceChangeReversal),
}


def append_operation_log(op_type: str, description: str, params: _Payload, reversal: _Payload) -> OperationLog:
    """Add a log row to the current transaction (caller commits)."""
    if op_type not in PAYLOAD_TYPES:
        raise ValidationError(f"Unknown operation type: {op_type}")
    log = OperationLog(
        op_type=op_type,
        description=description,
        params_json=params.to_json(),
        data_json=reversal.to_json(),
        created_at=utcnow(),
    )
    db.session.add(log)
    db.session.flush()
    return log


def get_operation_log(log_id, *, lock: bool = False) -> OperationLog:
    lid = parse_positive_int(log_id, "log_id")
    query = db.session.query(OperationLog).filter_by(id=lid)
    if lock:
        query = lock_for_update(query)
    log = query.first()
    if log is None:
        raise NotFoundError(f"Operation log {lid} not found")
    return log


def list_operation_logs(limit=None) -> list[OperationLog]:
    """Newest first."""
    if limit in (None, ""):
        limit = current_app.config.get("OPERATION_LOG_LIST_LIMIT", DEFAULT_LIST_LIMIT)
    lim = parse_positive_int(limit, "limit")
    return (
        db.session.query(OperationLog)
        .order_by(desc(OperationLog.created_at), desc(OperationLog.id))
        .limit(lim)
        .all()
    )


def load_payload(log: OperationLog) -> tuple:
    """(params, reversal) dataclasses for a log row."""
    try:
        params_cls, reversal_cls = PAYLOAD_TYPES[log.op_type]
    except KeyError:
        raise ValidationError(f"Unknown operation type: {log.op_type}")
    return params_cls.from_json(log.params_json), reversal_cls.from_json(log.data_json)


def mark_reversed(log: OperationLog) -> OperationLog:
    log.reversed_at = utcnow()
    db.session.flush()
    return log
