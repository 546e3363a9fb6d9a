"""
Canonical work-breakdown records and the ingestion normalizer.

Rows arrive from the store (ORM objects) or from event payloads (dicts) in
several historical shapes. They are normalized here, once, into one record
shape; everything downstream reads only these records.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from ..shared.validators import coerce_number, normalize_status, parse_datetime

logger = logging.getLogger(__name__)

BOOKING_STATUSES = {
    "pending",
    "approved",
    "declined",
    "in_progress",
    "completed",
    "cancelled",
    "on_hold",
    "rescheduled",
}
MILESTONE_STATUSES = {"pending", "in_progress", "completed", "on_hold", "cancelled"}
TASK_STATUSES = {"pending", "in_progress", "completed"}
INVOICE_STATUSES = {"draft", "issued", "paid", "overdue", "cancelled"}


class TaskRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    milestone_id: Optional[int] = None
    title: Optional[str] = None
    status: str = "pending"
    estimated_hours: float = 0.0
    actual_hours: float = 0.0
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MilestoneRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    booking_id: Optional[int] = None
    title: Optional[str] = None
    status: str = "pending"
    # Left as delivered by the store; the aggregator clamps bad values
    weight: Optional[float] = 1.0
    progress_percentage: Optional[float] = None
    due_date: Optional[datetime] = None
    order_index: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    client_id: Optional[int] = None
    provider_id: Optional[int] = None
    service_id: Optional[int] = None
    raw_status: Optional[str] = None
    approval_status: Optional[str] = None
    amount: float = 0.0
    currency: Optional[str] = None
    project_progress: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InvoiceRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    booking_id: Optional[int] = None
    status: Optional[str] = None
    amount: float = 0.0
    created_at: Optional[datetime] = None


def _field(row: Any, *names: str) -> Any:
    """Return the first non-None field among names, for dicts and ORM rows alike"""
    for name in names:
        if isinstance(row, Mapping):
            value = row.get(name)
        else:
            value = getattr(row, name, None)
        if value is not None:
            return value
    return None


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _status(row: Any, allowed: set[str], kind: str, *names: str) -> Optional[str]:
    status = normalize_status(_field(row, *names))
    if status is not None and status not in allowed:
        logger.debug(f"{kind} {_field(row, 'id')} has unrecognised status {status!r}")
    return status


def _coalesce_amount(row: Any) -> float:
    """amount, then total_amount, then total_price, then amount_cents / 100"""
    amount = coerce_number(_field(row, "amount", "total_amount", "total_price"))
    if amount is not None:
        return amount
    cents = coerce_number(_field(row, "amount_cents"))
    if cents is not None:
        return cents / 100
    return 0.0


def normalize_task(row: Any) -> TaskRecord:
    if isinstance(row, TaskRecord):
        return row
    return TaskRecord(
        id=_as_int(_field(row, "id")),
        milestone_id=_as_int(_field(row, "milestone_id")),
        title=_field(row, "title"),
        status=_status(row, TASK_STATUSES, "Task", "status") or "pending",
        estimated_hours=coerce_number(_field(row, "estimated_hours")) or 0.0,
        actual_hours=coerce_number(_field(row, "actual_hours")) or 0.0,
        due_date=parse_datetime(_field(row, "due_date")),
        created_at=parse_datetime(_field(row, "created_at")),
        updated_at=parse_datetime(_field(row, "updated_at")),
    )


def normalize_milestone(row: Any) -> MilestoneRecord:
    if isinstance(row, MilestoneRecord):
        return row
    raw_weight = _field(row, "weight")
    weight = coerce_number(raw_weight)
    if raw_weight is not None and weight is None:
        logger.warning(f"⚠️ Milestone {_field(row, 'id')} has non-numeric weight {raw_weight!r}")
    return MilestoneRecord(
        id=_as_int(_field(row, "id")),
        booking_id=_as_int(_field(row, "booking_id")),
        title=_field(row, "title"),
        status=_status(row, MILESTONE_STATUSES, "Milestone", "status") or "pending",
        weight=weight,
        progress_percentage=coerce_number(_field(row, "progress_percentage")),
        due_date=parse_datetime(_field(row, "due_date")),
        order_index=_as_int(_field(row, "order_index")) or 0,
        created_at=parse_datetime(_field(row, "created_at")),
        updated_at=parse_datetime(_field(row, "updated_at")),
    )


def normalize_booking(row: Any) -> BookingRecord:
    if isinstance(row, BookingRecord):
        return row
    return BookingRecord(
        id=_as_int(_field(row, "id")),
        client_id=_as_int(_field(row, "client_id")),
        provider_id=_as_int(_field(row, "provider_id")),
        service_id=_as_int(_field(row, "service_id")),
        raw_status=_status(row, BOOKING_STATUSES, "Booking", "raw_status", "status"),
        approval_status=normalize_status(_field(row, "approval_status")),
        amount=_coalesce_amount(row),
        currency=_field(row, "currency"),
        project_progress=_as_int(_field(row, "project_progress", "progress_percentage")) or 0,
        created_at=parse_datetime(_field(row, "created_at")),
        updated_at=parse_datetime(_field(row, "updated_at")),
    )


def normalize_invoice(row: Any) -> InvoiceRecord:
    if isinstance(row, InvoiceRecord):
        return row
    return InvoiceRecord(
        id=_as_int(_field(row, "id")),
        booking_id=_as_int(_field(row, "booking_id")),
        status=_status(row, INVOICE_STATUSES, "Invoice", "status"),
        amount=_coalesce_amount(row),
        created_at=parse_datetime(_field(row, "created_at")),
    )
