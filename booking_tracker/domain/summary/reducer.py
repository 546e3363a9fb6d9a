"""
Row-by-row summary reducer.

Recomputes every KPI from raw booking and invoice records. This is the
reference the materialized-view fast path in SummaryRepository must agree with.
"""

import logging
from typing import Any, Iterable, Optional

from ..records import BookingRecord, normalize_booking, normalize_invoice
from ..status.deriver import BILLABLE_INVOICE_STATUSES, derive_display_status, index_invoices_by_booking
from .schemas import Summary

logger = logging.getLogger(__name__)

PROJECTED_STATUSES = {"ready_to_launch", "in_production"}


def zero_summary() -> Summary:
    """The canonical empty-but-valid summary"""
    return Summary()


def is_approved(booking: BookingRecord) -> bool:
    return booking.raw_status == "approved" or booking.approval_status == "approved"


def completion_days(booking: BookingRecord, display_status: str) -> Optional[float]:
    """Days from creation to last update, only meaningful for delivered bookings"""
    if display_status != "delivered" or not booking.created_at or not booking.updated_at:
        return None
    return max((booking.updated_at - booking.created_at).total_seconds(), 0) / 86400


def build_view_row(booking: Any, invoices: Iterable[Any] = ()) -> dict:
    """Materialized view row for one booking, derived with the same rules as the row path"""
    record = normalize_booking(booking)
    display_status = derive_display_status(record, invoices)
    return {
        "booking_id": record.id,
        "client_id": record.client_id,
        "provider_id": record.provider_id,
        "raw_status": record.raw_status,
        "approval_status": record.approval_status,
        "display_status": display_status,
        "amount": record.amount,
        "completion_days": completion_days(record, display_status),
        "created_at": record.created_at,
    }


def total_revenue(invoices: Iterable[Any]) -> float:
    """Sum of issued and paid invoice amounts"""
    total = 0.0
    for invoice in invoices:
        record = normalize_invoice(invoice)
        if record.status in BILLABLE_INVOICE_STATUSES:
            total += record.amount
    return total


def reduce_rows(
    bookings: Iterable[Any],
    invoices: Iterable[Any],
    status_invoices: Optional[Iterable[Any]] = None,
) -> Summary:
    """
    Compute the dashboard summary from raw records.

    Args:
        bookings: Booking rows in the batch window
        invoices: Invoice rows in the batch window, used for revenue
        status_invoices: Invoices used to derive display status; defaults to invoices

    A booking that fails to reduce is logged and skipped; it never aborts the batch.
    """
    invoice_list = list(invoices)
    by_booking = index_invoices_by_booking(
        invoice_list if status_invoices is None else status_invoices
    )

    counts = {
        "delivered": 0,
        "in_production": 0,
        "pending_review": 0,
        "ready_to_launch": 0,
    }
    total = 0
    approved = 0
    projected = 0.0
    durations: list[float] = []
    skipped = 0

    for booking in bookings:
        try:
            record = normalize_booking(booking)
            display_status = derive_display_status(record, by_booking.get(record.id, []))
        except Exception as e:
            skipped += 1
            logger.error(f"❌ Skipping booking in summary: {e}")
            continue

        total += 1
        if display_status in counts:
            counts[display_status] += 1
        if is_approved(record):
            approved += 1
        if display_status in PROJECTED_STATUSES:
            projected += record.amount
        days = completion_days(record, display_status)
        if days is not None:
            durations.append(days)

    if skipped:
        logger.warning(f"⚠️ Summary skipped {skipped} malformed booking(s)")

    avg_completion = round(sum(durations) / len(durations), 1) if durations else 0
    return Summary(
        total=total,
        completed=counts["delivered"],
        inProgress=counts["in_production"],
        approved=approved,
        pending=counts["pending_review"],
        readyToLaunch=counts["ready_to_launch"],
        totalRevenue=total_revenue(invoice_list),
        projectedBillings=projected,
        pendingApproval=counts["pending_review"],
        avgCompletionTime=avg_completion,
    )
