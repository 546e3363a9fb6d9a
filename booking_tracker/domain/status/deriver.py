"""
Display status derivation for bookings.

The dashboard shows one status per booking, derived from the raw booking
status, its approval status and the state of its invoices. Rules are checked
in a fixed order and the first match wins:

    1. status completed                       -> delivered
    2. status in_progress                     -> in_production
    3. an issued or paid invoice exists       -> ready_to_launch
    4. approval or status approved            -> approved
    5. status or approval declined            -> cancelled
    6. status rescheduled or pending          -> pending_review
    7. anything else                          -> raw status, else pending_review

Invoice readiness is checked after completion/in-progress but before approval.
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Iterable, Optional

from ..records import InvoiceRecord, normalize_booking, normalize_invoice

logger = logging.getLogger(__name__)

BILLABLE_INVOICE_STATUSES = {"issued", "paid"}


class DisplayStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    IN_PRODUCTION = "in_production"
    READY_TO_LAUNCH = "ready_to_launch"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


def index_invoices_by_booking(invoices: Iterable[Any]) -> dict[int, list[InvoiceRecord]]:
    """Group invoices by booking_id; invoices without a booking are dropped"""
    indexed: dict[int, list[InvoiceRecord]] = defaultdict(list)
    for invoice in invoices:
        record = normalize_invoice(invoice)
        if record.booking_id is not None:
            indexed[record.booking_id].append(record)
    return indexed


def has_billable_invoice(booking_id: Optional[int], invoices: Iterable[Any]) -> bool:
    for invoice in invoices:
        record = normalize_invoice(invoice)
        if record.booking_id == booking_id and record.status in BILLABLE_INVOICE_STATUSES:
            return True
    return False


def derive_display_status(booking: Any, invoices: Iterable[Any] = ()) -> str:
    """
    Map raw booking/approval/invoice signals to a single display status.

    Only invoices whose booking_id matches the booking are considered. The
    result is never None: input that matches no rule falls back to the raw
    status, and an empty raw status to pending_review.
    """
    record = normalize_booking(booking)
    status = record.raw_status
    approval = record.approval_status

    if status == "completed":
        return DisplayStatus.DELIVERED.value
    if status == "in_progress":
        return DisplayStatus.IN_PRODUCTION.value
    # TODO: confirm with product whether invoice readiness should outrank approval
    if has_billable_invoice(record.id, invoices):
        return DisplayStatus.READY_TO_LAUNCH.value
    if approval == "approved" or status == "approved":
        return DisplayStatus.APPROVED.value
    if status == "declined" or approval == "declined":
        return DisplayStatus.CANCELLED.value
    if status in ("rescheduled", "pending"):
        return DisplayStatus.PENDING_REVIEW.value
    return status or DisplayStatus.PENDING_REVIEW.value


def describe_status(
    display_status: str,
    progress: int = 0,
    current_milestone_title: Optional[str] = None,
) -> str:
    """Human readable status line shown under the booking header"""
    if display_status in ("pending", "pending_review"):
        return "Waiting for provider approval to begin project"
    if display_status == "approved":
        if not current_milestone_title:
            return "Approved - Project planning in progress"
        return "Approved - Ready to begin project execution"
    if display_status == "ready_to_launch":
        return "All prerequisites met - Ready to begin development"
    if display_status in ("in_progress", "in_production"):
        if current_milestone_title:
            return f'Active - Working on "{current_milestone_title}" ({progress}% complete)'
        return f"Active - Project in progress ({progress}% complete)"
    if display_status in ("completed", "delivered"):
        return "Project delivered"
    if display_status == "cancelled":
        return "Booking cancelled"
    if display_status == "on_hold":
        return "Project on hold"
    return f"Status: {display_status}"
