"""
Progress aggregation for the Booking -> Milestone -> Task hierarchy.

Task completion rolls up into a milestone percentage, and milestone
percentages roll up into a weighted booking percentage. Everything here is a
pure function of the records passed in; persisting the results is the
caller's job (see ProgressService).
"""

import logging
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from ...config import WEIGHT_FLOOR
from ..records import (
    BookingRecord,
    MilestoneRecord,
    TaskRecord,
    normalize_booking,
    normalize_milestone,
    normalize_task,
)

logger = logging.getLogger(__name__)


class MilestoneProgress(BaseModel):
    milestone_id: Optional[int] = None
    title: Optional[str] = None
    status: str = "pending"
    weight: float = 1.0
    progress_percentage: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0


class BookingProgress(BaseModel):
    booking_id: Optional[int] = None
    progress_percentage: int = 0
    milestones: list[MilestoneProgress] = Field(default_factory=list)
    orphaned_tasks: int = 0


class BatchProgress(BaseModel):
    bookings: dict[int, BookingProgress] = Field(default_factory=dict)
    orphaned_milestones: int = 0
    orphaned_tasks: int = 0
    failed_booking_ids: list[int] = Field(default_factory=list)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (Python's round() is banker's)"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp_weight(weight: Any, milestone_id: Optional[int] = None) -> float:
    """Missing or negative weights become WEIGHT_FLOOR; zero is kept"""
    if weight is None or weight < 0:
        logger.warning(
            f"⚠️ Milestone {milestone_id} has invalid weight {weight!r}, clamping to {WEIGHT_FLOOR}"
        )
        return WEIGHT_FLOOR
    return float(weight)


def clamp_percentage(value: Any, milestone_id: Optional[int] = None) -> float:
    if value is None:
        logger.warning(f"⚠️ Milestone {milestone_id} has no progress percentage, treating as 0")
        return 0.0
    if value < 0 or value > 100:
        logger.warning(f"⚠️ Milestone {milestone_id} progress {value} out of range, clamping")
        return float(min(max(value, 0), 100))
    return float(value)


def compute_milestone_progress(tasks: Iterable[Any]) -> int:
    """
    Percentage of completed tasks, rounded half-up.

    Returns 0 for an empty task list.
    """
    records = [normalize_task(t) for t in tasks]
    if not records:
        return 0
    completed = sum(1 for t in records if t.status == "completed")
    return round_half_up(100 * completed / len(records))


def compute_booking_progress(milestones: Iterable[Any]) -> int:
    """
    Weighted average of milestone percentages: sum(pct * weight) / sum(weight).

    Returns 0 for an empty list or a zero total weight, e.g. when every
    weight is 0. The result is always within [0, 100].
    """
    records = [normalize_milestone(m) for m in milestones]
    if not records:
        return 0

    weighted_sum = 0.0
    total_weight = 0.0
    for milestone in records:
        weight = clamp_weight(milestone.weight, milestone.id)
        pct = clamp_percentage(milestone.progress_percentage, milestone.id)
        weighted_sum += pct * weight
        total_weight += weight

    if total_weight <= 0:
        return 0
    return min(max(round_half_up(weighted_sum / total_weight), 0), 100)


def aggregate_booking(
    milestones: Iterable[Any],
    tasks: Iterable[Any],
    booking_id: Optional[int] = None,
) -> BookingProgress:
    """
    Recompute every milestone percentage from its current tasks, then the
    booking percentage from those fresh values.

    Cached milestone percentages are ignored. Tasks whose milestone is not in
    the given list are skipped and counted as orphaned.
    """
    milestone_records = sorted(
        (normalize_milestone(m) for m in milestones), key=lambda m: m.order_index
    )
    known_ids = {m.id for m in milestone_records}

    tasks_by_milestone: dict[Optional[int], list[TaskRecord]] = defaultdict(list)
    orphaned = 0
    for task in tasks:
        record = normalize_task(task)
        if record.milestone_id not in known_ids:
            orphaned += 1
            continue
        tasks_by_milestone[record.milestone_id].append(record)

    if orphaned:
        logger.warning(f"⚠️ Booking {booking_id}: skipped {orphaned} orphaned task(s)")

    refreshed: list[MilestoneRecord] = []
    details: list[MilestoneProgress] = []
    for milestone in milestone_records:
        milestone_tasks = tasks_by_milestone.get(milestone.id, [])
        pct = compute_milestone_progress(milestone_tasks)
        weight = clamp_weight(milestone.weight, milestone.id)
        refreshed.append(milestone.model_copy(update={"progress_percentage": pct, "weight": weight}))
        details.append(
            MilestoneProgress(
                milestone_id=milestone.id,
                title=milestone.title,
                status=milestone.status,
                weight=weight,
                progress_percentage=pct,
                total_tasks=len(milestone_tasks),
                completed_tasks=sum(1 for t in milestone_tasks if t.status == "completed"),
            )
        )

    return BookingProgress(
        booking_id=booking_id,
        progress_percentage=compute_booking_progress(refreshed),
        milestones=details,
        orphaned_tasks=orphaned,
    )


def aggregate_batch(
    bookings: Iterable[Any],
    milestones: Iterable[Any],
    tasks: Iterable[Any],
) -> BatchProgress:
    """
    Aggregate progress for many bookings at once.

    Milestones pointing at a booking outside the batch and tasks pointing at
    an unknown milestone are skipped and counted, so totals are never silently
    undercounted. A failure on one booking is logged and recorded; the rest of
    the batch still completes.
    """
    booking_records: list[BookingRecord] = [normalize_booking(b) for b in bookings]
    booking_ids = {b.id for b in booking_records}

    result = BatchProgress()
    milestones_by_booking: dict[int, list[MilestoneRecord]] = defaultdict(list)
    milestone_owner: dict[Optional[int], int] = {}
    for milestone in milestones:
        record = normalize_milestone(milestone)
        if record.booking_id not in booking_ids:
            result.orphaned_milestones += 1
            continue
        milestones_by_booking[record.booking_id].append(record)
        milestone_owner[record.id] = record.booking_id

    tasks_by_booking: dict[int, list[TaskRecord]] = defaultdict(list)
    for task in tasks:
        record = normalize_task(task)
        owner = milestone_owner.get(record.milestone_id)
        if owner is None:
            result.orphaned_tasks += 1
            continue
        tasks_by_booking[owner].append(record)

    for booking in booking_records:
        try:
            result.bookings[booking.id] = aggregate_booking(
                milestones_by_booking.get(booking.id, []),
                tasks_by_booking.get(booking.id, []),
                booking_id=booking.id,
            )
        except Exception as e:
            logger.error(f"❌ Failed to aggregate progress for booking {booking.id}: {e}")
            result.failed_booking_ids.append(booking.id)

    if result.orphaned_milestones or result.orphaned_tasks:
        logger.info(
            f"📊 Batch progress skipped {result.orphaned_milestones} orphaned milestone(s) "
            f"and {result.orphaned_tasks} orphaned task(s)"
        )
    return result
