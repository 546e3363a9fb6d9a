"""
Deadline monitoring: overdue detection, completion estimates and schedule risks
"""

from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from ...config import DEFAULT_MILESTONE_DURATION_DAYS
from ...shared.validators import normalize_status, parse_datetime, utcnow
from ..records import MilestoneRecord, normalize_milestone


class Risk(BaseModel):
    id: str
    type: str  # deadline, dependency
    severity: str  # high, medium, low
    description: str
    impact: str
    mitigation: str
    count: int = 0


def _get(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def is_overdue(item: Any, now: Optional[datetime] = None) -> bool:
    """
    True when the item has a due date in the past and is not completed.

    Works for milestones and tasks alike (records, ORM rows or dicts).
    """
    due_date = parse_datetime(_get(item, "due_date"))
    if due_date is None:
        return False
    now = now or utcnow()
    return due_date < now and normalize_status(_get(item, "status")) != "completed"


def count_overdue(items: Iterable[Any], now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    return sum(1 for item in items if is_overdue(item, now))


def estimate_completion(milestones: Iterable[Any], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Point estimate of when the remaining milestones will be done.

    Average duration (updated_at - created_at) of completed milestones times the
    number of incomplete milestones, added to now. Falls back to
    DEFAULT_MILESTONE_DURATION_DAYS per milestone when nothing has completed yet.

    Returns:
        None when there is nothing left to complete
    """
    records = [normalize_milestone(m) for m in milestones]
    incomplete = [m for m in records if m.status != "completed"]
    if not incomplete:
        return None

    durations = [
        (m.updated_at - m.created_at).total_seconds()
        for m in records
        if m.status == "completed" and m.created_at and m.updated_at
    ]
    if durations:
        average = timedelta(seconds=sum(durations) / len(durations))
    else:
        average = timedelta(days=DEFAULT_MILESTONE_DURATION_DAYS)

    now = now or utcnow()
    return now + average * len(incomplete)


def current_milestone(milestones: Iterable[Any]) -> Optional[MilestoneRecord]:
    """First in-progress milestone by order, else the first pending one"""
    records = sorted((normalize_milestone(m) for m in milestones), key=lambda m: m.order_index)
    for status in ("in_progress", "pending"):
        for milestone in records:
            if milestone.status == status:
                return milestone
    return None


def detect_risks(milestones: Iterable[Any], now: Optional[datetime] = None) -> list[Risk]:
    """Schedule risks: overdue milestones and milestones blocked by earlier ones"""
    records = [normalize_milestone(m) for m in milestones]
    now = now or utcnow()
    risks: list[Risk] = []

    overdue = [m for m in records if is_overdue(m, now)]
    if overdue:
        risks.append(
            Risk(
                id="overdue_milestones",
                type="deadline",
                severity="high",
                description=f"{len(overdue)} milestone(s) overdue",
                impact="Project timeline at risk",
                mitigation="Review and adjust milestone deadlines",
                count=len(overdue),
            )
        )

    blocked = [
        m
        for m in records
        if m.status == "pending"
        and any(dep.order_index < m.order_index and dep.status != "completed" for dep in records)
    ]
    if blocked:
        risks.append(
            Risk(
                id="blocked_dependencies",
                type="dependency",
                severity="medium",
                description=f"{len(blocked)} milestone(s) waiting on dependencies",
                impact="Progress may be delayed",
                mitigation="Complete prerequisite milestones first",
                count=len(blocked),
            )
        )

    return risks
