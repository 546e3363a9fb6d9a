"""Progress domain schemas - Pydantic models for responses"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..deadlines.monitor import Risk

ENTITY_TYPES = {"booking", "milestone", "task", "invoice"}
CHANGE_KINDS = {"insert", "update", "delete"}


class MilestoneProgressResponse(BaseModel):
    """One milestone as shown in the booking progress view"""

    id: Optional[int] = None
    title: Optional[str] = None
    status: str
    weight: float
    progress_percentage: int
    order_index: int = 0
    due_date: Optional[datetime] = None
    is_overdue: bool = False
    total_tasks: int = 0
    completed_tasks: int = 0


class ProgressAnalytics(BaseModel):
    """Task and milestone counts for a single booking"""

    total_milestones: int = 0
    completed_milestones: int = 0
    in_progress_milestones: int = 0
    pending_milestones: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    pending_tasks: int = 0
    overdue_tasks: int = 0
    total_estimated_hours: float = 0.0
    total_actual_hours: float = 0.0
    avg_milestone_progress: int = 0


class BookingProgressResponse(BaseModel):
    """Result of running the per-booking pipeline"""

    booking_id: int
    progress_percentage: int
    display_status: str
    status_description: str
    milestones: list[MilestoneProgressResponse] = Field(default_factory=list)
    overdue_milestones: int = 0
    overdue_tasks: int = 0
    estimated_completion: Optional[datetime] = None
    risks: list[Risk] = Field(default_factory=list)
    analytics: ProgressAnalytics = Field(default_factory=ProgressAnalytics)
    orphaned_tasks: int = 0
    persisted: bool = False


class ChangeEvent(BaseModel):
    """Change notification from the store's realtime channel"""

    entity_type: str  # booking, milestone, task, invoice
    entity_id: int
    change_kind: str = "update"  # insert, update, delete
    booking_id: Optional[int] = None  # Required for deletes, the row is already gone

    @field_validator("entity_type")
    @classmethod
    def validate_entity_type(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ENTITY_TYPES:
            raise ValueError(f"entity_type must be one of {sorted(ENTITY_TYPES)}")
        return v

    @field_validator("change_kind")
    @classmethod
    def validate_change_kind(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in CHANGE_KINDS:
            raise ValueError(f"change_kind must be one of {sorted(CHANGE_KINDS)}")
        return v
