"""Progress service - Per-booking recomputation pipeline"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...shared.validators import utcnow
from ..deadlines.monitor import count_overdue, current_milestone, detect_risks, estimate_completion, is_overdue
from ..records import normalize_booking, normalize_milestone, normalize_task
from ..status.deriver import derive_display_status, describe_status
from ..summary.repository import SummaryRepository
from .aggregator import aggregate_booking, round_half_up
from .repository import ProgressRepository
from .schemas import BookingProgressResponse, MilestoneProgressResponse, ProgressAnalytics

logger = logging.getLogger(__name__)


class ProgressService:
    """
    Service layer for booking progress.

    recompute_booking always reads current child state and recomputes from
    scratch, so running it again, or out of order, converges on the same
    stored values.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = ProgressRepository()
        self.summary_repo = SummaryRepository()

    def recompute_booking(
        self,
        booking_id: int,
        persist: bool = True,
        now: Optional[datetime] = None,
    ) -> Optional[BookingProgressResponse]:
        """
        Run aggregator + deriver for one booking and write the results back.

        Returns None when the booking no longer exists.
        """
        now = now or utcnow()
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            logger.info(f"ℹ️ Booking {booking_id} not found, nothing to recompute")
            return None

        milestone_rows = self.repo.get_milestones(self.db, booking_id)
        task_rows = self.repo.get_tasks(self.db, [m.id for m in milestone_rows])
        invoice_rows = self.repo.get_invoices(self.db, booking_id)

        milestones = [normalize_milestone(m) for m in milestone_rows]
        tasks = [normalize_task(t) for t in task_rows]
        progress = aggregate_booking(milestones, tasks, booking_id=booking_id)
        display_status = derive_display_status(normalize_booking(booking), invoice_rows)

        persisted = False
        if persist:
            persisted = self.repo.save_progress(
                self.db,
                booking,
                milestone_rows,
                {m.milestone_id: m.progress_percentage for m in progress.milestones},
                progress.progress_percentage,
                now,
            )
            self.summary_repo.refresh_display_status_view(self.db, [booking_id])
            if persisted:
                logger.info(
                    f"✅ Booking {booking_id} progress → {progress.progress_percentage}% ({display_status})"
                )

        details = {m.milestone_id: m for m in progress.milestones}
        milestone_views = [
            MilestoneProgressResponse(
                id=m.id,
                title=m.title,
                status=m.status,
                weight=details[m.id].weight,
                progress_percentage=details[m.id].progress_percentage,
                order_index=m.order_index,
                due_date=m.due_date,
                is_overdue=is_overdue(m, now),
                total_tasks=details[m.id].total_tasks,
                completed_tasks=details[m.id].completed_tasks,
            )
            for m in milestones
        ]

        current = current_milestone(milestones)
        return BookingProgressResponse(
            booking_id=booking_id,
            progress_percentage=progress.progress_percentage,
            display_status=display_status,
            status_description=describe_status(
                display_status,
                progress.progress_percentage,
                current.title if current else None,
            ),
            milestones=milestone_views,
            overdue_milestones=count_overdue(milestones, now),
            overdue_tasks=count_overdue(tasks, now),
            estimated_completion=estimate_completion(milestones, now),
            risks=detect_risks(milestones, now),
            analytics=self.build_analytics(milestone_views, tasks, now),
            orphaned_tasks=progress.orphaned_tasks,
            persisted=persisted,
        )

    @staticmethod
    def build_analytics(
        milestones: list[MilestoneProgressResponse],
        tasks: list,
        now: datetime,
    ) -> ProgressAnalytics:
        """Counts and hour totals over a booking's milestones and tasks"""
        total_milestones = len(milestones)
        return ProgressAnalytics(
            total_milestones=total_milestones,
            completed_milestones=sum(1 for m in milestones if m.status == "completed"),
            in_progress_milestones=sum(1 for m in milestones if m.status == "in_progress"),
            pending_milestones=sum(1 for m in milestones if m.status == "pending"),
            total_tasks=len(tasks),
            completed_tasks=sum(1 for t in tasks if t.status == "completed"),
            in_progress_tasks=sum(1 for t in tasks if t.status == "in_progress"),
            pending_tasks=sum(1 for t in tasks if t.status == "pending"),
            overdue_tasks=count_overdue(tasks, now),
            total_estimated_hours=sum(t.estimated_hours for t in tasks),
            total_actual_hours=sum(t.actual_hours for t in tasks),
            avg_milestone_progress=(
                round_half_up(sum(m.progress_percentage for m in milestones) / total_milestones)
                if total_milestones
                else 0
            ),
        )

    def get_booking_progress(self, booking_id: int, persist: bool = True) -> BookingProgressResponse:
        """Progress view for one booking; 404 when it does not exist"""
        result = self.recompute_booking(booking_id, persist=persist)
        if result is None:
            raise HTTPException(status_code=404, detail="Booking not found")
        return result
