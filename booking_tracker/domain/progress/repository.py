"""Progress repository - Database operations for bookings, milestones and tasks"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Booking, Milestone, Task
from ...models_invoice import Invoice


class ProgressRepository:
    """Repository for work-breakdown database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_milestone(db: Session, milestone_id: int) -> Optional[Milestone]:
        return db.query(Milestone).filter(Milestone.id == milestone_id).first()

    @staticmethod
    def get_task(db: Session, task_id: int) -> Optional[Task]:
        return db.query(Task).filter(Task.id == task_id).first()

    @staticmethod
    def get_invoice(db: Session, invoice_id: int) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.id == invoice_id).first()

    @staticmethod
    def get_milestones(db: Session, booking_id: int) -> list[Milestone]:
        """Get all milestones for a booking, in display order"""
        return (
            db.query(Milestone)
            .filter(Milestone.booking_id == booking_id)
            .order_by(Milestone.order_index.asc(), Milestone.id.asc())
            .all()
        )

    @staticmethod
    def get_tasks(db: Session, milestone_ids: list[int]) -> list[Task]:
        if not milestone_ids:
            return []
        return db.query(Task).filter(Task.milestone_id.in_(milestone_ids)).all()

    @staticmethod
    def get_invoices(db: Session, booking_id: int) -> list[Invoice]:
        return db.query(Invoice).filter(Invoice.booking_id == booking_id).all()

    @staticmethod
    def save_progress(
        db: Session,
        booking: Booking,
        milestones: list[Milestone],
        milestone_percentages: dict[int, int],
        booking_percentage: int,
        now: datetime,
    ) -> bool:
        """
        Write recomputed percentages back, bumping updated_at on changed rows only.
        Returns True when anything was written.
        """
        changed = False
        for milestone in milestones:
            pct = milestone_percentages.get(milestone.id)
            if pct is not None and milestone.progress_percentage != pct:
                milestone.progress_percentage = pct
                milestone.updated_at = now
                changed = True

        if booking.project_progress != booking_percentage:
            booking.project_progress = booking_percentage
            booking.updated_at = now
            changed = True

        if changed:
            db.commit()
        return changed
