"""
Change-event consumer for realtime progress updates.

The store publishes {entity_type, entity_id, change_kind} events whenever a
booking, milestone, task or invoice changes. Each event re-runs the
per-booking pipeline for just the owning booking, using the same
ProgressService.recompute_booking the on-demand API uses. Events may arrive
out of order; recomputation always reads fresh state, so the order does not
matter.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session, sessionmaker

from ..database import SessionLocal
from ..domain.progress.repository import ProgressRepository
from ..domain.progress.schemas import ChangeEvent
from ..domain.progress.service import ProgressService
from ..domain.summary.repository import SummaryRepository

logger = logging.getLogger(__name__)


class ConsumerReport(BaseModel):
    """Outcome of consuming a batch of events"""

    processed: int = 0
    skipped: int = 0
    failed: int = 0
    recomputed_booking_ids: list[int] = Field(default_factory=list)


def resolve_booking_id(db: Session, event: ChangeEvent) -> Optional[int]:
    """
    Find the booking an event belongs to from current store state.

    Deletes fall back to the booking_id carried by the event, since the row
    itself is gone.
    """
    repo = ProgressRepository()

    if event.entity_type == "booking":
        return event.entity_id

    if event.change_kind == "delete":
        return event.booking_id

    if event.entity_type == "milestone":
        milestone = repo.get_milestone(db, event.entity_id)
        return milestone.booking_id if milestone else event.booking_id

    if event.entity_type == "task":
        task = repo.get_task(db, event.entity_id)
        if task is None:
            return event.booking_id
        milestone = repo.get_milestone(db, task.milestone_id)
        return milestone.booking_id if milestone else event.booking_id

    if event.entity_type == "invoice":
        invoice = repo.get_invoice(db, event.entity_id)
        return invoice.booking_id if invoice else event.booking_id

    return None


class ChangeConsumer:
    """
    Consumes change events and recomputes the affected booking.

    Holds no state between events beyond its session factory; every event
    gets its own session.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def handle(self, event: ChangeEvent) -> Optional[int]:
        """
        Process one event. Returns the recomputed booking id, or None when the
        event could not be tied to a booking.
        """
        db = self.session_factory()
        try:
            booking_id = resolve_booking_id(db, event)
            if booking_id is None:
                logger.warning(
                    f"⚠️ Cannot resolve booking for {event.entity_type} {event.entity_id} "
                    f"({event.change_kind}), skipping"
                )
                return None

            result = ProgressService(db).recompute_booking(booking_id)
            if result is None:
                # Booking deleted: drop its view row so summaries stop counting it
                SummaryRepository.refresh_display_status_view(db, [booking_id])
            logger.debug(
                f"🔄 {event.entity_type} {event.entity_id} {event.change_kind} → booking {booking_id}"
            )
            return booking_id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def consume(self, events: Iterable[Any]) -> ConsumerReport:
        """Consume a batch of events; one bad event never stops the rest"""
        report = ConsumerReport()
        for raw in events:
            try:
                event = raw if isinstance(raw, ChangeEvent) else ChangeEvent.model_validate(raw)
            except ValidationError as e:
                report.skipped += 1
                logger.warning(f"⚠️ Ignoring malformed change event {raw!r}: {e}")
                continue

            try:
                booking_id = self.handle(event)
            except Exception as e:
                report.failed += 1
                logger.error(f"❌ Failed to process {event.entity_type} {event.entity_id}: {e}")
                continue

            if booking_id is None:
                report.skipped += 1
            else:
                report.processed += 1
                report.recomputed_booking_ids.append(booking_id)

        return report

    async def run(self, queue: asyncio.Queue) -> ConsumerReport:
        """
        Drain events from an asyncio queue until a None sentinel arrives.
        """
        report = ConsumerReport()
        while True:
            raw = await queue.get()
            try:
                if raw is None:
                    break
                batch = await asyncio.to_thread(self.consume, [raw])
                report.processed += batch.processed
                report.skipped += batch.skipped
                report.failed += batch.failed
                report.recomputed_booking_ids.extend(batch.recomputed_booking_ids)
            finally:
                queue.task_done()
        logger.info(
            f"📊 Change consumer stopped: processed={report.processed}, "
            f"skipped={report.skipped}, failed={report.failed}"
        )
        return report
