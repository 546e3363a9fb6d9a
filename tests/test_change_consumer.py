"""
Tests for the change-event consumer.

Covers:
- Resolving the owning booking for each entity type
- Recomputation on change, identical to the on-demand path
- Deletes carrying a booking hint
- Malformed and failing events do not stop the batch
- Draining an asyncio queue
"""

import asyncio

import pytest

from booking_tracker.domain.progress.schemas import ChangeEvent
from booking_tracker.domain.progress.service import ProgressService
from booking_tracker.models import Booking, BookingDisplayStatusView, Milestone, Task
from booking_tracker.services.change_consumer import ChangeConsumer, resolve_booking_id


@pytest.fixture
def project(make_booking, make_milestone, make_task):
    booking = make_booking(status="approved")
    milestone = make_milestone(booking, weight=1)
    first = make_task(milestone, status="completed")
    second = make_task(milestone, status="pending")
    return booking, milestone, first, second


class TestResolveBookingId:
    def test_each_entity_type(self, db, project, make_invoice):
        booking, milestone, task, _ = project
        invoice = make_invoice(booking.id)

        assert resolve_booking_id(db, ChangeEvent(entity_type="booking", entity_id=booking.id)) == booking.id
        assert resolve_booking_id(db, ChangeEvent(entity_type="milestone", entity_id=milestone.id)) == booking.id
        assert resolve_booking_id(db, ChangeEvent(entity_type="task", entity_id=task.id)) == booking.id
        assert resolve_booking_id(db, ChangeEvent(entity_type="invoice", entity_id=invoice.id)) == booking.id

    def test_delete_uses_hint(self, db):
        event = ChangeEvent(entity_type="task", entity_id=77, change_kind="delete", booking_id=5)
        assert resolve_booking_id(db, event) == 5

    def test_unknown_row_without_hint(self, db):
        assert resolve_booking_id(db, ChangeEvent(entity_type="task", entity_id=77)) is None


class TestChangeEvent:
    def test_normalizes_case(self):
        event = ChangeEvent(entity_type=" Task ", entity_id=1, change_kind="UPDATE")
        assert event.entity_type == "task"
        assert event.change_kind == "update"

    def test_rejects_unknown_entity(self):
        with pytest.raises(ValueError):
            ChangeEvent(entity_type="payment", entity_id=1)


class TestChangeConsumer:
    def test_task_update_recomputes_booking(self, db, session_factory, project):
        booking, _, _, second = project
        second.status = "completed"
        db.commit()

        report = ChangeConsumer(session_factory).consume(
            [{"entity_type": "task", "entity_id": second.id, "change_kind": "update"}]
        )

        assert report.processed == 1
        assert report.recomputed_booking_ids == [booking.id]
        db.expire_all()
        assert db.get(Booking, booking.id).project_progress == 100

    def test_matches_on_demand_path(self, db, session_factory, project):
        booking, milestone, _, _ = project
        ChangeConsumer(session_factory).consume([{"entity_type": "milestone", "entity_id": milestone.id}])
        db.expire_all()
        stored = db.get(Booking, booking.id).project_progress

        on_demand = ProgressService(db).recompute_booking(booking.id, persist=False)
        assert stored == on_demand.progress_percentage == 50

    def test_task_delete_with_hint(self, db, session_factory, project):
        booking, _, _, second = project
        task_id = second.id
        db.delete(second)
        db.commit()

        report = ChangeConsumer(session_factory).consume(
            [{"entity_type": "task", "entity_id": task_id, "change_kind": "delete", "booking_id": booking.id}]
        )

        assert report.processed == 1
        db.expire_all()
        assert db.get(Booking, booking.id).project_progress == 100

    def test_booking_delete_removes_view_row(self, db, session_factory, project):
        booking, _, _, _ = project
        consumer = ChangeConsumer(session_factory)
        consumer.consume([{"entity_type": "booking", "entity_id": booking.id}])
        assert db.query(BookingDisplayStatusView).count() == 1

        booking_id = booking.id
        db.delete(booking)
        db.commit()
        consumer.consume([{"entity_type": "booking", "entity_id": booking_id, "change_kind": "delete"}])

        assert db.query(BookingDisplayStatusView).count() == 0
        assert db.query(Milestone).count() == 0
        assert db.query(Task).count() == 0

    def test_bad_events_do_not_stop_batch(self, session_factory, project, monkeypatch):
        booking, milestone, _, _ = project
        consumer = ChangeConsumer(session_factory)
        real_handle = consumer.handle

        def flaky(event):
            if event.entity_id == 999:
                raise RuntimeError("store unavailable")
            return real_handle(event)

        monkeypatch.setattr(consumer, "handle", flaky)

        report = consumer.consume(
            [
                {"entity_type": "payment", "entity_id": 1},
                {"entity_type": "milestone", "entity_id": 999, "booking_id": booking.id},
                {"entity_type": "task", "entity_id": 12345},
                {"entity_type": "milestone", "entity_id": milestone.id},
            ]
        )

        assert report.skipped == 2
        assert report.failed == 1
        assert report.processed == 1

    def test_run_drains_queue(self, session_factory, project):
        booking, milestone, _, _ = project
        consumer = ChangeConsumer(session_factory)

        async def drive():
            queue = asyncio.Queue()
            await queue.put({"entity_type": "booking", "entity_id": booking.id})
            await queue.put({"entity_type": "milestone", "entity_id": milestone.id})
            await queue.put(None)
            return await consumer.run(queue)

        report = asyncio.run(drive())
        assert report.processed == 2
        assert report.recomputed_booking_ids == [booking.id, booking.id]
