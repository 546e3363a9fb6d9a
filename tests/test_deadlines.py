"""
Tests for overdue detection, completion estimates and schedule risks.
"""

from datetime import timedelta

from booking_tracker.domain.deadlines.monitor import (
    count_overdue,
    current_milestone,
    detect_risks,
    estimate_completion,
    is_overdue,
)


class TestIsOverdue:
    def test_past_due_in_progress(self, now):
        item = {"due_date": now - timedelta(days=1), "status": "in_progress"}
        assert is_overdue(item, now) is True

    def test_past_due_completed(self, now):
        item = {"due_date": now - timedelta(days=1), "status": "completed"}
        assert is_overdue(item, now) is False

    def test_no_due_date(self, now):
        assert is_overdue({"status": "pending"}, now) is False

    def test_future_due_date(self, now):
        assert is_overdue({"due_date": now + timedelta(hours=1), "status": "pending"}, now) is False

    def test_iso_string_due_date(self, now):
        item = {"due_date": (now - timedelta(days=2)).isoformat() + "Z", "status": "pending"}
        assert is_overdue(item, now) is True

    def test_count_overdue(self, now):
        items = [
            {"due_date": now - timedelta(days=1), "status": "pending"},
            {"due_date": now - timedelta(days=1), "status": "completed"},
            {"due_date": now + timedelta(days=1), "status": "pending"},
        ]
        assert count_overdue(items, now) == 1


class TestEstimateCompletion:
    def test_all_completed_is_none(self, now):
        milestones = [{"id": 1, "status": "completed"}]
        assert estimate_completion(milestones, now) is None

    def test_empty_is_none(self, now):
        assert estimate_completion([], now) is None

    def test_defaults_to_seven_days_each(self, now):
        milestones = [{"id": 1, "status": "pending"}, {"id": 2, "status": "in_progress"}]
        assert estimate_completion(milestones, now) == now + timedelta(days=14)

    def test_uses_average_completed_duration(self, now):
        start = now - timedelta(days=30)
        milestones = [
            {"id": 1, "status": "completed", "created_at": start, "updated_at": start + timedelta(days=2)},
            {"id": 2, "status": "completed", "created_at": start, "updated_at": start + timedelta(days=4)},
            {"id": 3, "status": "pending"},
        ]
        assert estimate_completion(milestones, now) == now + timedelta(days=3)


class TestCurrentMilestone:
    def test_prefers_in_progress(self):
        milestones = [
            {"id": 1, "title": "A", "status": "pending", "order_index": 0},
            {"id": 2, "title": "B", "status": "in_progress", "order_index": 1},
        ]
        assert current_milestone(milestones).title == "B"

    def test_falls_back_to_first_pending(self):
        milestones = [
            {"id": 1, "title": "A", "status": "completed", "order_index": 0},
            {"id": 2, "title": "C", "status": "pending", "order_index": 2},
            {"id": 3, "title": "B", "status": "pending", "order_index": 1},
        ]
        assert current_milestone(milestones).title == "B"

    def test_none_when_all_done(self):
        assert current_milestone([{"id": 1, "status": "completed"}]) is None


class TestDetectRisks:
    def test_no_risks(self, now):
        assert detect_risks([{"id": 1, "status": "completed"}], now) == []

    def test_overdue_and_blocked(self, now):
        milestones = [
            {"id": 1, "status": "in_progress", "order_index": 0, "due_date": now - timedelta(days=1)},
            {"id": 2, "status": "pending", "order_index": 1},
        ]
        risks = {r.id: r for r in detect_risks(milestones, now)}
        assert risks["overdue_milestones"].severity == "high"
        assert risks["overdue_milestones"].count == 1
        assert risks["blocked_dependencies"].count == 1
