"""
Tests for progress aggregation.

Covers:
- Milestone percentage from task completion
- Weighted booking percentage
- Weight and percentage clamping
- Recomputation ignores stale cached percentages
- Batch aggregation with orphaned rows
"""

import logging

import pytest

from booking_tracker.config import WEIGHT_FLOOR
from booking_tracker.domain.progress.aggregator import (
    aggregate_batch,
    aggregate_booking,
    clamp_percentage,
    clamp_weight,
    compute_booking_progress,
    compute_milestone_progress,
    round_half_up,
)


def tasks(*statuses, milestone_id=1):
    return [{"id": i, "milestone_id": milestone_id, "status": s} for i, s in enumerate(statuses, 1)]


class TestRoundHalfUp:
    def test_half_goes_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(66.5) == 67

    def test_below_half_goes_down(self):
        assert round_half_up(33.333) == 33


class TestMilestoneProgress:
    def test_empty_task_list_is_zero(self):
        assert compute_milestone_progress([]) == 0

    def test_all_completed(self):
        assert compute_milestone_progress(tasks("completed", "completed")) == 100

    def test_partial_rounds_half_up(self):
        # 1 of 8 = 12.5%
        statuses = ["completed"] + ["pending"] * 7
        assert compute_milestone_progress(tasks(*statuses)) == 13

    def test_in_progress_tasks_do_not_count(self):
        assert compute_milestone_progress(tasks("completed", "in_progress", "pending")) == 33

    def test_status_case_is_normalized(self):
        assert compute_milestone_progress(tasks("COMPLETED", " Completed ")) == 100


class TestBookingProgress:
    def test_empty_list_is_zero(self):
        assert compute_booking_progress([]) == 0

    def test_weighted_average(self):
        milestones = [
            {"id": 1, "weight": 3, "progress_percentage": 100},
            {"id": 2, "weight": 1, "progress_percentage": 0},
        ]
        assert compute_booking_progress(milestones) == 75

    def test_equal_weights(self):
        milestones = [
            {"id": 1, "weight": 1, "progress_percentage": 50},
            {"id": 2, "weight": 1, "progress_percentage": 100},
        ]
        assert compute_booking_progress(milestones) == 75

    def test_result_stays_in_range(self):
        milestones = [
            {"id": 1, "weight": 1, "progress_percentage": 250},
            {"id": 2, "weight": 1, "progress_percentage": -40},
        ]
        result = compute_booking_progress(milestones)
        assert 0 <= result <= 100
        assert result == 50

    def test_null_and_negative_weights_use_floor(self):
        milestones = [
            {"id": 1, "weight": None, "progress_percentage": 100},
            {"id": 2, "weight": -5, "progress_percentage": 100},
        ]
        assert compute_booking_progress(milestones) == 100

    def test_floor_weight_barely_moves_average(self):
        milestones = [
            {"id": 1, "weight": -3, "progress_percentage": 100},
            {"id": 2, "weight": 1, "progress_percentage": 0},
        ]
        assert compute_booking_progress(milestones) == 1

    def test_all_zero_weights_give_zero(self):
        milestones = [
            {"id": 1, "weight": 0, "progress_percentage": 50},
            {"id": 2, "weight": 0, "progress_percentage": 100},
        ]
        assert compute_booking_progress(milestones) == 0

    def test_zero_weight_milestone_does_not_count(self):
        milestones = [
            {"id": 1, "weight": 0, "progress_percentage": 100},
            {"id": 2, "weight": 1, "progress_percentage": 20},
        ]
        assert compute_booking_progress(milestones) == 20

    def test_garbage_weight_does_not_crash(self):
        milestones = [{"id": 1, "weight": "heavy", "progress_percentage": 40}]
        assert compute_booking_progress(milestones) == 40

    def test_missing_percentage_counts_as_zero(self):
        milestones = [
            {"id": 1, "weight": 1, "progress_percentage": None},
            {"id": 2, "weight": 1, "progress_percentage": 100},
        ]
        assert compute_booking_progress(milestones) == 50


class TestClamping:
    @pytest.mark.parametrize("weight", [None, -1, -0.5])
    def test_invalid_weight_clamped(self, weight):
        assert clamp_weight(weight) == WEIGHT_FLOOR

    def test_valid_weight_kept(self):
        assert clamp_weight(2.5) == 2.5

    def test_zero_weight_kept(self):
        assert clamp_weight(0) == 0

    def test_percentage_clamped(self):
        assert clamp_percentage(None) == 0
        assert clamp_percentage(-1) == 0
        assert clamp_percentage(101) == 100
        assert clamp_percentage(42) == 42


class TestAggregateBooking:
    def test_recomputes_from_tasks_not_cache(self):
        milestones = [
            {"id": 1, "weight": 1, "progress_percentage": 0, "order_index": 0},
            {"id": 2, "weight": 1, "progress_percentage": 100, "order_index": 1},
        ]
        all_tasks = tasks("completed", "completed", milestone_id=1) + [
            {"id": 10, "milestone_id": 2, "status": "pending"}
        ]

        result = aggregate_booking(milestones, all_tasks, booking_id=7)

        assert result.booking_id == 7
        assert [m.progress_percentage for m in result.milestones] == [100, 0]
        assert result.progress_percentage == 50

    def test_milestone_without_tasks_is_zero(self):
        milestones = [{"id": 1, "weight": 1, "progress_percentage": 80}]
        result = aggregate_booking(milestones, [])
        assert result.milestones[0].progress_percentage == 0
        assert result.progress_percentage == 0

    def test_orphaned_tasks_counted_and_skipped(self):
        milestones = [{"id": 1, "weight": 1}]
        all_tasks = tasks("completed", milestone_id=1) + [{"id": 99, "milestone_id": 42, "status": "pending"}]

        result = aggregate_booking(milestones, all_tasks)

        assert result.orphaned_tasks == 1
        assert result.progress_percentage == 100

    def test_milestones_ordered_by_order_index(self):
        milestones = [
            {"id": 1, "title": "Second", "order_index": 2},
            {"id": 2, "title": "First", "order_index": 1},
        ]
        result = aggregate_booking(milestones, [])
        assert [m.title for m in result.milestones] == ["First", "Second"]

    def test_all_zero_weights_give_zero(self):
        milestones = [{"id": 1, "weight": 0}]
        result = aggregate_booking(milestones, tasks("completed"))
        assert result.milestones[0].progress_percentage == 100
        assert result.progress_percentage == 0

    def test_invalid_weight_logged_once(self, caplog):
        milestones = [{"id": 1, "weight": -2}]
        with caplog.at_level(logging.WARNING):
            result = aggregate_booking(milestones, tasks("completed"))
        warnings = [r for r in caplog.records if "invalid weight" in r.getMessage()]
        assert len(warnings) == 1
        assert result.milestones[0].weight == WEIGHT_FLOOR
        assert result.progress_percentage == 100

    def test_task_counts_reported(self):
        milestones = [{"id": 1}]
        result = aggregate_booking(milestones, tasks("completed", "pending", "pending"))
        assert result.milestones[0].total_tasks == 3
        assert result.milestones[0].completed_tasks == 1

    def test_idempotent(self):
        milestones = [{"id": 1, "weight": 2}, {"id": 2, "weight": 1}]
        all_tasks = tasks("completed", "pending", milestone_id=1) + tasks("completed", milestone_id=2)
        first = aggregate_booking(milestones, all_tasks)
        second = aggregate_booking(milestones, all_tasks)
        assert first == second


class TestAggregateBatch:
    def test_groups_by_booking(self):
        bookings = [{"id": 1}, {"id": 2}]
        milestones = [{"id": 10, "booking_id": 1}, {"id": 20, "booking_id": 2}]
        all_tasks = tasks("completed", milestone_id=10) + [{"id": 5, "milestone_id": 20, "status": "pending"}]

        result = aggregate_batch(bookings, milestones, all_tasks)

        assert result.bookings[1].progress_percentage == 100
        assert result.bookings[2].progress_percentage == 0
        assert result.failed_booking_ids == []

    def test_referential_gaps_counted(self):
        bookings = [{"id": 1}]
        milestones = [
            {"id": 10, "booking_id": 1},
            {"id": 11, "booking_id": 999},  # booking deleted
        ]
        all_tasks = [
            {"id": 1, "milestone_id": 10, "status": "completed"},
            {"id": 2, "milestone_id": 11, "status": "completed"},  # belongs to the orphaned milestone
            {"id": 3, "milestone_id": 12, "status": "completed"},  # milestone gone
        ]

        result = aggregate_batch(bookings, milestones, all_tasks)

        assert result.orphaned_milestones == 1
        assert result.orphaned_tasks == 2
        assert list(result.bookings) == [1]
        assert result.bookings[1].progress_percentage == 100

    def test_booking_without_milestones(self):
        result = aggregate_batch([{"id": 3}], [], [])
        assert result.bookings[3].progress_percentage == 0
