"""Tests for goal progress, week anchoring and tracker totals."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from bucketwise.engine.goals import goal_progress
from bucketwise.engine.trackers import tracker_totals, weekly_tracker_breakdown
from bucketwise.engine.weeks import (
    day_of_week,
    is_in_week,
    most_recent_dow,
    next_dow,
    week_end,
    week_start_for_income_entry,
)
from bucketwise.models.budget import BucketCollection, CollectionKind, TrackerBucket

FRIDAY = 5
THURSDAY = 4


class TestGoalProgress:
    """Tests for progress ring values."""

    def test_over_target_is_clamped(self):
        """Target 500, current 625 -> 100%, nothing remaining."""
        progress = goal_progress(Decimal("625"), Decimal("500"))
        assert progress.percent == Decimal("100.00")
        assert progress.remaining == Decimal("0")

    def test_partial(self):
        progress = goal_progress("125", 500)
        assert progress.percent == Decimal("25.00")
        assert progress.remaining == Decimal("375.00")

    def test_percent_rounded_to_two_places(self):
        assert goal_progress(1, 3).percent == Decimal("33.33")

    def test_zero_target(self):
        progress = goal_progress(50, 0)
        assert progress.percent == Decimal("0")
        assert progress.remaining == Decimal("0")

    def test_negative_current(self):
        """Adjustments can push a tracker below zero."""
        progress = goal_progress("-20", "100")
        assert progress.percent == Decimal("0")
        assert progress.remaining == Decimal("120.00")


class TestWeeks:
    """Tests for pay-schedule week anchoring (0 = Sunday)."""

    def test_day_of_week_is_sunday_based(self):
        assert day_of_week(date(2024, 1, 7)) == 0   # Sunday
        assert day_of_week(date(2024, 1, 5)) == 5   # Friday
        assert day_of_week(date(2024, 1, 6)) == 6   # Saturday

    def test_week_bounds(self):
        start = date(2024, 1, 5)
        assert week_end(start) == date(2024, 1, 11)
        assert is_in_week(date(2024, 1, 11), start)
        assert not is_in_week(date(2024, 1, 12), start)
        assert not is_in_week(date(2024, 1, 4), start)

    def test_most_recent_and_next(self):
        wednesday = date(2024, 1, 10)
        assert most_recent_dow(wednesday, FRIDAY) == date(2024, 1, 5)
        assert next_dow(wednesday, FRIDAY) == date(2024, 1, 12)

    def test_today_counts(self):
        friday = date(2024, 1, 5)
        assert most_recent_dow(friday, FRIDAY) == friday
        assert next_dow(friday, FRIDAY) == friday

    def test_notice_day_uses_next_payday(self):
        thursday = date(2024, 1, 11)
        assert week_start_for_income_entry(thursday, FRIDAY, THURSDAY) == date(2024, 1, 12)

    def test_other_days_use_recent_payday(self):
        saturday = date(2024, 1, 13)
        assert week_start_for_income_entry(saturday, FRIDAY, THURSDAY) == date(2024, 1, 12)
        assert week_start_for_income_entry(date(2024, 1, 11), FRIDAY, None) == date(2024, 1, 5)


def _row(label: str, amount: str, week: date, created: datetime, **kwargs) -> BucketCollection:
    return BucketCollection(
        user_id="user-1",
        week_start=week,
        bucket=label,
        amount=Decimal(amount),
        created_at=created,
        **kwargs,
    )


class TestTrackers:
    """Tests for tracker totals built from collection rows."""

    @pytest.fixture
    def rows(self):
        w1, w2 = date(2024, 1, 5), date(2024, 1, 12)
        return [
            _row("save", "15.00", w1, datetime(2024, 1, 11, 9)),
            _row("wants", "4.00", w1, datetime(2024, 1, 11, 10)),
            _row("student loans (gift)", "100.00", w2, datetime(2024, 1, 13, 9),
                 kind=CollectionKind.ADJUSTMENT),
            _row("save (oops)", "-5.00", w2, datetime(2024, 1, 13, 10),
                 kind=CollectionKind.ADJUSTMENT),
            _row("emergency", "10.00", w2, datetime(2024, 1, 13, 11),
                 undone_at=datetime(2024, 1, 13, 12)),
        ]

    def test_totals(self, rows):
        totals = tracker_totals(rows)
        assert totals == {
            TrackerBucket.SAVINGS: Decimal("10.00"),
            TrackerBucket.STUDENT_LOANS: Decimal("100.00"),
            TrackerBucket.EMERGENCY: Decimal("0"),
            TrackerBucket.EXTRA_MONEY: Decimal("4.00"),
        }

    def test_empty_has_every_tracker(self):
        assert set(tracker_totals([])) == set(TrackerBucket)

    def test_weekly_breakdown_newest_first(self, rows):
        weeks = weekly_tracker_breakdown(rows)
        assert [w.week_start for w in weeks] == [date(2024, 1, 12), date(2024, 1, 5)]

        latest = weeks[0]
        assert [r.bucket for r in latest.rows] == ["save (oops)", "student loans (gift)"]
        assert latest.sums[TrackerBucket.SAVINGS] == Decimal("-5.00")
        assert latest.sums[TrackerBucket.EMERGENCY] == Decimal("0")
