"""Savings tracker totals built from collection rows."""

from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal

from bucketwise.engine.classifier import tracker_for_label
from bucketwise.engine.money import round_money
from bucketwise.models.budget import BucketCollection, TrackerBucket
from bucketwise.models.results import TrackerWeek

ZERO = Decimal("0")


def _empty_sums() -> dict[TrackerBucket, Decimal]:
    return {tracker: ZERO for tracker in TrackerBucket}


def tracker_totals(collections: Iterable[BucketCollection]) -> dict[TrackerBucket, Decimal]:
    """Running total per tracker across all weeks, undone rows excluded."""
    totals = _empty_sums()
    for row in collections:
        if not row.is_active:
            continue
        tracker = tracker_for_label(row.bucket)
        totals[tracker] = round_money(totals[tracker] + row.amount)
    return totals


def weekly_tracker_breakdown(collections: Iterable[BucketCollection]) -> list[TrackerWeek]:
    """Active rows grouped by week, newest week first."""
    by_week: dict = defaultdict(list)
    for row in collections:
        if row.is_active:
            by_week[row.week_start].append(row)

    weeks = []
    for week_start in sorted(by_week, reverse=True):
        rows = sorted(by_week[week_start], key=lambda r: r.created_at, reverse=True)
        weeks.append(TrackerWeek(
            week_start=week_start,
            rows=rows,
            sums=tracker_totals(rows),
        ))
    return weeks
