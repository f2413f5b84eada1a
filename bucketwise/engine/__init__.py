"""
Budget Allocation & Reconciliation Engine

Pure functions only: no storage, no globals. Every function takes the
rows it needs and returns derived values.
"""

from bucketwise.engine.money import (
    from_cents,
    is_positive_amount,
    round_half_up,
    round_money,
    to_cents,
    to_decimal,
)
from bucketwise.engine.allocation import (
    ALLOCATIONS,
    BUCKETS,
    REMAINDER_BUCKET,
    Allocation,
    build_budget_rows,
    split_income,
)
from bucketwise.engine.classifier import (
    LOCKED_DELIMITER,
    StoredCategory,
    make_stored_category,
    mapping_dict,
    relabel_category,
    resolve_bucket,
    split_stored_category,
    tracker_for_label,
    tracker_label,
    unmapped_categories,
)
from bucketwise.engine.ledger import aggregate_week, group_items_by_bucket
from bucketwise.engine.transfers import (
    adjustment_amount,
    available_from_bucket,
    collected_buckets,
    latest_active_collection,
    plan_collection,
    plan_cover_transfer,
)
from bucketwise.engine.goals import goal_progress
from bucketwise.engine.weeks import (
    day_of_week,
    is_in_week,
    most_recent_dow,
    next_dow,
    week_end,
    week_start_for_income_entry,
)
from bucketwise.engine.trackers import tracker_totals, weekly_tracker_breakdown

__all__ = [
    # Money
    "from_cents",
    "is_positive_amount",
    "round_half_up",
    "round_money",
    "to_cents",
    "to_decimal",
    # Allocation
    "ALLOCATIONS",
    "BUCKETS",
    "REMAINDER_BUCKET",
    "Allocation",
    "build_budget_rows",
    "split_income",
    # Classification
    "LOCKED_DELIMITER",
    "StoredCategory",
    "make_stored_category",
    "mapping_dict",
    "relabel_category",
    "resolve_bucket",
    "split_stored_category",
    "tracker_for_label",
    "tracker_label",
    "unmapped_categories",
    # Ledger
    "aggregate_week",
    "group_items_by_bucket",
    # Transfers & collections
    "adjustment_amount",
    "available_from_bucket",
    "collected_buckets",
    "latest_active_collection",
    "plan_collection",
    "plan_cover_transfer",
    # Goals
    "goal_progress",
    # Weeks
    "day_of_week",
    "is_in_week",
    "most_recent_dow",
    "next_dow",
    "week_end",
    "week_start_for_income_entry",
    # Trackers
    "tracker_totals",
    "weekly_tracker_breakdown",
]
