"""
Allocation builder.

Splits a week's income into the five buckets by fixed percentages. The
first four buckets are rounded to the cent individually; expenses takes
whatever is left so the parts always add back to the income exactly.
"""

from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple

from bucketwise.engine.money import from_cents, round_half_up, to_cents
from bucketwise.models.budget import Bucket, BudgetRow

ALLOCATIONS: tuple[tuple[Bucket, Decimal], ...] = (
    (Bucket.SAVE, Decimal("0.15")),
    (Bucket.WANTS, Decimal("0.15")),
    (Bucket.EMERGENCY, Decimal("0.10")),
    (Bucket.STUDENT_LOANS, Decimal("0.25")),
    (Bucket.EXPENSES, Decimal("0.30")),
)

# Receives the rounding remainder
REMAINDER_BUCKET = Bucket.EXPENSES

BUCKETS: tuple[Bucket, ...] = tuple(bucket for bucket, _ in ALLOCATIONS)


class Allocation(NamedTuple):
    bucket: Bucket
    amount: Decimal


def split_income(income: Any) -> list[Allocation]:
    """
    Split income into per-bucket amounts that sum to it exactly.

    Args:
        income: Weekly income, already validated as positive

    Returns:
        Five allocations in ALLOCATIONS order

    Raises:
        ValueError: income rounds to zero cents or less
    """
    income_cents = to_cents(income)
    if income_cents <= 0:
        raise ValueError(f"Income must be positive, got {income!r}")

    cents_by_bucket: dict[Bucket, int] = {}
    for bucket, pct in ALLOCATIONS:
        if bucket is REMAINDER_BUCKET:
            continue
        cents_by_bucket[bucket] = round_half_up(income_cents * pct)

    cents_by_bucket[REMAINDER_BUCKET] = income_cents - sum(cents_by_bucket.values())

    return [Allocation(bucket, from_cents(cents_by_bucket[bucket])) for bucket in BUCKETS]


def build_budget_rows(user_id: str, week_start: date, income: Any) -> list[BudgetRow]:
    """Budget rows ready to insert for one week."""
    return [
        BudgetRow(
            user_id=user_id,
            week_start=week_start,
            category=allocation.bucket,
            amount=allocation.amount,
        )
        for allocation in split_income(income)
    ]
