"""
Derived Result Models

Everything in here is computed from stored rows and never persisted:
ledger rows, week views, goal progress, tracker breakdowns and the
validation issue records attached to ValidationError.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from bucketwise.models.budget import (
    Bucket,
    BucketCollection,
    BucketTransfer,
    Goal,
    TrackerBucket,
    Transaction,
    WeeklyIncome,
)


# =============================================================================
# LEDGER
# =============================================================================

class LedgerRow(BaseModel):
    """Budgeted vs spent for one bucket in one week."""
    bucket: Bucket
    budgeted: Decimal = Field(..., description="Allocation after transfers")
    spent: Decimal = Field(..., ge=0, description="Sum of expenses")
    variance: Decimal = Field(..., description="budgeted - spent")

    @property
    def is_overspent(self) -> bool:
        return self.variance < 0


class LedgerTotals(BaseModel):
    """Grand totals across all five buckets."""
    budgeted: Decimal
    spent: Decimal
    variance: Decimal


class LedgerSummary(BaseModel):
    """Output of the ledger aggregator for one week."""
    rows: list[LedgerRow]
    totals: LedgerTotals
    unmapped_categories: list[str] = Field(
        default_factory=list,
        description="Legacy labels that belong to no bucket yet"
    )

    def row_for(self, bucket: Bucket) -> Optional[LedgerRow]:
        for row in self.rows:
            if row.bucket == bucket:
                return row
        return None


class LedgerItem(BaseModel):
    """One entry in a bucket's activity list."""
    kind: str = Field(
        ...,
        pattern="^(tx|transfer_out|transfer_in)$",
    )
    transaction: Optional[Transaction] = None
    transfer: Optional[BucketTransfer] = None


class WeekView(BaseModel):
    """
    A consistent snapshot of one week.

    Built from a single storage transaction so every figure agrees.
    has_budget is False when no income was logged for the week.
    """
    week_start: date
    week_end: date
    income: Optional[WeeklyIncome] = None
    summary: Optional[LedgerSummary] = None
    transactions: list[Transaction] = Field(default_factory=list)
    transfers: list[BucketTransfer] = Field(default_factory=list)
    collected: list[Bucket] = Field(default_factory=list)
    items_by_bucket: dict[Bucket, list[LedgerItem]] = Field(default_factory=dict)

    @property
    def has_budget(self) -> bool:
        return self.summary is not None

    def is_collected(self, bucket: Bucket) -> bool:
        return bucket in self.collected


# =============================================================================
# GOALS & TRACKERS
# =============================================================================

class GoalProgress(BaseModel):
    """Display values for one progress ring."""
    current: Decimal
    target: Decimal
    percent: Decimal = Field(..., ge=0, le=100)
    remaining: Decimal = Field(..., ge=0)


class GoalCard(BaseModel):
    """A goal paired with its computed progress."""
    goal: Goal
    progress: GoalProgress


class TrackerWeek(BaseModel):
    """All tracker activity recorded against one week."""
    week_start: date
    rows: list[BucketCollection]
    sums: dict[TrackerBucket, Decimal]


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    detected_at: datetime = Field(default_factory=datetime.utcnow)
