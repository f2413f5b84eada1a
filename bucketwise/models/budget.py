"""
Core Data Models for Bucketwise

These models define the strict schemas for every row the engine reads or
writes. They are designed to:
1. Enforce type safety at runtime
2. Keep money as Decimal, never float
3. Be loadable straight from ORM rows (from_attributes)
4. Reject impossible rows (negative transfers, self-transfers) at construction

DESIGN DECISION: The bucket set is a closed enum. Free-text categories only
exist on transactions and are resolved to a bucket by the classifier.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Bucket(str, Enum):
    """
    The five weekly budget buckets.

    Values are the strings stored in the budgets table and in locked
    transaction categories, so they must never change.
    """
    SAVE = "save"
    WANTS = "wants"
    EMERGENCY = "emergency"
    STUDENT_LOANS = "student loans"
    EXPENSES = "expenses"


class TrackerBucket(str, Enum):
    """
    Savings trackers fed by collections and manual adjustments.

    Goals are keyed by tracker.
    """
    SAVINGS = "savings"
    STUDENT_LOANS = "student_loans"
    EMERGENCY = "emergency"
    EXTRA_MONEY = "extra_money"


class CollectionKind(str, Enum):
    """Why a bucket_collections row exists."""
    COLLECTION = "collection"  # leftover withdrawn from a week's bucket
    ADJUSTMENT = "adjustment"  # manual correction of a tracker total


class TransactionKind(str, Enum):
    """Direction selected when entering a transaction."""
    EXPENSE = "expense"
    INCOME = "income"


class AdjustmentDirection(str, Enum):
    """Direction of a manual tracker adjustment."""
    ADD = "add"
    SUBTRACT = "subtract"


PERMANENT_GOAL_KEYS = frozenset({TrackerBucket.SAVINGS, TrackerBucket.STUDENT_LOANS})


class _Row(BaseModel):
    """Common config for stored rows."""
    model_config = ConfigDict(str_strip_whitespace=True, from_attributes=True)


# =============================================================================
# WEEKLY BUDGET ROWS
# =============================================================================

class WeeklyIncome(_Row):
    """
    Income logged for one week.

    One per (user, week_start); upserted when the user edits the week.
    """
    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    week_start: date
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Income for the week"
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class BudgetRow(_Row):
    """
    One bucket's allocation for a week.

    Generated from WeeklyIncome by the allocation builder; never edited
    in place, only deleted and rebuilt.
    """
    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    week_start: date
    category: Bucket
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Transaction(_Row):
    """
    A single income or expense entry.

    CRITICAL: amount is signed. Negative = expense, positive = income.
    category is either a locked "bucket::label" string or a legacy label.
    """
    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    date: date
    amount: Decimal = Field(..., decimal_places=2)
    category: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_amount(self) -> 'Transaction':
        """A zero transaction carries no meaning."""
        if self.amount == 0:
            raise ValueError("Transaction amount cannot be zero")
        return self

    @property
    def is_expense(self) -> bool:
        return self.amount < 0


class BucketTransfer(_Row):
    """Budget capacity moved between two buckets within one week."""
    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    week_start: date
    from_bucket: Bucket
    to_bucket: Bucket
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_buckets(self) -> 'BucketTransfer':
        if self.from_bucket == self.to_bucket:
            raise ValueError("Transfer source and target must differ")
        return self


class CategoryMapping(_Row):
    """Resolves a legacy transaction label to a bucket."""
    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    raw_category: str = Field(..., min_length=1, max_length=200)
    bucket: Bucket
    created_at: datetime = Field(default_factory=datetime.utcnow)


class BucketCollection(_Row):
    """
    Money recorded into a savings tracker.

    bucket is a label, not an enum: collections store the budget bucket
    name ("save"), adjustments may append a note ("save (gift)").
    A row with undone_at set no longer counts anywhere.
    """
    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    week_start: date
    bucket: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., decimal_places=2)
    kind: CollectionKind = Field(default=CollectionKind.COLLECTION)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    undone_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.undone_at is None


# =============================================================================
# GOALS & PREFERENCES
# =============================================================================

class Goal(_Row):
    """
    A progress ring target for one tracker.

    Goals keyed savings / student_loans are permanent: their target and
    title can change but they are never deleted.
    """
    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    key: TrackerBucket
    title: str = Field(..., min_length=1, max_length=100)
    target: Decimal = Field(..., ge=0, decimal_places=2)
    ring_color: str = Field(default="#56D6C9", max_length=50)
    sort_order: int = Field(default=0)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_permanent(self) -> bool:
        return self.key in PERMANENT_GOAL_KEYS


class UserPreferences(_Row):
    """
    Pay schedule.

    Days of week use 0 = Sunday ... 6 = Saturday.
    """
    user_id: str = Field(..., min_length=1)
    week_start_dow: int = Field(..., ge=0, le=6)
    notice_dow: Optional[int] = Field(default=None, ge=0, le=6)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
