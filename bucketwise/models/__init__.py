"""
Data Models Package

This package contains all Pydantic models used in Bucketwise.
All data flowing through the system must conform to these schemas.
"""

from bucketwise.models.budget import (
    PERMANENT_GOAL_KEYS,
    AdjustmentDirection,
    Bucket,
    BucketCollection,
    BucketTransfer,
    BudgetRow,
    CategoryMapping,
    CollectionKind,
    Goal,
    TrackerBucket,
    Transaction,
    TransactionKind,
    UserPreferences,
    WeeklyIncome,
)
from bucketwise.models.results import (
    GoalCard,
    GoalProgress,
    LedgerItem,
    LedgerRow,
    LedgerSummary,
    LedgerTotals,
    TrackerWeek,
    ValidationIssue,
    WeekView,
)
from bucketwise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Stored rows
    "PERMANENT_GOAL_KEYS",
    "AdjustmentDirection",
    "Bucket",
    "BucketCollection",
    "BucketTransfer",
    "BudgetRow",
    "CategoryMapping",
    "CollectionKind",
    "Goal",
    "TrackerBucket",
    "Transaction",
    "TransactionKind",
    "UserPreferences",
    "WeeklyIncome",
    # Derived results
    "GoalCard",
    "GoalProgress",
    "LedgerItem",
    "LedgerRow",
    "LedgerSummary",
    "LedgerTotals",
    "TrackerWeek",
    "ValidationIssue",
    "WeekView",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
