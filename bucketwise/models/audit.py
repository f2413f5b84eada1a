"""
Audit Models for Bucketwise

Every state change the user triggers is described by an AuditEvent and
written to the structured log. This provides:
1. Traceability of each mutation (which week, which bucket, how much)
2. Debugging information when a store call fails
3. A single place that names every kind of event

DESIGN DECISION: Events go to the local structured log only. The
bucket_collections rows (with undone_at) are the only persisted history.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we log."""
    # Weekly income and budgets
    INCOME_RECORDED = "income_recorded"
    BUDGETS_REBUILT = "budgets_rebuilt"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    MAPPING_SAVED = "mapping_saved"

    # Reconciliation
    BUCKET_COLLECTED = "bucket_collected"
    COLLECTION_UNDONE = "collection_undone"
    TRANSFER_RECORDED = "transfer_recorded"
    ADJUSTMENT_RECORDED = "adjustment_recorded"

    # Goals and preferences
    GOAL_SAVED = "goal_saved"
    GOAL_DELETED = "goal_deleted"
    PREFERENCES_SAVED = "preferences_saved"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    ENTITY_NOT_FOUND = "entity_not_found"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - who and which week
    user_id: Optional[str] = None
    week_start: Optional[date] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'transfer', 'goal')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "week_start": self.week_start.isoformat() if self.week_start else None,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.income_recorded(user_id, week_start, "100.00")
        event = AuditEventBuilder.bucket_collected(user_id, week_start, "wants", "5.00", row_id)
    """

    @staticmethod
    def income_recorded(
        user_id: str,
        week_start: date,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_RECORDED,
            user_id=user_id,
            week_start=week_start,
            entity_type="weekly_income",
            description=f"Income recorded: {amount}",
            details={"amount": amount},
        )

    @staticmethod
    def budgets_rebuilt(
        user_id: str,
        week_start: date,
        allocations: dict[str, str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGETS_REBUILT,
            user_id=user_id,
            week_start=week_start,
            entity_type="budget",
            description=f"Budgets rebuilt for {len(allocations)} buckets",
            details={"allocations": allocations},
        )

    @staticmethod
    def transaction_saved(
        user_id: str,
        transaction_id: UUID,
        category: str,
        amount: str,
        is_new: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.TRANSACTION_ADDED
                if is_new
                else AuditEventType.TRANSACTION_UPDATED
            ),
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction {'added' if is_new else 'updated'}: {category} {amount}",
            details={"category": category, "amount": amount},
        )

    @staticmethod
    def transaction_deleted(
        user_id: str,
        transaction_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
        )

    @staticmethod
    def mapping_saved(
        user_id: str,
        raw_category: str,
        bucket: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MAPPING_SAVED,
            user_id=user_id,
            entity_type="category_map",
            description=f"Mapped '{raw_category}' to {bucket}",
            details={"raw_category": raw_category, "bucket": bucket},
        )

    @staticmethod
    def bucket_collected(
        user_id: str,
        week_start: date,
        bucket: str,
        amount: str,
        collection_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUCKET_COLLECTED,
            user_id=user_id,
            week_start=week_start,
            entity_type="bucket_collection",
            entity_id=collection_id,
            description=f"Collected {amount} from {bucket}",
            details={"bucket": bucket, "amount": amount},
        )

    @staticmethod
    def collection_undone(
        user_id: str,
        week_start: date,
        bucket: str,
        collection_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_UNDONE,
            user_id=user_id,
            week_start=week_start,
            entity_type="bucket_collection",
            entity_id=collection_id,
            description=f"Collection from {bucket} undone",
            details={"bucket": bucket},
        )

    @staticmethod
    def transfer_recorded(
        user_id: str,
        week_start: date,
        from_bucket: str,
        to_bucket: str,
        amount: str,
        transfer_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_RECORDED,
            user_id=user_id,
            week_start=week_start,
            entity_type="bucket_transfer",
            entity_id=transfer_id,
            description=f"Moved {amount} from {from_bucket} to {to_bucket}",
            details={
                "from_bucket": from_bucket,
                "to_bucket": to_bucket,
                "amount": amount,
            },
        )

    @staticmethod
    def adjustment_recorded(
        user_id: str,
        week_start: date,
        label: str,
        amount: str,
        collection_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADJUSTMENT_RECORDED,
            user_id=user_id,
            week_start=week_start,
            entity_type="bucket_collection",
            entity_id=collection_id,
            description=f"Tracker adjusted: {label} {amount}",
            details={"label": label, "amount": amount},
        )

    @staticmethod
    def goal_saved(
        user_id: str,
        key: str,
        target: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_SAVED,
            user_id=user_id,
            entity_type="goal",
            description=f"Goal {key} saved with target {target}",
            details={"key": key, "target": target},
        )

    @staticmethod
    def goal_deleted(
        user_id: str,
        key: str,
        goal_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_DELETED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Goal {key} deleted",
            details={"key": key},
        )

    @staticmethod
    def preferences_saved(
        user_id: str,
        week_start_dow: int,
        notice_dow: Optional[int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PREFERENCES_SAVED,
            user_id=user_id,
            entity_type="user_preferences",
            description="Pay schedule saved",
            details={"week_start_dow": week_start_dow, "notice_dow": notice_dow},
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={"operation": operation, "issues": issues},
        )

    @staticmethod
    def entity_not_found(
        operation: str,
        message: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            description=f"{operation}: nothing to act on",
            error_message=message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
