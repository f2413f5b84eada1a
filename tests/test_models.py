"""
Tests for Bucketwise

Test strategy:
1. Unit tests for the pure engine (money, allocation, ledger, transfers)
2. Flow tests against the in-memory store
3. SQL store tests against an in-memory SQLite database
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from bucketwise.models.budget import (
    Bucket,
    BucketCollection,
    BucketTransfer,
    BudgetRow,
    CollectionKind,
    Goal,
    TrackerBucket,
    Transaction,
    UserPreferences,
    WeeklyIncome,
)
from bucketwise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from bucketwise.models.results import LedgerRow, ValidationIssue


class TestBudgetModels:
    """Tests for stored-row Pydantic models."""

    def test_weekly_income_creation(self):
        """Test WeeklyIncome model creation."""
        income = WeeklyIncome(
            user_id="user-1",
            week_start=date(2024, 1, 5),
            amount=Decimal("100.00"),
        )
        assert income.amount == Decimal("100.00")
        assert income.id is not None

    def test_weekly_income_rejects_zero(self):
        """Income must be positive."""
        with pytest.raises(ValueError):
            WeeklyIncome(
                user_id="user-1",
                week_start=date(2024, 1, 5),
                amount=Decimal("0"),
            )

    def test_budget_row_uses_stored_bucket_strings(self):
        """Bucket values are the strings stored in the database."""
        row = BudgetRow(
            user_id="user-1",
            week_start=date(2024, 1, 5),
            category="student loans",
            amount=Decimal("25.00"),
        )
        assert row.category == Bucket.STUDENT_LOANS

    def test_transaction_strips_whitespace(self):
        """Test that whitespace is stripped from the category."""
        tx = Transaction(
            user_id="user-1",
            date=date(2024, 1, 6),
            amount=Decimal("-4.50"),
            category="  wants::Coffee  ",
        )
        assert tx.category == "wants::Coffee"
        assert tx.is_expense is True

    def test_transaction_rejects_zero_amount(self):
        """A zero transaction is meaningless."""
        with pytest.raises(ValueError, match="cannot be zero"):
            Transaction(
                user_id="user-1",
                date=date(2024, 1, 6),
                amount=Decimal("0"),
                category="Coffee",
            )

    def test_transaction_rejects_three_decimal_places(self):
        """Money fields carry at most two decimal places."""
        with pytest.raises(ValueError):
            Transaction(
                user_id="user-1",
                date=date(2024, 1, 6),
                amount=Decimal("-4.505"),
                category="Coffee",
            )

    def test_transfer_rejects_same_bucket(self):
        """Test transfer source/target validation."""
        with pytest.raises(ValueError, match="must differ"):
            BucketTransfer(
                user_id="user-1",
                week_start=date(2024, 1, 5),
                from_bucket=Bucket.WANTS,
                to_bucket=Bucket.WANTS,
                amount=Decimal("5.00"),
            )

    def test_transfer_rejects_non_positive_amount(self):
        with pytest.raises(ValueError):
            BucketTransfer(
                user_id="user-1",
                week_start=date(2024, 1, 5),
                from_bucket=Bucket.WANTS,
                to_bucket=Bucket.EXPENSES,
                amount=Decimal("0"),
            )

    def test_collection_active_until_undone(self):
        """Test BucketCollection.is_active."""
        row = BucketCollection(
            user_id="user-1",
            week_start=date(2024, 1, 5),
            bucket="save",
            amount=Decimal("15.00"),
        )
        assert row.kind == CollectionKind.COLLECTION
        assert row.is_active is True

        undone = row.model_copy(update={"undone_at": datetime.utcnow()})
        assert undone.is_active is False

    def test_goal_permanence(self):
        """Savings and student loans goals are permanent."""
        savings = Goal(user_id="user-1", key="savings", title="Savings Goal", target=500)
        extra = Goal(user_id="user-1", key=TrackerBucket.EMERGENCY, title="Rainy day", target=300)

        assert savings.is_permanent is True
        assert extra.is_permanent is False
        assert extra.ring_color == "#56D6C9"

    def test_preferences_day_of_week_bounds(self):
        """Days of week run 0..6."""
        prefs = UserPreferences(user_id="user-1", week_start_dow=5, notice_dow=None)
        assert prefs.notice_dow is None

        with pytest.raises(ValueError):
            UserPreferences(user_id="user-1", week_start_dow=7)


class TestResultModels:
    """Tests for derived result models."""

    def test_ledger_row_overspent(self):
        row = LedgerRow(
            bucket=Bucket.EXPENSES,
            budgeted=Decimal("35.00"),
            spent=Decimal("50.00"),
            variance=Decimal("-15.00"),
        )
        assert row.is_overspent is True

    def test_validation_issue_severity_pattern(self):
        """Only error/warning/info severities are allowed."""
        with pytest.raises(ValueError):
            ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="bad",
                severity="fatal",
            )


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.INCOME_RECORDED,
            description="Income recorded",
        )
        assert event.event_type == AuditEventType.INCOME_RECORDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BUCKET_COLLECTED,
            week_start=date(2024, 1, 5),
            description="Collected",
            details={"bucket": "wants", "amount": "5.00"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "bucket_collected"
        assert log_dict["week_start"] == "2024-01-05"
        assert log_dict["details"]["bucket"] == "wants"

    def test_audit_event_builder_transfer_recorded(self):
        """Test AuditEventBuilder.transfer_recorded."""
        transfer_id = uuid4()

        event = AuditEventBuilder.transfer_recorded(
            user_id="user-1",
            week_start=date(2024, 1, 5),
            from_bucket="wants",
            to_bucket="expenses",
            amount="15.00",
            transfer_id=transfer_id,
        )

        assert event.event_type == AuditEventType.TRANSFER_RECORDED
        assert event.entity_id == transfer_id
        assert event.details["amount"] == "15.00"

    def test_audit_event_builder_transaction_saved(self):
        """New and edited transactions map to different event types."""
        tx_id = uuid4()
        added = AuditEventBuilder.transaction_saved("user-1", tx_id, "wants::Coffee", "-4.50", True)
        updated = AuditEventBuilder.transaction_saved("user-1", tx_id, "wants::Coffee", "-4.50", False)

        assert added.event_type == AuditEventType.TRANSACTION_ADDED
        assert updated.event_type == AuditEventType.TRANSACTION_UPDATED

    def test_audit_event_builder_system_error(self):
        """System errors are logged at error severity."""
        event = AuditEventBuilder.system_error(
            error_type="PersistenceError",
            error_message="disk full",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"


class TestBuckets:
    """Tests for the fixed bucket set."""

    def test_all_buckets_exist(self):
        """Test that the five buckets exist."""
        assert {b.value for b in Bucket} == {
            "save", "wants", "emergency", "student loans", "expenses",
        }

    def test_tracker_values(self):
        assert TrackerBucket.EXTRA_MONEY.value == "extra_money"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
