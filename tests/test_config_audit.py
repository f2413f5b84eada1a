"""Tests for settings and the audit logger."""

import asyncio
import pytest
from datetime import date
from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError

from bucketwise.audit import AuditLogger
from bucketwise.config import AppSettings, BudgetSettings, validate_all_settings
from bucketwise.models.results import ValidationIssue


class RecordingLogger:
    """Stands in for the bound structlog logger."""

    def __init__(self):
        self.calls = []

    def _record(self, level):
        def method(event, **kwargs):
            self.calls.append((level, event, kwargs))
        return method

    def __getattr__(self, level):
        return self._record(level)


@pytest.fixture
def audit():
    logger = AuditLogger()
    logger._logger = RecordingLogger()
    return logger


class TestSettings:
    """Tests for configuration loading."""

    def test_budget_defaults(self):
        settings = BudgetSettings()
        assert settings.default_week_start_dow == 5
        assert settings.default_notice_dow == 4
        assert settings.default_savings_target == Decimal("500")
        assert settings.default_student_loans_target == Decimal("2000")

    def test_log_level_normalised(self):
        assert AppSettings(log_level=" debug ").log_level == "DEBUG"

    def test_log_level_rejected(self):
        with pytest.raises(PydanticValidationError):
            AppSettings(log_level="loud")

    def test_budget_env_override(self, monkeypatch):
        monkeypatch.setenv("BUCKETWISE_BUDGET_DEFAULT_WEEK_START_DOW", "1")
        assert BudgetSettings().default_week_start_dow == 1

    def test_validate_all_settings(self):
        results = validate_all_settings()
        assert results["storage"] and results["budget"] and results["app"]


class TestAuditLogger:
    """Tests for event routing."""

    def test_income_logged_at_info(self, audit):
        asyncio.run(audit.log_income_recorded("user-1", date(2024, 1, 5), Decimal("100")))

        level, event, fields = audit._logger.calls[0]
        assert (level, event) == ("info", "audit_event")
        assert fields["event_type"] == "income_recorded"
        assert fields["details"] == {"amount": "100.00"}
        assert fields["week_start"] == "2024-01-05"

    def test_validation_failure_logged_as_warning(self, audit):
        issue = ValidationIssue(field="amount", issue_type="missing", message="amount is required", severity="error")
        asyncio.run(audit.log_validation_failed("add_transaction", [issue], user_id="user-1"))

        level, _, fields = audit._logger.calls[0]
        assert level == "warning"
        assert fields["details"]["issues"][0]["field"] == "amount"

    def test_error_logged_at_error(self, audit):
        asyncio.run(audit.log_error("PersistenceError", "disk full", {"operation": "rebuild_week"}))

        level, _, fields = audit._logger.calls[0]
        assert level == "error"
        assert fields["error_message"] == "disk full"
        assert fields["details"] == {"operation": "rebuild_week"}
