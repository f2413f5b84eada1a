"""
Input Validation

DESIGN DECISION: Every user-triggered mutation is validated in full
before storage is touched. Validation works in the same two passes for
every operation:

PASS 1 - SHAPE:
- Required fields present
- Amounts parse as finite numbers
- Days of week in range
- Text fits its stored column

PASS 2 - MEANING:
- Amounts strictly positive
- Amounts fit the stored precision
- Transaction date inside the owning week
- Permanent goals are not deleted
- Suspiciously large amounts (warning only)

IMPORTANT: Validation NEVER silently fixes issues beyond rounding money
to cents. Errors raise ValidationError carrying every issue found.
Warnings are logged and do not block.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

import structlog

from bucketwise.config import BudgetSettings, get_settings
from bucketwise.engine.classifier import LOCKED_DELIMITER, TRACKER_LABELS
from bucketwise.engine.money import MAX_AMOUNT, round_money, to_decimal
from bucketwise.models.budget import Bucket, Goal
from bucketwise.models.results import ValidationIssue
from bucketwise.validation.errors import ValidationError

MAX_CATEGORY_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500
MAX_GOAL_TITLE_LENGTH = 100
MAX_RING_COLOR_LENGTH = 50

# Stored categories and tracker labels carry a prefix the user never types
MAX_LABEL_LENGTH = (
    MAX_CATEGORY_LENGTH - max(len(b.value) for b in Bucket) - len(LOCKED_DELIMITER)
)
MAX_NOTE_LENGTH = (
    MAX_CATEGORY_LENGTH - max(len(label) for label in TRACKER_LABELS.values()) - len(" ()")
)


class BudgetValidator:
    """
    Validates raw user input for every budget operation.

    Each validate_* method returns the cleaned values or raises
    ValidationError listing all error-level issues.
    """

    def __init__(self, settings: Optional[BudgetSettings] = None):
        self._settings = settings or get_settings().budget
        self._logger = structlog.get_logger(__name__)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _check_amount(
        self,
        value: Any,
        field: str,
        issues: list[ValidationIssue],
    ) -> Optional[Decimal]:
        """Parse a positive money amount, recording issues instead of raising."""
        if value is None or (isinstance(value, str) and not value.strip()):
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field} is required",
                severity="error",
            ))
            return None

        try:
            amount = to_decimal(value)
        except ValueError:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"{field} must be a number",
                severity="error",
            ))
            return None

        try:
            rounded = round_money(amount)
        except ValueError:
            rounded = None
        if rounded is None or abs(rounded) > MAX_AMOUNT:
            issues.append(ValidationIssue(
                field=field,
                issue_type="out_of_range",
                message=f"{field} must be at most {MAX_AMOUNT}",
                severity="error",
            ))
            return None

        if rounded <= 0:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=f"{field} must be greater than 0",
                severity="error",
            ))
            return None

        if rounded > self._settings.max_reasonable_amount:
            issues.append(ValidationIssue(
                field=field,
                issue_type="suspicious_value",
                message=f"{field} of {rounded} is unusually large",
                severity="warning",
            ))

        return rounded

    def _check_text(
        self,
        value: Optional[str],
        field: str,
        issues: list[ValidationIssue],
        max_length: int,
        required: bool = True,
    ) -> str:
        text = (value or "").strip()
        if not text and required:
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field} is required",
                severity="error",
            ))
        elif len(text) > max_length:
            issues.append(ValidationIssue(
                field=field,
                issue_type="too_long",
                message=f"{field} must be at most {max_length} characters",
                severity="error",
            ))
        return text

    def _raise_for_issues(self, operation: str, issues: list[ValidationIssue]) -> None:
        errors = [issue for issue in issues if issue.severity == "error"]
        for issue in issues:
            if issue.severity == "warning":
                self._logger.warning(
                    "validation_warning",
                    operation=operation,
                    field=issue.field,
                    message=issue.message,
                )
        if errors:
            raise ValidationError(
                "; ".join(issue.message for issue in errors),
                issues=issues,
            )

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    def validate_income(self, amount: Any) -> Decimal:
        """Weekly income must be a finite number greater than zero."""
        issues: list[ValidationIssue] = []
        income = self._check_amount(amount, "income", issues)
        self._raise_for_issues("income", issues)
        return income

    def validate_transaction(
        self,
        amount: Any,
        raw_category: Optional[str],
        tx_date: Optional[date],
        week_start: date,
        description: Optional[str] = None,
    ) -> tuple[Decimal, str, Optional[str]]:
        """
        Validate a transaction entry or edit.

        Returns (unsigned amount, trimmed label, trimmed description or
        None). The sign is applied by the caller from the selected
        TransactionKind. The label must leave room for the locked
        bucket prefix.
        """
        issues: list[ValidationIssue] = []

        raw = self._check_text(raw_category, "category", issues, MAX_LABEL_LENGTH)
        note = self._check_text(
            description, "description", issues, MAX_DESCRIPTION_LENGTH, required=False
        )
        magnitude = self._check_amount(amount, "amount", issues)

        if tx_date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="date is required",
                severity="error",
            ))
        else:
            week_end = week_start + timedelta(days=6)
            if not week_start <= tx_date <= week_end:
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="out_of_range",
                    message=(
                        f"That date ({tx_date.isoformat()}) is not in this week "
                        f"({week_start.isoformat()} to {week_end.isoformat()})"
                    ),
                    severity="error",
                ))

        self._raise_for_issues("transaction", issues)
        return magnitude, raw, note or None

    def validate_mapping(self, raw_category: Optional[str]) -> str:
        issues: list[ValidationIssue] = []
        raw = self._check_text(raw_category, "raw_category", issues, MAX_CATEGORY_LENGTH)
        self._raise_for_issues("mapping", issues)
        return raw

    def validate_adjustment(
        self,
        amount: Any,
        week_start: Optional[date],
        note: Optional[str] = None,
    ) -> Decimal:
        """A manual adjustment needs a target week and a positive magnitude."""
        issues: list[ValidationIssue] = []
        self._check_text(note, "note", issues, MAX_NOTE_LENGTH, required=False)
        if week_start is None:
            issues.append(ValidationIssue(
                field="week_start",
                issue_type="missing",
                message="Pick a week before adjusting totals",
                severity="error",
            ))
        magnitude = self._check_amount(amount, "amount", issues)
        self._raise_for_issues("adjustment", issues)
        return magnitude

    def validate_goal(
        self,
        title: Optional[str],
        target: Any,
        ring_color: Optional[str] = None,
    ) -> tuple[str, Decimal, Optional[str]]:
        """Returns (title, target, ring colour or None)."""
        issues: list[ValidationIssue] = []
        clean_title = self._check_text(title, "title", issues, MAX_GOAL_TITLE_LENGTH)
        clean_target = self._check_amount(target, "target", issues)
        color = self._check_text(
            ring_color, "ring_color", issues, MAX_RING_COLOR_LENGTH, required=False
        )
        self._raise_for_issues("goal", issues)
        return clean_title, clean_target, color or None

    def validate_goal_deletion(self, goal: Goal) -> None:
        if goal.is_permanent:
            raise ValidationError(
                "The Savings and Student Loans goals cannot be deleted; edit the target instead",
                field="key",
            )

    def validate_preferences(
        self,
        week_start_dow: Any,
        notice_dow: Any,
    ) -> tuple[int, Optional[int]]:
        issues: list[ValidationIssue] = []

        def check_dow(value: Any, field: str) -> Optional[int]:
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 6:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="out_of_range",
                    message=f"{field} must be a day of week between 0 and 6",
                    severity="error",
                ))
                return None
            return value

        start = check_dow(week_start_dow, "week_start_dow")
        notice = None if notice_dow is None else check_dow(notice_dow, "notice_dow")
        self._raise_for_issues("preferences", issues)
        return start, notice
