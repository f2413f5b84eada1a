"""Validation exceptions."""

from typing import Optional

from bucketwise.models.results import ValidationIssue


class ValidationError(Exception):
    """
    Input rejected before any persistence attempt.

    Never retried: the user must correct the input and re-issue the action.
    """

    def __init__(
        self,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
        field: Optional[str] = None,
    ):
        super().__init__(message)
        if issues is None:
            issues = [
                ValidationIssue(
                    field=field or "request",
                    issue_type="invalid_value",
                    message=message,
                    severity="error",
                )
            ]
        self.issues = issues

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues if issue.severity == "error"]
