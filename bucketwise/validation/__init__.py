"""Validation package."""

from bucketwise.validation.errors import ValidationError
from bucketwise.validation.validator import BudgetValidator

__all__ = ["BudgetValidator", "ValidationError"]
