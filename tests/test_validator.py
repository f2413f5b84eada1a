"""Tests for input validation limits."""

import pytest
from datetime import date
from decimal import Decimal

from bucketwise.config import BudgetSettings
from bucketwise.validation import BudgetValidator, ValidationError
from bucketwise.validation.validator import MAX_LABEL_LENGTH, MAX_NOTE_LENGTH

WEEK = date(2024, 1, 5)


@pytest.fixture
def validator():
    return BudgetValidator(BudgetSettings())


class TestAmountLimits:
    """Tests for amounts that cannot be stored."""

    @pytest.mark.parametrize("amount", ["1e27", "1e10", "10000000000", Decimal("-1e40")])
    def test_too_large_is_rejected(self, validator, amount):
        with pytest.raises(ValidationError) as exc:
            validator.validate_income(amount)
        assert exc.value.fields == ["income"]
        assert exc.value.issues[0].issue_type == "out_of_range"

    def test_largest_storable_amount_only_warns(self, validator):
        assert validator.validate_income("9999999999.99") == Decimal("9999999999.99")

    def test_goal_and_adjustment_amounts_share_the_limit(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_goal("Rainy day", "1e27")
        with pytest.raises(ValidationError):
            validator.validate_adjustment("1e27", WEEK)


class TestTextLimits:
    """Tests for text that must fit its stored column."""

    def test_label_leaves_room_for_bucket_prefix(self, validator):
        """'student loans::' plus the label fits in 200 characters."""
        assert MAX_LABEL_LENGTH == 185
        _, raw, _ = validator.validate_transaction("1", "x" * 185, WEEK, WEEK)
        assert len(raw) == 185

        with pytest.raises(ValidationError) as exc:
            validator.validate_transaction("1", "x" * 186, WEEK, WEEK)
        assert exc.value.fields == ["category"]

    def test_description(self, validator):
        _, _, note = validator.validate_transaction("1", "Coffee", WEEK, WEEK, "   ")
        assert note is None

        with pytest.raises(ValidationError) as exc:
            validator.validate_transaction("1", "Coffee", WEEK, WEEK, "d" * 501)
        assert exc.value.fields == ["description"]

    def test_every_issue_is_reported(self, validator):
        with pytest.raises(ValidationError) as exc:
            validator.validate_transaction("1e27", "x" * 300, WEEK, WEEK, "d" * 501)
        assert set(exc.value.fields) == {"category", "description", "amount"}

    def test_goal_fields(self, validator):
        title, target, color = validator.validate_goal(" Rainy day ", "40", " #123456 ")
        assert (title, target, color) == ("Rainy day", Decimal("40.00"), "#123456")

        with pytest.raises(ValidationError) as exc:
            validator.validate_goal("t" * 101, "40", "c" * 51)
        assert set(exc.value.fields) == {"title", "ring_color"}

    def test_mapping_and_note(self, validator):
        assert validator.validate_mapping("r" * 200) == "r" * 200
        with pytest.raises(ValidationError):
            validator.validate_mapping("r" * 201)

        assert MAX_NOTE_LENGTH == 184
        validator.validate_adjustment("5", WEEK, "n" * 184)
        with pytest.raises(ValidationError) as exc:
            validator.validate_adjustment("5", WEEK, "n" * 185)
        assert exc.value.fields == ["note"]
