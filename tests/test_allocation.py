"""Tests for money rounding and the allocation builder."""

import pytest
from datetime import date
from decimal import Decimal

from bucketwise.engine.allocation import BUCKETS, build_budget_rows, split_income
from bucketwise.engine.money import (
    from_cents,
    is_positive_amount,
    round_half_up,
    round_money,
    to_cents,
    to_decimal,
)
from bucketwise.models.budget import Bucket


class TestMoney:
    """Tests for cents conversion."""

    def test_float_goes_through_str(self):
        assert to_decimal(33.33) == Decimal("33.33")
        assert to_decimal(0.1) == Decimal("0.1")

    def test_rejects_non_numbers(self):
        for bad in ("abc", float("nan"), float("inf"), True, None, [1]):
            with pytest.raises(ValueError):
                to_decimal(bad)

    def test_halves_round_toward_positive_infinity(self):
        """Matches Math.round: 0.5 -> 1, -0.5 -> 0, -1.5 -> -1."""
        assert round_half_up(Decimal("0.5")) == 1
        assert round_half_up(Decimal("-0.5")) == 0
        assert round_half_up(Decimal("-1.5")) == -1
        assert round_half_up(Decimal("2.4999")) == 2

    def test_to_cents(self):
        assert to_cents("10.005") == 1001
        assert to_cents(Decimal("-3.335")) == -333
        assert to_cents(12) == 1200

    def test_from_cents_has_two_places(self):
        assert str(from_cents(500)) == "5.00"
        assert str(from_cents(-1)) == "-0.01"

    def test_round_money(self):
        assert round_money("1.234") == Decimal("1.23")
        assert round_money(1.005) == Decimal("1.01")

    def test_out_of_range_is_value_error(self):
        """Beyond the decimal context, not a raw InvalidOperation."""
        with pytest.raises(ValueError):
            round_money("1e27")
        with pytest.raises(ValueError):
            from_cents(10 ** 40)

    def test_is_positive_amount(self):
        assert is_positive_amount("0.01") is True
        assert is_positive_amount("0.004") is False
        assert is_positive_amount("-1") is False
        assert is_positive_amount("nope") is False


class TestSplitIncome:
    """Tests for splitting income into buckets."""

    def test_round_income(self):
        """100.00 -> 15 / 15 / 10 / 25 / 35."""
        amounts = {a.bucket: a.amount for a in split_income(Decimal("100.00"))}
        assert amounts == {
            Bucket.SAVE: Decimal("15.00"),
            Bucket.WANTS: Decimal("15.00"),
            Bucket.EMERGENCY: Decimal("10.00"),
            Bucket.STUDENT_LOANS: Decimal("25.00"),
            Bucket.EXPENSES: Decimal("35.00"),
        }

    def test_uneven_income(self):
        """33.33 -> 5.00 / 5.00 / 3.33 / 8.33 / 11.67."""
        amounts = [a.amount for a in split_income("33.33")]
        assert amounts == [
            Decimal("5.00"),
            Decimal("5.00"),
            Decimal("3.33"),
            Decimal("8.33"),
            Decimal("11.67"),
        ]

    @pytest.mark.parametrize("income", ["0.01", "10.00", "1234.56", "999999.99", 7.77])
    def test_parts_sum_to_income(self, income):
        """Allocations always add back to the income to the cent."""
        allocations = split_income(income)
        assert sum(a.amount for a in allocations) == round_money(income)
        assert all(a.amount >= 0 for a in allocations)

    def test_order_is_fixed(self):
        assert [a.bucket for a in split_income(50)] == list(BUCKETS)

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            split_income(0)
        with pytest.raises(ValueError):
            split_income("0.004")

    def test_build_budget_rows(self):
        rows = build_budget_rows("user-1", date(2024, 1, 5), Decimal("100"))
        assert len(rows) == 5
        assert {r.week_start for r in rows} == {date(2024, 1, 5)}
        assert sum(r.amount for r in rows) == Decimal("100.00")
