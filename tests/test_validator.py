"""Tests for argument validation."""

from datetime import date

import pytest

from cashledger.config import LedgerSettings
from cashledger.errors import InvalidArgumentError
from cashledger.models.records import Frequency
from cashledger.validation import RecordValidator


@pytest.fixture
def validator():
    return RecordValidator(LedgerSettings(timezone="UTC"))


class TestAmountsAndNames:

    def test_valid_transaction(self, validator):
        result = validator.validate_transaction("Coffee", 3.5)
        assert not result.has_errors

    def test_amount_below_minimum(self, validator):
        result = validator.validate_transaction("Coffee", 0.001)
        assert result.has_errors
        assert result.issues[0].field == "amount"
        assert result.issues[0].issue_type == "out_of_range"

    def test_amount_above_maximum(self, validator):
        result = validator.validate_transaction("Yacht", 1_000_000_000)
        assert result.has_errors

    def test_non_finite_amount(self, validator):
        result = validator.validate_transaction("Bad", float("nan"))
        assert result.issues[0].issue_type == "invalid_value"

    def test_blank_name(self, validator):
        result = validator.validate_transaction("   ", 10)
        assert result.issues[0].issue_type == "missing"

    def test_name_too_long(self, validator):
        result = validator.validate_transaction("x" * 101, 10)
        assert result.issues[0].issue_type == "too_long"

    def test_all_issues_reported_together(self, validator):
        """Both the name and the amount are reported, not just the first."""
        result = validator.validate_transaction("", -1)
        assert {i.field for i in result.issues} == {"name", "amount"}

    def test_category_colour(self, validator):
        assert not validator.validate_category("Food", "#ef4444").has_errors
        assert validator.validate_category("Food", "blue").has_errors


class TestRuleValidation:

    def test_monthly_with_day_of_month(self, validator):
        result = validator.validate_rule("Rent", 800, Frequency.MONTHLY, None, 1)
        assert not result.has_errors

    def test_weekly_with_day_of_month_is_inconsistent(self, validator):
        """No silent correction: the wrong anchor is an error."""
        result = validator.validate_rule("Gym", 20, Frequency.WEEKLY, None, 12)
        assert result.has_errors
        assert result.issues[0].issue_type == "inconsistent"
        assert result.issues[0].field == "day_of_month"

    def test_monthly_with_day_of_week_is_inconsistent(self, validator):
        result = validator.validate_rule("Rent", 800, Frequency.ANNUAL, 2, None)
        assert result.issues[0].field == "day_of_week"

    def test_day_ranges(self, validator):
        assert validator.validate_rule("A", 1, Frequency.WEEKLY, 7, None).has_errors
        assert validator.validate_rule("A", 1, Frequency.MONTHLY, None, 0).has_errors
        assert validator.validate_rule("A", 1, Frequency.MONTHLY, None, 32).has_errors

    def test_no_anchor_is_fine(self, validator):
        assert not validator.validate_rule("A", 1, Frequency.DAILY, None, None).has_errors


class TestOtherValidation:

    def test_past_due_date_is_only_a_warning(self, validator):
        result = validator.validate_debt(
            "Sam", 40, due_date=date(2024, 1, 1), today=date(2024, 3, 15)
        )
        assert not result.has_errors
        assert len(result.warnings) == 1

    def test_description_length(self, validator):
        assert validator.validate_debt("Sam", 40, description="x" * 501).has_errors

    def test_goal_allows_zero_saved(self, validator):
        assert not validator.validate_goal("Trip", 1000, 0.0).has_errors

    def test_budget_period_key(self, validator):
        assert not validator.validate_budget(100, "2024-03").has_errors
        assert validator.validate_budget(100, "2024-3").has_errors
        assert validator.validate_budget(0, "2024-03").has_errors

    def test_initial_balance_may_be_negative(self, validator):
        assert not validator.validate_initial_balance(-250).has_errors
        assert validator.validate_initial_balance(float("inf")).has_errors

    def test_history_days(self, validator):
        assert not validator.validate_history_days(0).has_errors
        assert validator.validate_history_days(-1).has_errors

    def test_ensure_valid_raises_with_issues(self, validator):
        with pytest.raises(InvalidArgumentError) as exc_info:
            validator.ensure_valid(validator.validate_transaction("", 0))
        assert len(exc_info.value.issues) == 2
        assert exc_info.value.code == "invalid_argument"
