"""
Argument Validation

DESIGN DECISION: Every mutating operation validates its arguments before
any write, in two stages:

STAGE 1 - SCHEMA VALIDATION:
- Required values present
- Amounts positive and within configured limits
- Names and descriptions within length limits
- Day-of-week / day-of-month ranges

STAGE 2 - SEMANTIC VALIDATION:
- The anchor day matches the rule frequency
- Dates that are legal but suspicious (deadline already passed, ...)

IMPORTANT: Validation NEVER silently fixes issues.
Errors are raised to the caller as InvalidArgumentError with every
issue attached; warnings are returned but never block.
"""

import re
from datetime import date
from typing import Optional

from cashledger.config import LedgerSettings, get_settings
from cashledger.errors import InvalidArgumentError
from cashledger.models.records import Frequency, ValidationIssue, ValidationResult

PERIOD_KEY_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
COLOR_PATTERN = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


class RecordValidator:
    """
    Validates operation arguments against the configured limits.

    Each validate_* method returns a ValidationResult; ensure_valid()
    turns error-level issues into an InvalidArgumentError.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    # -------------------------------------------------------------------------
    # Stage 1 building blocks
    # -------------------------------------------------------------------------

    def _check_amount(
        self,
        field: str,
        value: Optional[float],
        minimum: Optional[float] = None,
    ) -> list[ValidationIssue]:
        issues = []
        minimum = self._settings.min_amount if minimum is None else minimum

        if value is None:
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message="Amount is required",
            ))
        elif value != value or value in (float("inf"), float("-inf")):
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be a finite number",
            ))
        elif value < minimum:
            issues.append(ValidationIssue(
                field=field,
                issue_type="out_of_range",
                message=f"Amount must be at least {minimum}",
                suggested_fix="Enter a positive amount",
            ))
        elif value > self._settings.max_amount:
            issues.append(ValidationIssue(
                field=field,
                issue_type="out_of_range",
                message=f"Amount must not exceed {self._settings.max_amount:,.0f}",
            ))
        return issues

    def _check_text(
        self,
        field: str,
        value: Optional[str],
        required: bool = True,
        max_length: Optional[int] = None,
    ) -> list[ValidationIssue]:
        max_length = max_length or self._settings.max_name_length
        text = (value or "").strip()

        if not text:
            if required:
                return [ValidationIssue(
                    field=field,
                    issue_type="missing",
                    message=f"{field} is required",
                )]
            return []
        if len(text) > max_length:
            return [ValidationIssue(
                field=field,
                issue_type="too_long",
                message=f"{field} must be at most {max_length} characters",
            )]
        return []

    def _check_anchor_day(
        self,
        frequency: Frequency,
        day_of_week: Optional[int],
        day_of_month: Optional[int],
    ) -> list[ValidationIssue]:
        issues = []

        if day_of_week is not None and not 0 <= day_of_week <= 6:
            issues.append(ValidationIssue(
                field="day_of_week",
                issue_type="out_of_range",
                message="Day of week must be between 0 and 6",
            ))
        if day_of_month is not None and not 1 <= day_of_month <= 31:
            issues.append(ValidationIssue(
                field="day_of_month",
                issue_type="out_of_range",
                message="Day of month must be between 1 and 31",
            ))

        # Stage 2: the frequency selects which anchor is meaningful
        if frequency.is_week_based and day_of_month is not None:
            issues.append(ValidationIssue(
                field="day_of_month",
                issue_type="inconsistent",
                message=f"{frequency.value} rules use day_of_week, not day_of_month",
                suggested_fix="Remove day_of_month",
            ))
        if not frequency.is_week_based and day_of_week is not None:
            issues.append(ValidationIssue(
                field="day_of_week",
                issue_type="inconsistent",
                message=f"{frequency.value} rules use day_of_month, not day_of_week",
                suggested_fix="Remove day_of_week",
            ))
        return issues

    # -------------------------------------------------------------------------
    # Per-operation validation
    # -------------------------------------------------------------------------

    def validate_category(self, name: str, color: str) -> ValidationResult:
        issues = self._check_text("name", name)
        if not COLOR_PATTERN.match(color or ""):
            issues.append(ValidationIssue(
                field="color",
                issue_type="invalid_format",
                message=f"Colour must be a hex code like #ef4444, got {color!r}",
            ))
        return ValidationResult(issues=issues)

    def validate_transaction(self, name: str, amount: float) -> ValidationResult:
        issues = self._check_text("name", name) + self._check_amount("amount", amount)
        return ValidationResult(issues=issues)

    def validate_rule(
        self,
        name: str,
        amount: float,
        frequency: Frequency,
        day_of_week: Optional[int],
        day_of_month: Optional[int],
    ) -> ValidationResult:
        issues = (
            self._check_text("name", name)
            + self._check_amount("amount", amount)
            + self._check_anchor_day(frequency, day_of_week, day_of_month)
        )
        return ValidationResult(issues=issues)

    def validate_debt(
        self,
        person_name: str,
        amount: float,
        description: Optional[str] = None,
        due_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> ValidationResult:
        issues = (
            self._check_text("person_name", person_name)
            + self._check_amount("amount", amount)
            + self._check_text(
                "description",
                description,
                required=False,
                max_length=self._settings.max_description_length,
            )
        )
        if due_date and today and due_date < today:
            issues.append(ValidationIssue(
                field="due_date",
                issue_type="past_date",
                message=f"Due date ({due_date}) is already past",
                severity="warning",
            ))
        return ValidationResult(issues=issues)

    def validate_goal(
        self,
        name: str,
        target_amount: float,
        saved_amount: float = 0.0,
        deadline: Optional[date] = None,
        today: Optional[date] = None,
    ) -> ValidationResult:
        issues = (
            self._check_text("name", name)
            + self._check_amount("target_amount", target_amount)
            + self._check_amount("saved_amount", saved_amount, minimum=0.0)
        )
        if deadline and today and deadline < today:
            issues.append(ValidationIssue(
                field="deadline",
                issue_type="past_date",
                message=f"Deadline ({deadline}) is already past",
                severity="warning",
            ))
        return ValidationResult(issues=issues)

    def validate_period_key(self, period_key: str) -> ValidationResult:
        issues = []
        if not PERIOD_KEY_PATTERN.match(period_key or ""):
            issues.append(ValidationIssue(
                field="period_key",
                issue_type="invalid_format",
                message=f"Period must be YYYY-MM, got {period_key!r}",
            ))
        return ValidationResult(issues=issues)

    def validate_budget(self, monthly_limit: float, period_key: str) -> ValidationResult:
        issues = (
            self._check_amount("monthly_limit", monthly_limit)
            + self.validate_period_key(period_key).issues
        )
        return ValidationResult(issues=issues)

    def validate_movement(self, amount: float) -> ValidationResult:
        """Amount moved into or out of a goal."""
        return ValidationResult(issues=self._check_amount("amount", amount))

    def validate_initial_balance(self, amount: float) -> ValidationResult:
        """The opening balance may be negative, but must be a finite number."""
        issues = []
        if amount is None or amount != amount or abs(amount) == float("inf"):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Initial balance must be a finite number",
            ))
        elif abs(amount) > self._settings.max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="out_of_range",
                message=f"Initial balance must not exceed {self._settings.max_amount:,.0f}",
            ))
        return ValidationResult(issues=issues)

    def validate_history_days(self, days: int) -> ValidationResult:
        issues = []
        if days < 0:
            issues.append(ValidationIssue(
                field="days",
                issue_type="out_of_range",
                message="History window must not be negative",
            ))
        return ValidationResult(issues=issues)

    @staticmethod
    def ensure_valid(result: ValidationResult) -> ValidationResult:
        """Raise InvalidArgumentError if the result has any error-level issue."""
        if result.has_errors:
            raise InvalidArgumentError.from_issues(result.issues)
        return result
