"""
Core Record Models for Cash Ledger

These models define the strict schemas for every record kind held in the
Record Store. They are designed to:
1. Enforce sign and range invariants at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Carry their owning user on every record

DESIGN DECISION: Amounts are never signed. The sign of a transaction is
implied by its kind, the sign of a debt by its direction.
All timestamps are timezone-aware UTC; naive values are read as UTC.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, ClassVar, Optional
from uuid import UUID, uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]

# Appended to the name of every transaction generated from a recurring rule
AUTO_SUFFIX = " (Auto)"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of a transaction. The amount itself is always >= 0."""
    EXPENSE = "expense"
    INCOME = "income"


class Frequency(str, Enum):
    """
    Recurrence cadence of a rule.

    Weekly and biweekly rules are anchored on a weekday; every other
    frequency is anchored on a day of the month.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"
    BIANNUAL = "biannual"

    @property
    def is_week_based(self) -> bool:
        return self in (Frequency.WEEKLY, Frequency.BIWEEKLY)


class DebtDirection(str, Enum):
    """Who owes whom."""
    LENT = "lent"          # I gave money away, someone owes me
    BORROWED = "borrowed"  # I hold money I owe to someone


# =============================================================================
# BASE RECORD
# =============================================================================

class LedgerRecord(BaseModel):
    """
    Common shape of every stored record.

    `record_kind` names the collection (worksheet, table...) a backend
    stores the record in. `date_field` names the attribute range queries
    filter and sort on; None means the kind has no natural date.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    record_kind: ClassVar[str] = "record"
    date_field: ClassVar[Optional[str]] = None

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user (opaque identity)"
    )

    def owned_by(self, user_id: str) -> bool:
        return self.user_id == user_id

    def sort_date(self) -> Optional[datetime]:
        if self.date_field is None:
            return None
        value = getattr(self, self.date_field)
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        return None


# =============================================================================
# RECORD KINDS
# =============================================================================

class Category(LedgerRecord):
    """A user-defined spending/income category."""

    record_kind: ClassVar[str] = "categories"

    name: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(default="circle", max_length=40)
    color: str = Field(
        default="#888888",
        pattern=r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$",
        description="Hex colour code"
    )


class Transaction(LedgerRecord):
    """
    A single income or expense event.

    Immutable once created except through explicit update/delete.
    """

    record_kind: ClassVar[str] = "transactions"
    date_field: ClassVar[Optional[str]] = "occurred_at"

    category_id: UUID
    name: str = Field(..., min_length=1, max_length=100 + len(AUTO_SUFFIX))
    amount: float = Field(..., ge=0, description="Always non-negative")
    kind: TransactionKind = TransactionKind.EXPENSE
    occurred_at: UtcDatetime
    created_at: UtcDatetime = Field(default_factory=utc_now)

    @property
    def signed_amount(self) -> float:
        """Effect of this transaction on a cash balance."""
        if self.kind == TransactionKind.INCOME:
            return self.amount
        return -self.amount


class RecurringRule(LedgerRecord):
    """
    A rule that materializes a transaction on a schedule.

    CRITICAL: `last_generated_at` is the only idempotency witness.
    It is advanced exclusively by the schedule engine, together with
    the insert of the transaction it generated.
    """

    record_kind: ClassVar[str] = "recurring_rules"

    category_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., ge=0)
    kind: TransactionKind = TransactionKind.EXPENSE
    frequency: Frequency = Frequency.MONTHLY
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    start_date: date
    is_active: bool = True
    last_generated_at: Optional[UtcDatetime] = None

    @model_validator(mode='after')
    def validate_anchor_day(self) -> 'RecurringRule':
        """Only the day field selected by the frequency may be set."""
        if self.frequency.is_week_based and self.day_of_month is not None:
            raise ValueError(
                f"{self.frequency.value} rules are anchored on day_of_week, not day_of_month"
            )
        if not self.frequency.is_week_based and self.day_of_week is not None:
            raise ValueError(
                f"{self.frequency.value} rules are anchored on day_of_month, not day_of_week"
            )
        return self


class Debt(LedgerRecord):
    """
    Money lent to or borrowed from a person.

    `is_paid` flips false -> true exactly once. A paid debt stops
    affecting the balance; no separate repayment record exists.
    """

    record_kind: ClassVar[str] = "debts"
    date_field: ClassVar[Optional[str]] = "created_at"

    person_name: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., ge=0)
    direction: DebtDirection
    due_date: Optional[date] = None
    is_paid: bool = False
    description: Optional[str] = Field(default=None, max_length=500)
    created_at: UtcDatetime = Field(default_factory=utc_now)


class Goal(LedgerRecord):
    """A savings goal. Saved money is set aside from the spendable balance."""

    record_kind: ClassVar[str] = "goals"
    date_field: ClassVar[Optional[str]] = "created_at"

    name: str = Field(..., min_length=1, max_length=100)
    target_amount: float = Field(..., gt=0)
    saved_amount: float = Field(default=0.0, ge=0)
    deadline: Optional[date] = None
    created_at: UtcDatetime = Field(default_factory=utc_now)


class Budget(LedgerRecord):
    """Monthly spending limit for one category. Unique per (user, category, period)."""

    record_kind: ClassVar[str] = "budgets"

    category_id: UUID
    monthly_limit: float = Field(..., gt=0)
    period_key: str = Field(
        ...,
        pattern=r"^\d{4}-(0[1-9]|1[0-2])$",
        description="Calendar month, YYYY-MM"
    )


class InitialBalance(LedgerRecord):
    """Opening cash position. At most one per user; may be negative."""

    record_kind: ClassVar[str] = "initial_balances"

    amount: float
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)


RECORD_TYPES: tuple[type[LedgerRecord], ...] = (
    Category,
    Transaction,
    RecurringRule,
    Debt,
    Goal,
    Budget,
    InitialBalance,
)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'out_of_range', 'inconsistent')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Outcome of validating the arguments of one operation."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]
