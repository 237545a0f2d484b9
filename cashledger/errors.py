"""
Ledger Error Taxonomy

Every failure a caller can observe from a core operation is one of
these exceptions. Storage backends have their own hierarchy
(see services.storage.interface); services translate missing records
into NotFoundError before they reach a caller.
"""

from typing import Optional
from uuid import UUID

from cashledger.models.records import ValidationIssue


class LedgerError(Exception):
    """Base exception for all core ledger operations."""

    code = "ledger_error"


class UnauthenticatedError(LedgerError):
    """No caller identity was resolved."""

    code = "unauthenticated"

    def __init__(self, message: str = "No authenticated caller"):
        super().__init__(message)


class NotFoundError(LedgerError):
    """Record absent, or not owned by the caller."""

    code = "not_found"

    def __init__(self, kind: str, record_id: Optional[UUID] = None):
        self.kind = kind
        self.record_id = record_id
        if record_id is None:
            message = f"{kind} not found"
        else:
            message = f"{kind} not found: {record_id}"
        super().__init__(message)


class InvalidArgumentError(LedgerError):
    """
    One or more arguments failed validation.

    Carries the full list of issues so callers can show all of them
    at once rather than one per attempt.
    """

    code = "invalid_argument"

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)

    @classmethod
    def from_issues(cls, issues: list[ValidationIssue]) -> "InvalidArgumentError":
        errors = [i for i in issues if i.severity == "error"]
        message = "; ".join(f"{i.field}: {i.message}" for i in errors)
        return cls(message or "Invalid arguments", issues)


class InactiveRuleError(LedgerError):
    """Manual generation requested on a disabled recurring rule."""

    code = "inactive"

    def __init__(self, rule_id: UUID):
        self.rule_id = rule_id
        super().__init__(f"Recurring rule is inactive: {rule_id}")


class AlreadyGeneratedRecentlyError(LedgerError):
    """The idempotency guard tripped on a manual trigger."""

    code = "already_generated_recently"

    def __init__(self, rule_id: UUID, retry_after_seconds: float):
        self.rule_id = rule_id
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Transaction already generated recently for rule {rule_id} "
            f"(next allowed in {retry_after_seconds:.0f}s)"
        )


class InsufficientFundsError(InvalidArgumentError):
    """Goal withdrawal larger than the saved amount."""

    code = "insufficient_funds"

    def __init__(self, goal_id: UUID, requested: float, available: float):
        self.goal_id = goal_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot withdraw {requested:.2f} from goal {goal_id}: "
            f"only {available:.2f} saved"
        )
