"""
Audit Models for Cash Ledger

Events describing every change to a user's ledger and every scheduler
run, with builders for the common shapes.

DESIGN DECISION: Events are only ever appended; no code path edits or
removes one.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from cashledger.models.records import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Recurring rules
    RULE_CREATED = "rule_created"
    RULE_UPDATED = "rule_updated"
    RULE_DELETED = "rule_deleted"
    RECURRING_GENERATED = "recurring_generated"
    RECURRING_GENERATION_FAILED = "recurring_generation_failed"
    SCHEDULER_RUN_COMPLETED = "scheduler_run_completed"

    # Balance and budgets
    INITIAL_BALANCE_SET = "initial_balance_set"
    BUDGET_SET = "budget_set"
    BUDGET_DELETED = "budget_deleted"

    # Goals
    GOAL_CREATED = "goal_created"
    GOAL_UPDATED = "goal_updated"
    GOAL_DELETED = "goal_deleted"
    SAVINGS_ADDED = "savings_added"
    SAVINGS_WITHDRAWN = "savings_withdrawn"

    # Debts
    DEBT_CREATED = "debt_created"
    DEBT_UPDATED = "debt_updated"
    DEBT_PAID = "debt_paid"
    DEBT_DELETED = "debt_deleted"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One entry of the audit trail.

    `entity_type` is the record kind (e.g. "recurring_rules") and
    `entity_id` the record touched, when there is one.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="Owning user; None for fleet-wide scheduler events"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Record kind (e.g., 'transactions', 'goals')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the record this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one scheduler run)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action (vs. the timer)?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Flatten to the audit worksheet's column order.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Factory methods for the events the ledger emits.

    Usage:
        event = AuditEventBuilder.recurring_generated(
            user_id, rule.id, transaction.id, transaction.amount, manual=True
        )
        event = AuditEventBuilder.savings_moved(
            user_id, goal_id, amount=50.0, saved_amount=100.0, withdrawn=True
        )
    """

    @staticmethod
    def record_changed(
        event_type: AuditEventType,
        user_id: str,
        entity_type: str,
        entity_id: UUID,
        description: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def recurring_generated(
        user_id: str,
        rule_id: UUID,
        transaction_id: UUID,
        amount: float,
        manual: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_GENERATED,
            user_id=user_id,
            entity_type="recurring_rules",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Recurring transaction generated ({'manual' if manual else 'scheduled'})",
            details={
                "transaction_id": str(transaction_id),
                "amount": amount,
            },
            is_user_action=manual,
        )

    @staticmethod
    def recurring_generation_failed(
        user_id: str,
        rule_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_GENERATION_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="recurring_rules",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description="Recurring generation failed",
            error_message=error_message,
        )

    @staticmethod
    def scheduler_run_completed(
        generated: int,
        skipped: int,
        total: int,
        failed: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULER_RUN_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            correlation_id=correlation_id,
            description=f"Scheduler run: {generated} generated, {skipped} skipped of {total}",
            details={
                "generated": generated,
                "skipped": skipped,
                "total": total,
                "failed": failed,
            },
        )

    @staticmethod
    def savings_moved(
        user_id: str,
        goal_id: UUID,
        amount: float,
        saved_amount: float,
        withdrawn: bool,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.SAVINGS_WITHDRAWN
            if withdrawn
            else AuditEventType.SAVINGS_ADDED
        )
        verb = "withdrawn from" if withdrawn else "added to"
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="goals",
            entity_id=goal_id,
            description=f"{amount:.2f} {verb} goal",
            details={
                "amount": amount,
                "saved_amount": saved_amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
