"""
Audit Logger

DESIGN DECISION: Anything that moves the balance leaves an AuditEvent.
A balance can then be explained after the fact, down to the rule that
generated each transaction.

Events always reach the local structlog stream. Persisting them is
best-effort; a broken audit sheet never fails a ledger write.
Scheduler runs share one correlation id across their events.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from cashledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from cashledger.services.storage import AuditStorageInterface


# JSON lines with ISO timestamps; level filtering is left to stdlib logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))


class AuditLogger:
    """
    Writes AuditEvents to the local log and, when a storage backend is
    given, appends them there too.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """Without `storage`, events only go to the local log."""
        self._storage = storage
        self._logger = structlog.get_logger("cashledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Emit `event` locally at a level matching its severity, then persist it.

        Returns False only when a configured storage rejected the event.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_changed(
        self,
        event_type: AuditEventType,
        user_id: str,
        entity_type: str,
        entity_id: UUID,
        description: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log a user-initiated create/update/delete of a record."""
        event = AuditEventBuilder.record_changed(
            event_type=event_type,
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
        )
        await self.log(event)

    async def log_recurring_generated(
        self,
        user_id: str,
        rule_id: UUID,
        transaction_id: UUID,
        amount: float,
        manual: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction materialized from a recurring rule."""
        event = AuditEventBuilder.recurring_generated(
            user_id=user_id,
            rule_id=rule_id,
            transaction_id=transaction_id,
            amount=amount,
            manual=manual,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_generation_failed(
        self,
        user_id: str,
        rule_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rule that raised during a scheduler run."""
        event = AuditEventBuilder.recurring_generation_failed(
            user_id=user_id,
            rule_id=rule_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_scheduler_run(
        self,
        generated: int,
        skipped: int,
        total: int,
        failed: int,
        correlation_id: UUID,
    ) -> None:
        """Log the summary counts of one batch pass."""
        event = AuditEventBuilder.scheduler_run_completed(
            generated=generated,
            skipped=skipped,
            total=total,
            failed=failed,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_savings_moved(
        self,
        user_id: str,
        goal_id: UUID,
        amount: float,
        saved_amount: float,
        withdrawn: bool,
    ) -> None:
        event = AuditEventBuilder.savings_moved(
            user_id=user_id,
            goal_id=goal_id,
            amount=amount,
            saved_amount=saved_amount,
            withdrawn=withdrawn,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    New id grouping the events of one scheduler run (or any multi-step action).
    """
    return uuid4()
