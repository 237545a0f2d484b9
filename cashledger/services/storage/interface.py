"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Add caching layers transparently
4. Keep ledger logic decoupled from storage implementation

The interface is a small typed document store, not an ORM: every record
kind is a pydantic model, and a backend only has to persist, fetch, patch
and range-scan them. Ownership checks happen above this layer.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional, TypeVar
from uuid import UUID

from cashledger.models.audit import AuditEvent
from cashledger.models.records import (
    Category,
    InitialBalance,
    LedgerRecord,
    RecurringRule,
    Transaction,
    ensure_utc,
)
from cashledger.models.reports import CategorizedRule, CategorizedTransaction

R = TypeVar("R", bound=LedgerRecord)


class RecordStoreInterface(ABC):
    """
    Abstract interface for ledger record storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement the abstract methods. The concrete helpers below
    are built on them and shared by every backend.
    """

    @abstractmethod
    async def insert(self, record: R) -> R:
        """
        Insert a new record.

        Raises:
            DuplicateError: If a record with the same ID exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, model: type[R], record_id: UUID) -> Optional[R]:
        """
        Retrieve a record by its ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def update(self, record: R) -> R:
        """
        Replace an existing record.

        Raises:
            RecordNotFoundError: If the record doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def patch(
        self,
        model: type[R],
        record_id: UUID,
        changes: dict[str, Any],
    ) -> R:
        """
        Atomically read, modify and write a single record.

        Args:
            model: Record kind
            record_id: The record's unique identifier
            changes: Field values to overwrite

        Returns:
            The record after the change

        Raises:
            RecordNotFoundError: If the record doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, model: type[R], record_id: UUID) -> bool:
        """
        Delete a record by ID.

        Returns:
            True if a record was deleted, False if none existed
        """
        pass

    @abstractmethod
    async def list_records(
        self,
        model: type[R],
        user_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[R]:
        """
        List records of one kind with optional filters.

        Args:
            model: Record kind
            user_id: Only records owned by this user; None means every user
            date_from: Only records whose date field is on or after this
            date_to: Only records whose date field is on or before this
            descending: Newest first (by date field) instead of oldest first
            limit: Maximum number of results
            filters: Exact-match field filters, e.g. {"is_active": True}

        Returns:
            List of matching records
        """
        pass

    async def get_owned(
        self,
        model: type[R],
        record_id: UUID,
        user_id: str,
    ) -> Optional[R]:
        """Fetch a record only if it belongs to `user_id`."""
        record = await self.get(model, record_id)
        if record is None or not record.owned_by(user_id):
            return None
        return record

    async def get_initial_balance(self, user_id: str) -> Optional[InitialBalance]:
        rows = await self.list_records(InitialBalance, user_id=user_id, limit=1)
        return rows[0] if rows else None

    async def list_transactions_with_category(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[CategorizedTransaction]:
        """Transactions joined with their (possibly deleted) category."""
        transactions = await self.list_records(
            Transaction,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            descending=descending,
            limit=limit,
        )
        categories = await self._categories_by_id(user_id)
        return [
            CategorizedTransaction(
                transaction=t,
                category=categories.get(t.category_id),
            )
            for t in transactions
        ]

    async def list_rules_with_category(self, user_id: str) -> list[CategorizedRule]:
        rules = await self.list_records(RecurringRule, user_id=user_id)
        categories = await self._categories_by_id(user_id)
        return [
            CategorizedRule(rule=r, category=categories.get(r.category_id))
            for r in rules
        ]

    async def _categories_by_id(self, user_id: str) -> dict[UUID, Category]:
        return {c.id: c for c in await self.list_records(Category, user_id=user_id)}


def select_records(
    records: list[R],
    user_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    descending: bool = False,
    limit: Optional[int] = None,
    filters: Optional[dict[str, Any]] = None,
) -> list[R]:
    """
    Apply list_records semantics to records already loaded in memory.

    Backends that cannot filter server-side (in-memory, Sheets)
    share this so their query behaviour is identical.
    Records without a date field keep their stored order.
    """
    # Bounds without a timezone are read as UTC, like stored datetimes
    if date_from is not None:
        date_from = ensure_utc(date_from)
    if date_to is not None:
        date_to = ensure_utc(date_to)

    selected = []
    for record in records:
        if user_id is not None and record.user_id != user_id:
            continue
        if filters and any(getattr(record, k) != v for k, v in filters.items()):
            continue
        if date_from is not None or date_to is not None:
            when = record.sort_date()
            if when is None:
                continue
            if date_from is not None and when < date_from:
                continue
            if date_to is not None and when > date_to:
                continue
        selected.append(record)

    if selected and selected[0].date_field is not None:
        selected.sort(key=lambda r: r.sort_date(), reverse=descending)
    elif descending:
        selected.reverse()

    if limit is not None:
        selected = selected[:limit]
    return selected


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one scheduler run).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific record.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, optionally for one user.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Record not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate record."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
