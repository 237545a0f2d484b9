"""
In-Memory Storage Implementation

Used for tests, for embedding the ledger in a single process, and as the
default backend when no external storage is configured.

Records are copied on the way in and on the way out so callers can never
mutate stored state without going through update/patch.
"""

import asyncio
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from cashledger.models.audit import AuditEvent
from cashledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    R,
    RecordNotFoundError,
    RecordStoreInterface,
    select_records,
)


class InMemoryRecordStore(RecordStoreInterface):
    """Dictionary-backed record store, one table per record kind."""

    def __init__(self):
        self._tables: dict[str, dict[UUID, Any]] = {}
        self._write_lock = asyncio.Lock()

    def _table(self, model: type[R]) -> dict[UUID, R]:
        return self._tables.setdefault(model.record_kind, {})

    async def insert(self, record: R) -> R:
        async with self._write_lock:
            table = self._table(type(record))
            if record.id in table:
                raise DuplicateError(f"{record.record_kind} already exists: {record.id}")
            table[record.id] = record.model_copy(deep=True)
        return record

    async def get(self, model: type[R], record_id: UUID) -> Optional[R]:
        record = self._table(model).get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    async def update(self, record: R) -> R:
        async with self._write_lock:
            table = self._table(type(record))
            if record.id not in table:
                raise RecordNotFoundError(f"{record.record_kind} not found: {record.id}")
            table[record.id] = record.model_copy(deep=True)
        return record

    async def patch(
        self,
        model: type[R],
        record_id: UUID,
        changes: dict[str, Any],
    ) -> R:
        async with self._write_lock:
            table = self._table(model)
            current = table.get(record_id)
            if current is None:
                raise RecordNotFoundError(f"{model.record_kind} not found: {record_id}")
            patched = model.model_validate({**current.model_dump(), **changes})
            table[record_id] = patched
        return patched.model_copy(deep=True)

    async def delete(self, model: type[R], record_id: UUID) -> bool:
        async with self._write_lock:
            return self._table(model).pop(record_id, None) is not None

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
        selected = select_records(
            list(self._table(model).values()),
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            descending=descending,
            limit=limit,
            filters=filters,
        )
        return [r.model_copy(deep=True) for r in selected]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if user_id is None or e.user_id == user_id]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
