"""Shared plumbing of the record flows."""

import asyncio
import weakref
from typing import Any, Optional
from uuid import UUID

from cashledger.audit import AuditLogger
from cashledger.clock import Clock, SystemClock
from cashledger.config import LedgerSettings, get_settings
from cashledger.flows.access import require_owned
from cashledger.models.audit import AuditEventType
from cashledger.models.records import Category, LedgerRecord
from cashledger.services.storage import RecordStoreInterface
from cashledger.services.storage.interface import R
from cashledger.validation import RecordValidator


class _Unchanged:
    def __repr__(self) -> str:
        return "UNCHANGED"


# Default of every update argument; None is a real value (clears the field)
UNCHANGED: Any = _Unchanged()


def changed_fields(**fields: Any) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not UNCHANGED}


class LedgerFlow:
    """
    Base class of the flows that mutate one record kind.

    Every public operation follows the same order:
    1. require_user (UnauthenticatedError)
    2. ownership of every referenced record (NotFoundError)
    3. argument validation (InvalidArgumentError)
    4. write, then audit
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Clock] = None,
        validator: Optional[RecordValidator] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger
        self._clock = clock or SystemClock()
        self._validator = validator or RecordValidator(self._settings)
        # A lock lives only while some task holds or awaits it
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, record_id: UUID) -> asyncio.Lock:
        """Serializes read-modify-write sequences on one record."""
        lock = self._locks.get(record_id)
        if lock is None:
            lock = self._locks[record_id] = asyncio.Lock()
        return lock

    async def _owned(self, model: type[R], record_id: UUID, user_id: str, label: str) -> R:
        return await require_owned(self._store, model, record_id, user_id, label)

    async def _owned_category(self, category_id: UUID, user_id: str) -> Category:
        return await self._owned(Category, category_id, user_id, "Category")

    async def _audit(
        self,
        event_type: AuditEventType,
        record: LedgerRecord,
        description: str,
        details: Optional[dict] = None,
    ) -> None:
        await self._audit_logger.log_record_changed(
            event_type=event_type,
            user_id=record.user_id,
            entity_type=record.record_kind,
            entity_id=record.id,
            description=description,
            details=details,
        )
