"""
Shared fixtures.

Every test gets a fresh in-memory store and a clock frozen at
2024-03-15 12:00 UTC; nothing reads the wall clock.
"""

from datetime import datetime, timezone

import pytest

from cashledger.audit import AuditLogger
from cashledger.clock import FixedClock
from cashledger.config import LedgerSettings
from cashledger.orchestrator import LedgerApp
from cashledger.services.storage import InMemoryAuditStorage, InMemoryRecordStore

FROZEN_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return FROZEN_NOW


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(FROZEN_NOW)


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings(timezone="UTC", storage_backend="memory")


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def app(store, audit_logger, settings, clock) -> LedgerApp:
    return LedgerApp(store, audit_logger=audit_logger, settings=settings, clock=clock)


@pytest.fixture
def user_id() -> str:
    return "user-alice"


@pytest.fixture
def other_user_id() -> str:
    return "user-bob"


@pytest.fixture
async def category(app, user_id):
    return await app.create_category(user_id, "Groceries", icon="cart", color="#22c55e")
