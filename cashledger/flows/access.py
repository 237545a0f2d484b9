"""
Identity and ownership guards.

Authentication itself happens outside the core; by the time an
operation runs, the caller is an opaque user id. These guards only
check that one was given and that the record it targets is its own.
A record owned by someone else is reported exactly like a missing one.
"""

from typing import Optional
from uuid import UUID

from cashledger.errors import NotFoundError, UnauthenticatedError
from cashledger.services.storage import RecordStoreInterface
from cashledger.services.storage.interface import R


def require_user(user_id: Optional[str]) -> str:
    if not user_id or not str(user_id).strip():
        raise UnauthenticatedError()
    return user_id


async def require_owned(
    store: RecordStoreInterface,
    model: type[R],
    record_id: UUID,
    user_id: str,
    label: str,
) -> R:
    """Fetch `record_id` or raise NotFoundError if absent or foreign."""
    record = await store.get_owned(model, record_id, user_id)
    if record is None:
        raise NotFoundError(label, record_id)
    return record
