import logging
from typing import Callable, Optional
from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_ledger.core.database import async_session_maker
from inventory_ledger.services.inventory.pending_edit_store import PendingEditStore, build_pending_edit_store

logger = logging.getLogger(__name__)

_pending_edit_store: Optional[PendingEditStore] = None


async def get_current_user_id(x_user_id: Optional[int] = Header(None)) -> Optional[int]:
    """Acting user id forwarded by the authenticating gateway, used for audit columns."""
    return x_user_id


def get_pending_edit_store() -> PendingEditStore:
    global _pending_edit_store
    if _pending_edit_store is None:
        _pending_edit_store = build_pending_edit_store()
        logger.info(f"Pending edit store: {type(_pending_edit_store).__name__}")
    return _pending_edit_store


def get_session_factory() -> Callable[[], AsyncSession]:
    """Session factory for work that runs after the request's session is closed."""
    return async_session_maker
