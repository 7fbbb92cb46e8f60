import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from inventory_ledger.core.config import settings
from inventory_ledger.core.exceptions import StockConflictError, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_in_transaction(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    action: str,
    timeout: Optional[float] = None,
) -> T:
    """Run ``operation`` and commit, or roll everything back.

    Stock mutations, transaction rows, status changes and outbox events
    written by ``operation`` become durable together. The whole call is
    bounded by ``timeout`` seconds.
    """
    timeout = settings.WORKFLOW_TIMEOUT_SECONDS if timeout is None else timeout

    async def _run() -> T:
        result = await operation()
        await db.commit()
        return result

    try:
        return await asyncio.wait_for(_run(), timeout=timeout)
    except HTTPException:
        await db.rollback()
        raise
    except StaleDataError as e:
        await db.rollback()
        logger.warning(f"⚠️ {action}: stale stock record, rolled back ({str(e)})")
        raise StockConflictError()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"⚠️ {action}: concurrent write detected, rolled back ({str(e.orig)})")
        raise StockConflictError()
    except asyncio.TimeoutError:
        await db.rollback()
        logger.error(f"❌ {action}: timed out after {timeout}s, rolled back")
        raise StoreError(f"{action} timed out", status_code=status.HTTP_504_GATEWAY_TIMEOUT)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"❌ {action}: store failure, rolled back: {str(e)}")
        raise StoreError(f"{action} failed against the backing store")
