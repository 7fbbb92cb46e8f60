"""
Background delivery of outbox events and ledger consistency checks
"""
import asyncio
import logging
from datetime import date, timedelta
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from inventory_ledger.core.celery_app import celery_app
from inventory_ledger.core.config import settings
from inventory_ledger.core.exceptions import PartialFailureError, StoreError
from inventory_ledger.services.inventory.reconciliation_service import ReconciliationService
from inventory_ledger.services.system.outbox_service import OutboxService

logger = logging.getLogger(__name__)

# Each task runs in its own event loop, so connections are not pooled across tasks
async_engine = create_async_engine(settings.DATABASE_URL, echo=False, future=True, poolclass=NullPool)

async_session_maker = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def run_async_in_celery(coro):
    """Run a coroutine on a fresh event loop owned by this task"""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        return loop.run_until_complete(coro)
    finally:
        asyncio.set_event_loop(None)
        loop.close()


@celery_app.task(bind=True, max_retries=5)
def dispatch_outbox_events(self, limit: int = None):
    """Deliver pending movement-tracker and daily-summary events"""
    async def _dispatch():
        async with async_session_maker() as db:
            return await OutboxService(db).dispatch_pending(limit)

    try:
        result = run_async_in_celery(_dispatch())
        return {"status": "completed", **result}
    except (PartialFailureError, StoreError) as e:
        logger.warning(f"⚠️ Outbox dispatch incomplete: {e.detail}")
        raise self.retry(exc=e, countdown=60)


@celery_app.task(bind=True)
def check_ledger_consistency(self, shipment_days: int = 7, repair: bool = False):
    """Report stock records the log does not explain and shipments whose log rows disagree"""
    async def _check():
        async with async_session_maker() as db:
            service = ReconciliationService(db)
            if repair:
                divergences = await service.repair()
            else:
                divergences = await service.find_divergences()
            mismatches = await service.verify_shipments(date.today() - timedelta(days=shipment_days))
            return divergences, mismatches

    try:
        divergences, mismatches = run_async_in_celery(_check())
    except StoreError as e:
        logger.error(f"❌ Ledger consistency check failed: {e.detail}")
        raise self.retry(exc=e, countdown=300, max_retries=3)

    if divergences or mismatches:
        logger.warning(
            f"⚠️ Ledger check: {len(divergences)} divergent part(s), "
            f"{len(mismatches)} shipment mismatch(es){' repaired' if repair and divergences else ''}"
        )
    else:
        logger.info("🔍 Ledger check: stock and transaction log agree")

    return {
        "status": "completed",
        "divergences": [d.model_dump() for d in divergences],
        "shipment_mismatches": [m.model_dump() for m in mismatches],
    }
