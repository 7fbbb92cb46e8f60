import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from inventory_ledger.core.config import settings
from inventory_ledger.core.exceptions import PartialFailureError, StoreError
from inventory_ledger.models.shared.enums import OutboxEventType, OutboxStatus
from inventory_ledger.models.system.outbox_event import OutboxEvent
from inventory_ledger.services.system.external_clients import DailySummaryClient, MovementTrackerClient

logger = logging.getLogger(__name__)


class OutboxService:
    """Side effects written with the stock change and delivered after commit.

    Delivery is at-least-once: an event stays PENDING until its collaborator
    accepts it, and is marked FAILED after ``max_attempts``.
    """

    def __init__(
        self,
        db: AsyncSession,
        tracker_client: Optional[MovementTrackerClient] = None,
        summary_client: Optional[DailySummaryClient] = None,
        max_attempts: Optional[int] = None,
    ):
        self.db = db
        self.tracker_client = tracker_client or MovementTrackerClient()
        self.summary_client = summary_client or DailySummaryClient()
        self.max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS

    async def enqueue(self, event_type: OutboxEventType, payload: Dict[str, Any], dedupe_key: str) -> OutboxEvent:
        """Record an event in the caller's transaction; a known dedupe key is ignored."""
        result = await self.db.execute(select(OutboxEvent).where(OutboxEvent.dedupe_key == dedupe_key))
        existing = result.scalar_one_or_none()
        if existing:
            return existing

        event = OutboxEvent(
            event_type=OutboxEventType(event_type).value,
            payload=payload,
            status=OutboxStatus.PENDING.value,
            attempts=0,
            dedupe_key=dedupe_key,
        )
        self.db.add(event)
        await self.db.flush()
        return event

    async def get_events(self, status: Optional[OutboxStatus] = None, limit: int = 100) -> List[OutboxEvent]:
        query = select(OutboxEvent).order_by(OutboxEvent.id).limit(limit)
        if status:
            query = query.where(OutboxEvent.status == OutboxStatus(status).value)
        result = await self.db.execute(query)
        return result.scalars().all()

    async def _deliver(self, event: OutboxEvent) -> None:
        if event.event_type == OutboxEventType.MOVEMENT_TRACKED.value:
            await self.tracker_client.track_movement(event.payload)
        elif event.event_type == OutboxEventType.DAILY_SUMMARY_REQUESTED.value:
            await self.summary_client.request_summary(event.payload)
        else:
            raise ValueError(f"Unknown outbox event type {event.event_type}")

    async def dispatch_pending(self, limit: Optional[int] = None) -> Dict[str, int]:
        """Deliver pending events. Raises PartialFailureError when some deliveries failed."""
        limit = limit or settings.OUTBOX_BATCH_SIZE
        try:
            events = await self.get_events(OutboxStatus.PENDING, limit)
        except SQLAlchemyError as e:
            logger.error(f"❌ Could not load outbox events: {str(e)}")
            raise StoreError("Could not load outbox events")

        dispatched, failed = 0, 0
        errors = []
        for event in events:
            try:
                await self._deliver(event)
            except (httpx.HTTPError, ValueError) as e:
                event.attempts = (event.attempts or 0) + 1
                event.last_error = str(e)[:1000]
                if event.attempts >= self.max_attempts:
                    event.status = OutboxStatus.FAILED.value
                    logger.error(f"❌ Outbox event {event.id} ({event.event_type}) gave up after {event.attempts} attempts: {str(e)}")
                else:
                    logger.warning(f"⚠️ Outbox event {event.id} ({event.event_type}) delivery failed: {str(e)}")
                failed += 1
                errors.append({"event_id": event.id, "error": str(e)})
                continue

            event.status = OutboxStatus.DISPATCHED.value
            event.dispatched_at = datetime.now(timezone.utc)
            dispatched += 1

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Could not record outbox delivery results: {str(e)}")
            raise StoreError("Could not record outbox delivery results")

        if events:
            logger.info(f"📤 Outbox dispatch: {dispatched} delivered, {failed} failed")
        if failed:
            raise PartialFailureError(
                detail=f"{failed} of {len(events)} outbox events could not be delivered",
                completed=dispatched,
                failed=failed,
                errors=errors,
            )
        return {"dispatched": dispatched, "failed": failed}


async def dispatch_outbox_after_commit(session_factory: Callable[[], AsyncSession]) -> None:
    """Background hook run after a confirming request has committed."""
    async with session_factory() as session:
        try:
            await OutboxService(session).dispatch_pending()
        except PartialFailureError as e:
            # Left PENDING for the periodic sweep to retry
            logger.warning(f"⚠️ {e.detail}; scheduled sweep will retry")
