import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import and_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from inventory_ledger.core.exceptions import NotFoundError, StoreError, ValidationError
from inventory_ledger.models.inventory.count_item import CountItem
from inventory_ledger.models.inventory.count_session import CountSession
from inventory_ledger.models.shared.enums import (
    CountItemDisplay,
    CountItemStatus,
    CountSessionStatus,
    OutboxEventType,
    TransactionType,
)
from inventory_ledger.schemas.inventory.count_session import (
    CompletionPreviewLine,
    CountItemCreate,
    CountItemView,
    CountSessionCreate,
    CountSessionInDB,
    CountSessionView,
    PendingEdit,
)
from inventory_ledger.services.common.unit_of_work import run_in_transaction
from inventory_ledger.services.inventory.part_service import PartService
from inventory_ledger.services.inventory.pending_edit_store import CountItemId, PendingEditStore
from inventory_ledger.services.inventory.stock_ledger import StockLedger
from inventory_ledger.services.system.outbox_service import OutboxService
from inventory_ledger.utils.validators.validation_utils import ensure_quantity, normalize_part_number

logger = logging.getLogger(__name__)


class CountSessionService:
    """Physical count sessions.

    While a session is ACTIVE, edits to an item's counted quantity or notes
    are kept in a PendingEditStore and shown on read. Completion persists the
    latest values, closes every item and overwrites stock for each part whose
    count differs, logging the signed delta as a PHYSICAL_INVENTORY movement.
    """

    def __init__(self, db: AsyncSession, pending_edits: PendingEditStore, timeout: Optional[float] = None):
        self.db = db
        self.pending_edits = pending_edits
        self.timeout = timeout
        self.part_service = PartService(db)
        self.ledger = StockLedger(db)
        self.outbox = OutboxService(db)

    async def get_session(self, session_id: int, lock: bool = False) -> Optional[CountSession]:
        query = (
            select(CountSession)
            .options(selectinload(CountSession.items))
            .where(
                and_(
                    CountSession.id == session_id,
                    CountSession.is_deleted == False
                )
            )
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _get_session_or_404(self, session_id: int) -> CountSession:
        session = await self.get_session(session_id)
        if not session:
            raise NotFoundError(f"Count session {session_id} not found")
        return session

    @staticmethod
    def _ensure_active(session: CountSession, action: str) -> None:
        if session.status == CountSessionStatus.COMPLETED.value:
            raise ValidationError(f"Cannot {action} completed count session {session.id}")

    async def create_session(self, session_data: CountSessionCreate, user_id: Optional[int] = None) -> CountSessionView:
        session = CountSession(
            session_name=session_data.session_name.strip(),
            session_date=session_data.session_date,
            notes=session_data.notes,
            status=CountSessionStatus.ACTIVE.value,
            created_by=user_id,
        )

        async def _create():
            self.db.add(session)
            await self.db.flush()

        await run_in_transaction(self.db, _create, action="Create count session", timeout=self.timeout)
        logger.info(f"🧮 Opened count session {session.id} '{session.session_name}' for {session.session_date}")
        return await self.get_session_view(session.id)

    async def add_item(
        self, session_id: int, item_data: CountItemCreate, user_id: Optional[int] = None
    ) -> CountSessionView:
        """Add a part to the session, snapshotting its current system stock."""
        session = await self._get_session_or_404(session_id)
        self._ensure_active(session, "add items to")

        part_number = normalize_part_number(item_data.part_number)
        await self.part_service.require_parts([part_number])
        if any(item.part_number == part_number for item in session.items):
            raise ValidationError(f"Part {part_number} is already in count session {session_id}")

        system_stock = await self.ledger.stock.get_stock(part_number)
        physical_stock = system_stock if item_data.physical_stock is None else item_data.physical_stock
        ensure_quantity(physical_stock, "Physical stock")

        async def _add():
            session.items.append(
                CountItem(
                    part_number=part_number,
                    system_stock=system_stock,
                    physical_stock=physical_stock,
                    difference=physical_stock - system_stock,
                    status=CountItemStatus.PENDING.value,
                    notes=item_data.notes,
                    created_by=user_id,
                )
            )
            await self.db.flush()

        await run_in_transaction(self.db, _add, action=f"Add {part_number} to count session {session_id}", timeout=self.timeout)
        return await self.get_session_view(session_id)

    async def stage_edit(
        self,
        session_id: int,
        item_id: int,
        physical_stock: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Optional[PendingEdit]:
        """Buffer an edit for an item. A value equal to the stored one clears that field."""
        session = await self._get_session_or_404(session_id)
        self._ensure_active(session, "edit items of")
        item = next((i for i in session.items if i.id == item_id), None)
        if item is None:
            raise NotFoundError(f"Count item {item_id} not found in session {session_id}")
        if item.status == CountItemStatus.COMPLETED.value:
            raise ValidationError(f"Count item {item_id} is completed")
        if physical_stock is not None:
            ensure_quantity(physical_stock, "Physical stock")

        key = CountItemId(item.id)
        edit = await self.pending_edits.get_edit(session_id, key) or PendingEdit()
        if physical_stock is not None:
            edit.physical_stock = None if physical_stock == item.physical_stock else physical_stock
        if notes is not None:
            edit.notes = None if notes == (item.notes or "") else notes

        if edit.is_empty():
            await self.pending_edits.remove_edit(session_id, key)
            return None
        await self.pending_edits.put_edit(session_id, key, edit)
        return edit

    async def discard_edits(self, session_id: int) -> None:
        await self._get_session_or_404(session_id)
        await self.pending_edits.discard(session_id)

    @staticmethod
    def _effective_values(item: CountItem, edit: Optional[PendingEdit]) -> Tuple[int, Optional[str]]:
        physical = item.physical_stock
        notes = item.notes
        if edit is not None:
            if edit.physical_stock is not None:
                physical = edit.physical_stock
            if edit.notes is not None:
                notes = edit.notes
        return physical, notes

    def _item_view(self, item: CountItem, edit: Optional[PendingEdit]) -> CountItemView:
        physical, notes = self._effective_values(item, edit)
        difference = physical - item.system_stock
        if item.status == CountItemStatus.COMPLETED.value:
            display = CountItemDisplay.COMPLETED
        elif difference == 0:
            display = CountItemDisplay.MATCHED
        else:
            display = CountItemDisplay.DIFFERENCE
        return CountItemView(
            id=item.id,
            part_number=item.part_number,
            system_stock=item.system_stock,
            physical_stock=physical,
            difference=difference,
            notes=notes,
            status=item.status,
            display_status=display,
            has_pending_edit=edit is not None,
        )

    async def get_session_view(self, session_id: int) -> CountSessionView:
        """Session with every item showing its most recent (pending or stored) values."""
        session = await self._get_session_or_404(session_id)
        edits: Dict[CountItemId, PendingEdit] = {}
        if session.status == CountSessionStatus.ACTIVE.value:
            edits = await self.pending_edits.get_edits(session_id)

        items = [self._item_view(item, edits.get(CountItemId(item.id))) for item in session.items]
        return CountSessionView(
            **CountSessionInDB.model_validate(session).model_dump(),
            items=items,
            pending_edit_count=sum(1 for item in items if item.has_pending_edit),
        )

    async def preview_completion(self, session_id: int) -> List[CompletionPreviewLine]:
        """Items whose counted quantity differs from the system snapshot."""
        view = await self.get_session_view(session_id)
        return [
            CompletionPreviewLine(
                item_id=item.id,
                part_number=item.part_number,
                system_stock=item.system_stock,
                physical_stock=item.physical_stock,
                difference=item.difference,
            )
            for item in view.items
            if item.difference != 0
        ]

    async def complete_session(
        self, session_id: int, user_id: Optional[int] = None
    ) -> Tuple[CountSessionView, bool, List[str]]:
        """Apply the count. Returns the session view, whether it was applied now, and the adjusted parts."""
        session = await self._get_session_or_404(session_id)
        if session.status == CountSessionStatus.COMPLETED.value:
            logger.info(f"Count session {session_id} already completed, nothing to apply")
            return await self.get_session_view(session_id), False, []
        if not session.items:
            raise ValidationError(f"Count session {session_id} has no items to complete")

        edits = await self.pending_edits.get_edits(session_id)
        adjusted: List[str] = []

        async def _complete() -> bool:
            current = await self.get_session(session_id, lock=True)
            if current is None:
                raise NotFoundError(f"Count session {session_id} not found")
            if current.status == CountSessionStatus.COMPLETED.value:
                return False

            for item in sorted(current.items, key=lambda i: i.part_number):
                physical, notes = self._effective_values(item, edits.get(CountItemId(item.id)))
                item.physical_stock = physical
                item.notes = notes
                item.difference = physical - item.system_stock
                item.status = CountItemStatus.COMPLETED.value
                item.updated_by = user_id

            current.status = CountSessionStatus.COMPLETED.value
            current.completed_at = datetime.now(timezone.utc)
            current.updated_by = user_id

            for item in sorted(current.items, key=lambda i: i.part_number):
                if item.difference == 0:
                    continue
                transaction, applied = await self.ledger.overwrite(
                    part_number=item.part_number,
                    new_value=item.physical_stock,
                    transaction_type=TransactionType.PHYSICAL_INVENTORY,
                    transaction_date=current.session_date,
                    reference_id=f"COUNT-{session_id}",
                    client_txn_id=f"CNT:{session_id}:{item.id}",
                    notes=item.notes,
                    user_id=user_id,
                )
                if applied:
                    adjusted.append(item.part_number)

            await self.outbox.enqueue(
                OutboxEventType.DAILY_SUMMARY_REQUESTED,
                {
                    "date": current.session_date.isoformat(),
                    "source": "physical_count",
                    "reference_id": f"COUNT-{session_id}",
                },
                dedupe_key=f"SUMMARY:{current.session_date.isoformat()}:COUNT-{session_id}",
            )
            await self.db.flush()
            return True

        applied = await run_in_transaction(
            self.db, _complete, action=f"Complete count session {session_id}", timeout=self.timeout
        )
        if not applied:
            logger.info(f"Count session {session_id} was completed concurrently, nothing to apply")
            return await self.get_session_view(session_id), False, []
        logger.info(
            f"✅ Count session {session_id} completed: {len(adjusted)} stock adjustment(s)"
        )

        try:
            await self.pending_edits.discard(session_id)
        except StoreError:
            # Completed sessions ignore stored edits; the TTL clears the leftovers
            logger.warning(f"⚠️ Pending edits for completed session {session_id} were not discarded")
        return await self.get_session_view(session_id), True, adjusted

    async def get_sessions(
        self,
        page_index: int = 1,
        page_size: int = 100,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Get count sessions with pagination"""
        query = (
            select(CountSession)
            .where(CountSession.is_deleted == False)
            .order_by(desc(CountSession.session_date), desc(CountSession.id))
        )
        if status:
            query = query.where(CountSession.status == status)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        result = await self.db.execute(query.offset((page_index - 1) * page_size).limit(page_size))
        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total,
            "data": result.scalars().all(),
        }
