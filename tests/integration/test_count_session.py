import pytest
from datetime import date

from inventory_ledger.core.exceptions import NotFoundError, StoreError, ValidationError
from inventory_ledger.models.shared.enums import CountItemDisplay, CountSessionStatus, TransactionType
from inventory_ledger.schemas.inventory.count_session import CountItemCreate, CountSessionCreate
from inventory_ledger.services.inventory.count_session_service import CountSessionService
from inventory_ledger.services.inventory.pending_edit_store import InMemoryPendingEditStore
from inventory_ledger.services.inventory.stock_record_service import StockRecordService
from ledger_helpers import assert_log_explains_stock, movements, seed_parts, seed_stock

COUNT_DAY = date(2024, 1, 11)


class FailingDiscardStore(InMemoryPendingEditStore):
    async def discard(self, session_id: int) -> None:
        raise StoreError("Pending edit store unavailable")


@pytest.fixture
async def stocked(db):
    await seed_parts(db, "A1", "B2")
    await seed_stock(db, A1=100, B2=7)
    return StockRecordService(db)


async def open_session(service: CountSessionService, *parts: str):
    view = await service.create_session(CountSessionCreate(session_name="Monthly count", session_date=COUNT_DAY))
    for part_number in parts:
        view = await service.add_item(view.id, CountItemCreate(part_number=part_number))
    return view


def item_for(view, part_number: str):
    return next(i for i in view.items if i.part_number == part_number)


@pytest.mark.asyncio
class TestCountSessionItems:
    """Building and editing an active count"""

    async def test_item_snapshots_system_stock(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1", "B2")

        a1 = item_for(view, "A1")
        assert view.status == CountSessionStatus.ACTIVE
        assert a1.system_stock == 100
        assert a1.physical_stock == 100
        assert a1.difference == 0
        assert a1.display_status == CountItemDisplay.MATCHED

    async def test_duplicate_and_unknown_parts_are_rejected(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1")

        with pytest.raises(ValidationError):
            await service.add_item(view.id, CountItemCreate(part_number="a1"))
        with pytest.raises(ValidationError):
            await service.add_item(view.id, CountItemCreate(part_number="NOPE-1"))

    async def test_staged_edits_show_on_read_without_touching_stock(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1")
        item_id = item_for(view, "A1").id

        await service.stage_edit(view.id, item_id, physical_stock=97, notes="shelf B")
        view = await service.get_session_view(view.id)

        a1 = item_for(view, "A1")
        assert a1.physical_stock == 97
        assert a1.difference == -3
        assert a1.notes == "shelf B"
        assert a1.has_pending_edit is True
        assert a1.display_status == CountItemDisplay.DIFFERENCE
        assert view.pending_edit_count == 1
        assert await stocked.get_stock("A1") == 100

    async def test_edit_back_to_stored_value_clears_pending(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1")
        item_id = item_for(view, "A1").id

        await service.stage_edit(view.id, item_id, physical_stock=97)
        edit = await service.stage_edit(view.id, item_id, physical_stock=100)

        assert edit is None
        assert await pending_store.get_edits(view.id) == {}
        view = await service.get_session_view(view.id)
        assert item_for(view, "A1").has_pending_edit is False

    async def test_negative_count_is_rejected(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1")

        with pytest.raises(ValidationError):
            await service.stage_edit(view.id, item_for(view, "A1").id, physical_stock=-1)

    async def test_unknown_item_is_not_found(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1")

        with pytest.raises(NotFoundError):
            await service.stage_edit(view.id, 9999, physical_stock=1)

    async def test_discard_drops_pending_edits(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1")
        await service.stage_edit(view.id, item_for(view, "A1").id, physical_stock=50)

        await service.discard_edits(view.id)

        view = await service.get_session_view(view.id)
        assert item_for(view, "A1").physical_stock == 100

    async def test_preview_lists_only_differences(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1", "B2")
        await service.stage_edit(view.id, item_for(view, "B2").id, physical_stock=9)

        preview = await service.preview_completion(view.id)

        assert [(line.part_number, line.difference) for line in preview] == [("B2", 2)]


@pytest.mark.asyncio
class TestCountSessionCompletion:
    """Applying a count to stock"""

    async def test_latest_pending_value_is_applied(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1", "B2")
        item_id = item_for(view, "A1").id
        await service.stage_edit(view.id, item_id, physical_stock=97)
        await service.stage_edit(view.id, item_id, physical_stock=95)

        completed, applied, adjusted = await service.complete_session(view.id)

        assert applied is True
        assert adjusted == ["A1"]
        assert completed.status == CountSessionStatus.COMPLETED
        assert completed.completed_at is not None
        assert all(i.display_status == CountItemDisplay.COMPLETED for i in completed.items)
        assert item_for(completed, "A1").physical_stock == 95
        assert await stocked.get_stock("A1") == 95
        assert await stocked.get_stock("B2") == 7

        [txn] = await movements(db, "A1")
        assert txn.transaction_type == TransactionType.PHYSICAL_INVENTORY.value
        assert txn.quantity == -5
        assert txn.transaction_date == COUNT_DAY
        assert txn.reference_id == f"COUNT-{view.id}"
        assert txn.balance_after == 95
        assert await movements(db, "B2") == []
        assert await pending_store.get_edits(view.id) == {}
        await assert_log_explains_stock(db, "A1", "B2")

    async def test_completion_is_applied_once(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1")
        await service.stage_edit(view.id, item_for(view, "A1").id, physical_stock=120)
        await service.complete_session(view.id)

        _, applied, adjusted = await service.complete_session(view.id)

        assert applied is False
        assert adjusted == []
        assert await stocked.get_stock("A1") == 120
        assert len(await movements(db, "A1")) == 1

    async def test_completion_racing_another_completion_applies_once(self, db, session_maker, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1")
        await service.stage_edit(view.id, item_for(view, "A1").id, physical_stock=120)
        active_session = await service.get_session(view.id)
        await db.commit()

        async with session_maker() as other:
            _, applied, _ = await CountSessionService(other, pending_store).complete_session(view.id)
            assert applied is True

        async def _active_lookup(_):
            return active_session
        service._get_session_or_404 = _active_lookup

        completed, applied, adjusted = await service.complete_session(view.id)

        assert applied is False
        assert adjusted == []
        assert completed.status == CountSessionStatus.COMPLETED
        assert await stocked.get_stock("A1") == 120
        assert [t.quantity for t in await movements(db, "A1")] == [20]
        await assert_log_explains_stock(db, "A1")

    async def test_completed_session_rejects_edits(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service, "A1")
        item_id = item_for(view, "A1").id
        await service.complete_session(view.id)

        with pytest.raises(ValidationError):
            await service.stage_edit(view.id, item_id, physical_stock=1)
        with pytest.raises(ValidationError):
            await service.add_item(view.id, CountItemCreate(part_number="B2"))

    async def test_empty_session_cannot_complete(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        view = await open_session(service)
        with pytest.raises(ValidationError):
            await service.complete_session(view.id)

    async def test_store_failure_after_commit_keeps_completion(self, db, stocked):
        store = FailingDiscardStore()
        service = CountSessionService(db, store)
        view = await open_session(service, "A1")
        await service.stage_edit(view.id, item_for(view, "A1").id, physical_stock=90)

        completed, applied, _ = await service.complete_session(view.id)

        assert applied is True
        assert completed.status == CountSessionStatus.COMPLETED
        assert item_for(completed, "A1").physical_stock == 90
        assert item_for(completed, "A1").has_pending_edit is False
        assert await stocked.get_stock("A1") == 90

    async def test_list_sessions_by_status(self, db, pending_store, stocked):
        service = CountSessionService(db, pending_store)
        first = await open_session(service, "A1")
        await open_session(service, "B2")
        await service.complete_session(first.id)

        completed = await service.get_sessions(status=CountSessionStatus.COMPLETED.value)
        active = await service.get_sessions(status=CountSessionStatus.ACTIVE.value)
        assert [s.id for s in completed["data"]] == [first.id]
        assert active["count"] == 1
