import pytest
import re
from datetime import date

from inventory_ledger.core.exceptions import NotFoundError, ValidationError
from inventory_ledger.models.shared.enums import PartCategory, ReceivingStatus, TransactionType
from inventory_ledger.schemas.receiving.receiving_container import (
    ReceivingContainerCreate,
    ReceivingContainerUpdate,
    ReceivingPartCreate,
)
from inventory_ledger.services.inventory.part_service import PartService
from inventory_ledger.services.inventory.stock_record_service import StockRecordService
from inventory_ledger.services.receiving.receiving_service import ReceivingService
from inventory_ledger.services.system.outbox_service import OutboxService
from ledger_helpers import all_transactions, assert_log_explains_stock


def container(number: str, *lines, arrival: date = date(2024, 1, 9)) -> ReceivingContainerCreate:
    return ReceivingContainerCreate(
        container_number=number,
        arrival_date=arrival,
        parts=[ReceivingPartCreate(part_number=p, quantity=q) for p, q in lines],
    )


@pytest.mark.asyncio
class TestReceivingWorkflow:
    """Container intake"""

    async def test_register_assigns_sequential_arn(self, db):
        service = ReceivingService(db)
        first = await service.register_container(container("CONT-1", ("A1", 5)))
        second = await service.register_container(container("CONT-2", ("B2", 3)))

        assert re.match(r"^ARN-\d{8}-00001$", first.arn_number)
        assert second.arn_number.endswith("-00002")
        assert first.status == ReceivingStatus.PENDING.value
        assert [p.part_number for p in first.parts] == ["A1"]

    async def test_same_container_number_reuses_arn(self, db):
        service = ReceivingService(db)
        first = await service.register_container(container("CONT-1", ("A1", 5)))
        again = await service.register_container(container("CONT-1", ("B2", 7)))

        assert again.arn_number == first.arn_number
        assert sorted(p.part_number for p in again.parts) == ["A1", "B2"]

    async def test_duplicate_lines_are_rejected(self, db):
        service = ReceivingService(db)
        with pytest.raises(ValidationError):
            await service.register_container(container("CONT-1", ("A1", 5), ("a1", 2)))

        await service.register_container(container("CONT-2", ("A1", 5)))
        with pytest.raises(ValidationError):
            await service.register_container(container("CONT-2", ("A1", 1)))

    async def test_confirm_increments_stock_and_logs_inbound(self, db):
        service = ReceivingService(db)
        registered = await service.register_container(container("CONT-1", ("A1", 20), ("49600-P8000A", 4)))

        confirmed, applied = await service.confirm_container(registered.arn_number, date(2024, 1, 10))

        assert applied is True
        assert confirmed.status == ReceivingStatus.COMPLETED.value
        assert confirmed.inbound_date == date(2024, 1, 10)
        assert all(p.status == ReceivingStatus.COMPLETED.value for p in confirmed.parts)

        stock = StockRecordService(db)
        assert await stock.get_stock("A1") == 20
        assert await stock.get_stock("49600-P8000A") == 4

        [txn] = await all_transactions(db, "A1")
        assert txn.transaction_type == TransactionType.INBOUND.value
        assert txn.quantity == 20
        assert txn.transaction_date == date(2024, 1, 10)
        assert txn.reference_id == registered.arn_number
        assert txn.notes == "Container CONT-1 inbound"
        assert txn.balance_after == 20
        await assert_log_explains_stock(db, "A1", "49600-P8000A")

    async def test_confirm_registers_unknown_parts(self, db):
        service = ReceivingService(db)
        registered = await service.register_container(container("CONT-1", ("49600-P8000A", 4), ("49560-DU000", 1)))
        await service.confirm_container(registered.arn_number, date(2024, 1, 10))

        parts = PartService(db)
        assert (await parts.get_part("49600-P8000A")).category == PartCategory.REAR.value
        assert (await parts.get_part("49560-DU000")).category == PartCategory.INNER.value

    async def test_confirm_twice_applies_once(self, db):
        service = ReceivingService(db)
        registered = await service.register_container(container("CONT-1", ("A1", 20)))
        await service.confirm_container(registered.arn_number, date(2024, 1, 10))
        _, applied = await service.confirm_container(registered.arn_number, date(2024, 1, 11))

        assert applied is False
        assert await StockRecordService(db).get_stock("A1") == 20
        assert len(await all_transactions(db, "A1")) == 1

    async def test_confirm_racing_another_confirmation_applies_once(self, db, session_maker):
        service = ReceivingService(db)
        registered = await service.register_container(container("CONT-1", ("A1", 20)))
        arn_number = registered.arn_number
        pending_container = await service.get_container(arn_number)
        await db.commit()

        async with session_maker() as other:
            _, applied = await ReceivingService(other).confirm_container(arn_number, date(2024, 1, 10))
            assert applied is True

        async def _pending_lookup(_):
            return pending_container
        service._get_container_or_404 = _pending_lookup

        received, applied = await service.confirm_container(arn_number, date(2024, 1, 11))

        assert applied is False
        assert received.status == ReceivingStatus.COMPLETED.value
        assert received.inbound_date == date(2024, 1, 10)
        assert await StockRecordService(db).get_stock("A1") == 20
        assert len(await all_transactions(db, "A1")) == 1
        await assert_log_explains_stock(db, "A1")

    async def test_completed_container_is_immutable(self, db):
        service = ReceivingService(db)
        registered = await service.register_container(container("CONT-1", ("A1", 20)))
        await service.confirm_container(registered.arn_number, date(2024, 1, 10))
        line_id = registered.parts[0].id

        with pytest.raises(ValidationError):
            await service.delete_container(registered.arn_number)
        with pytest.raises(ValidationError):
            await service.update_part(registered.arn_number, line_id, 99)
        with pytest.raises(ValidationError):
            await service.update_container(registered.arn_number, ReceivingContainerUpdate(arrival_date=date(2024, 2, 1)))
        with pytest.raises(ValidationError):
            await service.register_container(container("CONT-1", ("B2", 1)))

    async def test_deleting_pending_container_leaves_stock_alone(self, db):
        service = ReceivingService(db)
        await StockRecordService(db).upsert_stock("A1", 10)
        await db.commit()
        registered = await service.register_container(container("CONT-1", ("A1", 5)))

        assert await service.delete_container(registered.arn_number) is True
        assert await service.get_container(registered.arn_number) is None
        assert await StockRecordService(db).get_stock("A1") == 10
        assert await all_transactions(db) == []

    async def test_edit_lines_while_pending(self, db):
        service = ReceivingService(db)
        registered = await service.register_container(container("CONT-1", ("A1", 5)))
        updated = await service.add_part(registered.arn_number, ReceivingPartCreate(part_number="B2", quantity=2))
        a1 = next(p for p in updated.parts if p.part_number == "A1")
        b2 = next(p for p in updated.parts if p.part_number == "B2")

        updated = await service.update_part(registered.arn_number, a1.id, 8)
        updated = await service.remove_part(registered.arn_number, b2.id)

        assert [(p.part_number, p.quantity) for p in updated.parts] == [("A1", 8)]
        with pytest.raises(NotFoundError):
            await service.update_part(registered.arn_number, b2.id, 1)

    async def test_confirm_empty_container_fails(self, db):
        service = ReceivingService(db)
        registered = await service.register_container(container("CONT-1"))
        with pytest.raises(ValidationError):
            await service.confirm_container(registered.arn_number, date(2024, 1, 10))

    async def test_confirm_enqueues_daily_summary(self, db):
        service = ReceivingService(db)
        registered = await service.register_container(container("CONT-1", ("A1", 5)))
        await service.confirm_container(registered.arn_number, date(2024, 1, 10))

        [event] = await OutboxService(db).get_events()
        assert event.event_type == "DAILY_SUMMARY_REQUESTED"
        assert event.payload["date"] == "2024-01-10"

    async def test_list_filters_by_status_and_search(self, db):
        service = ReceivingService(db)
        first = await service.register_container(container("CONT-1", ("A1", 5)))
        await service.register_container(container("BOX-9", ("A1", 5)))
        await service.confirm_container(first.arn_number, date(2024, 1, 10))

        completed = await service.get_containers(status=ReceivingStatus.COMPLETED.value)
        assert [c.container_number for c in completed["data"]] == ["CONT-1"]
        searched = await service.get_containers(search="box")
        assert searched["count"] == 1
