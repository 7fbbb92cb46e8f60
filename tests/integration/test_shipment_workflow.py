import pytest
from datetime import date

from inventory_ledger.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from inventory_ledger.models.shared.enums import ShipmentStatus, TransactionType
from inventory_ledger.schemas.logistics.shipment_sequence import ShipmentLineCreate, ShipmentSequenceCreate
from inventory_ledger.services.inventory.stock_record_service import StockRecordService
from inventory_ledger.services.logistics.shipment_service import ShipmentService
from inventory_ledger.services.system.outbox_service import OutboxService
from ledger_helpers import assert_log_explains_stock, movements, seed_parts, seed_stock

OUTBOUND = date(2024, 1, 12)


def sequence(label: str, *lines, outbound_date: date = OUTBOUND) -> ShipmentSequenceCreate:
    return ShipmentSequenceCreate(
        outbound_date=outbound_date,
        sequence_label=label,
        parts=[ShipmentLineCreate(part_number=p, quantity=q) for p, q in lines],
    )


@pytest.fixture
async def stocked(db):
    await seed_parts(db, "A1", "B2", "C3")
    await seed_stock(db, A1=20, B2=5, C3=0)
    return StockRecordService(db)


@pytest.mark.asyncio
class TestShipmentRegistration:
    """Pending sequences"""

    async def test_register_builds_sequence_number(self, db, stocked):
        registered = await ShipmentService(db).register_sequence(sequence("1", ("A1", 4), ("B2", 2)))

        assert registered.sequence_number == "20240112-1"
        assert registered.status == ShipmentStatus.PENDING.value
        assert registered.total_actual_qty == 6
        assert [(p.planned_qty, p.actual_qty) for p in registered.parts] == [(4, 4), (2, 2)]

    async def test_ad_hoc_sequence_has_no_plan(self, db, stocked):
        registered = await ShipmentService(db).register_sequence(sequence("as", ("A1", 3)))

        assert registered.sequence_number == "20240112-AS"
        assert registered.parts[0].planned_qty == 0
        assert registered.parts[0].actual_qty == 3

    async def test_unknown_part_is_rejected(self, db, stocked):
        with pytest.raises(ValidationError) as exc:
            await ShipmentService(db).register_sequence(sequence("1", ("ZZ9", 1)))
        assert "Unknown part number" in exc.value.detail

    async def test_label_is_unique_per_day(self, db, stocked):
        service = ShipmentService(db)
        await service.register_sequence(sequence("1", ("A1", 1)))
        with pytest.raises(ValidationError):
            await service.register_sequence(sequence("1", ("B2", 1)))
        other_day = await service.register_sequence(sequence("1", ("B2", 1), outbound_date=date(2024, 1, 13)))
        assert other_day.sequence_number == "20240113-1"

    async def test_editing_pending_sequence_does_not_touch_stock(self, db, stocked):
        service = ShipmentService(db)
        registered = await service.register_sequence(sequence("1", ("A1", 4), ("B2", 2)))

        replaced = await service.replace_lines(registered.id, [ShipmentLineCreate(part_number="A1", quantity=7)])
        assert [(p.part_number, p.actual_qty) for p in replaced.parts] == [("A1", 7)]

        updated = await service.update_actual_quantity(replaced.parts[0].id, 5)
        assert updated.total_actual_qty == 5
        assert updated.total_scanned_qty == 7

        assert await stocked.get_stock("A1") == 20
        assert await movements(db) == []

    async def test_cancel_pending_sequence(self, db, stocked):
        service = ShipmentService(db)
        registered = await service.register_sequence(sequence("1", ("A1", 4)))

        assert await service.cancel_sequence(registered.id) is True
        assert await service.get_sequence(registered.id) is None
        with pytest.raises(NotFoundError):
            await service.cancel_sequence(registered.id)


@pytest.mark.asyncio
class TestShipmentConfirmation:
    """Stock deduction on confirmation"""

    async def test_confirm_deducts_actual_quantities(self, db, stocked):
        service = ShipmentService(db)
        registered = await service.register_sequence(sequence("1", ("A1", 4), ("B2", 2)))
        await service.update_actual_quantity(registered.parts[0].id, 3)

        confirmed, applied, warnings = await service.confirm_sequence(registered.id)

        assert applied is True
        assert warnings == []
        assert confirmed.status == ShipmentStatus.CONFIRMED.value
        assert confirmed.confirmed_at is not None
        assert await stocked.get_stock("A1") == 17
        assert await stocked.get_stock("B2") == 3

        [txn] = await movements(db, "A1")
        assert txn.transaction_type == TransactionType.OUTBOUND.value
        assert txn.quantity == -3
        assert txn.transaction_date == OUTBOUND
        assert txn.reference_id == "20240112-1"
        assert txn.balance_after == 17
        await assert_log_explains_stock(db, "A1", "B2")

    async def test_confirm_twice_deducts_once(self, db, stocked):
        service = ShipmentService(db)
        registered = await service.register_sequence(sequence("1", ("A1", 4)))
        await service.confirm_sequence(registered.id)
        _, applied, _ = await service.confirm_sequence(registered.id)

        assert applied is False
        assert await stocked.get_stock("A1") == 16
        assert len(await movements(db, "A1")) == 1

    async def test_confirm_racing_a_committed_confirmation_deducts_once(self, db, session_maker, stocked):
        """A caller that read the sequence as PENDING re-checks it under the row lock"""
        service = ShipmentService(db)
        registered = await service.register_sequence(sequence("1", ("A1", 4)))
        sequence_id = registered.id
        pending_view = await service.get_sequence(sequence_id)
        await db.commit()
        assert pending_view.status == ShipmentStatus.PENDING.value

        async with session_maker() as other:
            _, applied, _ = await ShipmentService(other).confirm_sequence(sequence_id)
            assert applied is True

        async def _pending_lookup(_):
            return pending_view
        service._get_sequence_or_404 = _pending_lookup

        confirmed, applied, warnings = await service.confirm_sequence(sequence_id)

        assert applied is False
        assert warnings == []
        assert confirmed.status == ShipmentStatus.CONFIRMED.value
        assert await stocked.get_stock("A1") == 16
        assert [t.quantity for t in await movements(db, "A1")] == [-4]
        assert len(await OutboxService(db).get_events()) == 2
        await assert_log_explains_stock(db, "A1")

    async def test_subset_confirmation_closes_other_lines(self, db, stocked):
        service = ShipmentService(db)
        registered = await service.register_sequence(sequence("1", ("A1", 4), ("B2", 2)))
        a1 = next(p for p in registered.parts if p.part_number == "A1")

        confirmed, applied, _ = await service.confirm_sequence(registered.id, part_ids=[a1.id])

        assert applied is True
        assert confirmed.status == ShipmentStatus.CONFIRMED.value
        b2 = next(p for p in confirmed.parts if p.part_number == "B2")
        assert b2.actual_qty == 0
        assert b2.status == ShipmentStatus.CONFIRMED.value
        assert confirmed.total_actual_qty == 4
        assert await stocked.get_stock("A1") == 16
        assert await stocked.get_stock("B2") == 5
        assert await movements(db, "B2") == []

    async def test_subset_with_foreign_line_is_rejected(self, db, stocked):
        service = ShipmentService(db)
        first = await service.register_sequence(sequence("1", ("A1", 1)))
        second = await service.register_sequence(sequence("2", ("B2", 1)))

        with pytest.raises(ValidationError):
            await service.confirm_sequence(first.id, part_ids=[second.parts[0].id])
        assert (await service.get_sequence(first.id)).status == ShipmentStatus.PENDING.value

    async def test_negative_stock_allowed_returns_warning(self, db, stocked):
        service = ShipmentService(db, allow_negative_stock=True)
        registered = await service.register_sequence(sequence("1", ("B2", 8)))

        _, applied, warnings = await service.confirm_sequence(registered.id)

        assert applied is True
        assert len(warnings) == 1
        assert "B2" in warnings[0]
        record = await stocked.get_stock_record("B2")
        assert record.current_stock == -3
        assert record.status == "out_of_stock"
        await assert_log_explains_stock(db, "B2")

    async def test_negative_stock_disallowed_changes_nothing(self, db, stocked):
        service = ShipmentService(db, allow_negative_stock=False)
        registered = await service.register_sequence(sequence("1", ("A1", 2), ("C3", 1)))
        sequence_id = registered.id

        with pytest.raises(InsufficientStockError):
            await service.confirm_sequence(sequence_id)

        assert await stocked.get_stock("A1") == 20
        assert await stocked.get_stock("C3") == 0
        assert await movements(db) == []
        assert (await service.get_sequence(sequence_id)).status == ShipmentStatus.PENDING.value

    async def test_confirmed_sequence_cannot_be_edited_or_cancelled(self, db, stocked):
        service = ShipmentService(db)
        registered = await service.register_sequence(sequence("1", ("A1", 2)))
        line_id = registered.parts[0].id
        await service.confirm_sequence(registered.id)

        with pytest.raises(ValidationError):
            await service.cancel_sequence(registered.id)
        with pytest.raises(ValidationError):
            await service.update_actual_quantity(line_id, 1)
        with pytest.raises(ValidationError):
            await service.replace_lines(registered.id, [ShipmentLineCreate(part_number="A1", quantity=1)])

    async def test_confirm_enqueues_tracking_and_summary(self, db, stocked):
        service = ShipmentService(db)
        registered = await service.register_sequence(sequence("1", ("A1", 2), ("B2", 1)))
        await service.confirm_sequence(registered.id)

        events = await OutboxService(db).get_events()
        types = sorted(e.event_type for e in events)
        assert types == ["DAILY_SUMMARY_REQUESTED", "MOVEMENT_TRACKED", "MOVEMENT_TRACKED"]
        tracked = next(e for e in events if e.payload.get("part_number") == "A1")
        assert tracked.payload["quantity"] == 2
        assert tracked.payload["balance_after"] == 18
        assert tracked.payload["date"] == "2024-01-12"
