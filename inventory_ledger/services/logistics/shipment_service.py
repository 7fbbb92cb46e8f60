import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import and_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from inventory_ledger.core.config import settings
from inventory_ledger.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from inventory_ledger.models.logistics.shipment_part import ShipmentPart
from inventory_ledger.models.logistics.shipment_sequence import ShipmentSequence
from inventory_ledger.models.shared.enums import OutboxEventType, ShipmentStatus, TransactionType
from inventory_ledger.schemas.logistics.shipment_sequence import ShipmentLineCreate, ShipmentSequenceCreate
from inventory_ledger.services.common.unit_of_work import run_in_transaction
from inventory_ledger.services.inventory.part_service import PartService
from inventory_ledger.services.inventory.stock_ledger import StockLedger
from inventory_ledger.services.system.outbox_service import OutboxService
from inventory_ledger.utils.validators.validation_utils import ensure_quantity, normalize_part_number

logger = logging.getLogger(__name__)

AD_HOC_LABEL = "AS"


class ShipmentService:
    """Outbound sequences.

    A PENDING sequence can be edited freely without touching stock. Confirming
    it deducts each line's actual quantity exactly once and moves the sequence
    to the terminal CONFIRMED state.
    """

    def __init__(
        self,
        db: AsyncSession,
        allow_negative_stock: Optional[bool] = None,
        timeout: Optional[float] = None,
    ):
        self.db = db
        self.allow_negative_stock = (
            settings.ALLOW_NEGATIVE_STOCK if allow_negative_stock is None else allow_negative_stock
        )
        self.timeout = timeout
        self.part_service = PartService(db)
        self.ledger = StockLedger(db)
        self.outbox = OutboxService(db)

    @staticmethod
    def build_sequence_number(outbound_date: date, sequence_label: str) -> str:
        return f"{outbound_date.strftime('%Y%m%d')}-{sequence_label}"

    async def _build_lines(
        self, lines: List[ShipmentLineCreate], sequence_label: str, user_id: Optional[int]
    ) -> List[ShipmentPart]:
        seen = set()
        for line in lines:
            part_number = normalize_part_number(line.part_number)
            ensure_quantity(line.quantity, f"Quantity for {part_number}", allow_zero=False)
            if part_number in seen:
                raise ValidationError(f"Duplicate line for part {part_number}")
            seen.add(part_number)
        await self.part_service.require_parts(seen)

        ad_hoc = sequence_label.upper() == AD_HOC_LABEL
        return [
            ShipmentPart(
                part_number=normalize_part_number(line.part_number),
                planned_qty=0 if ad_hoc else line.quantity,
                scanned_qty=line.quantity,
                actual_qty=line.quantity,
                status=ShipmentStatus.PENDING.value,
                created_by=user_id,
            )
            for line in lines
        ]

    @staticmethod
    def _recompute_totals(sequence: ShipmentSequence) -> None:
        sequence.total_scanned_qty = sum(p.scanned_qty or 0 for p in sequence.parts)
        sequence.total_actual_qty = sum(p.actual_qty or 0 for p in sequence.parts)

    async def get_sequence(self, sequence_id: int, lock: bool = False) -> Optional[ShipmentSequence]:
        """Load a sequence with its lines. ``lock`` takes the header row FOR UPDATE."""
        query = (
            select(ShipmentSequence)
            .options(selectinload(ShipmentSequence.parts))
            .where(
                and_(
                    ShipmentSequence.id == sequence_id,
                    ShipmentSequence.is_deleted == False
                )
            )
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _get_sequence_or_404(self, sequence_id: int) -> ShipmentSequence:
        sequence = await self.get_sequence(sequence_id)
        if not sequence:
            raise NotFoundError(f"Shipment sequence {sequence_id} not found")
        return sequence

    @staticmethod
    def _ensure_pending(sequence: ShipmentSequence, action: str) -> None:
        if sequence.status == ShipmentStatus.CONFIRMED.value:
            raise ValidationError(f"Cannot {action} confirmed sequence {sequence.sequence_number}")

    async def register_sequence(
        self, sequence_data: ShipmentSequenceCreate, user_id: Optional[int] = None
    ) -> ShipmentSequence:
        """Register a PENDING sequence with pre-filled actual quantities, bypassing scanning."""
        label = sequence_data.sequence_label.strip().upper()
        if not label:
            raise ValidationError("Sequence label is required")
        sequence_number = self.build_sequence_number(sequence_data.outbound_date, label)

        result = await self.db.execute(
            select(ShipmentSequence.id).where(ShipmentSequence.sequence_number == sequence_number)
        )
        if result.scalar_one_or_none():
            raise ValidationError(f"Sequence {label} already exists for {sequence_data.outbound_date}")

        parts = await self._build_lines(sequence_data.parts, label, user_id)
        sequence = ShipmentSequence(
            sequence_number=sequence_number,
            outbound_date=sequence_data.outbound_date,
            sequence_label=label,
            status=ShipmentStatus.PENDING.value,
            created_by=user_id,
            parts=parts,
        )
        self._recompute_totals(sequence)

        async def _create():
            self.db.add(sequence)
            await self.db.flush()

        await run_in_transaction(self.db, _create, action=f"Register sequence {sequence_number}", timeout=self.timeout)
        logger.info(f"🚚 Registered sequence {sequence_number} with {len(parts)} line(s)")
        return await self.get_sequence(sequence.id)

    async def replace_lines(
        self, sequence_id: int, lines: List[ShipmentLineCreate], user_id: Optional[int] = None
    ) -> ShipmentSequence:
        """Edit mode: swap every line of a pending sequence."""
        sequence = await self._get_sequence_or_404(sequence_id)
        self._ensure_pending(sequence, "edit")
        parts = await self._build_lines(lines, sequence.sequence_label, user_id)

        async def _replace():
            sequence.parts = parts
            self._recompute_totals(sequence)
            sequence.updated_by = user_id
            await self.db.flush()

        await run_in_transaction(self.db, _replace, action=f"Edit sequence {sequence.sequence_number}", timeout=self.timeout)
        return await self.get_sequence(sequence_id)

    async def update_actual_quantity(
        self, part_id: int, actual_qty: int, user_id: Optional[int] = None
    ) -> ShipmentSequence:
        """Change a line's actual quantity; only the sequence totals are recomputed."""
        ensure_quantity(actual_qty, "Actual quantity")
        result = await self.db.execute(select(ShipmentPart.sequence_id).where(ShipmentPart.id == part_id))
        sequence_id = result.scalar_one_or_none()
        if sequence_id is None:
            raise NotFoundError(f"Shipment line {part_id} not found")

        sequence = await self._get_sequence_or_404(sequence_id)
        self._ensure_pending(sequence, "edit")
        line = next(p for p in sequence.parts if p.id == part_id)

        async def _update():
            line.actual_qty = actual_qty
            line.updated_by = user_id
            self._recompute_totals(sequence)
            await self.db.flush()

        await run_in_transaction(self.db, _update, action=f"Update shipment line {part_id}", timeout=self.timeout)
        return await self.get_sequence(sequence_id)

    async def cancel_sequence(self, sequence_id: int) -> bool:
        """Remove a pending sequence and its lines. Stock was never touched."""
        sequence = await self._get_sequence_or_404(sequence_id)
        self._ensure_pending(sequence, "cancel")

        async def _delete():
            await self.db.delete(sequence)
            await self.db.flush()

        await run_in_transaction(self.db, _delete, action=f"Cancel sequence {sequence.sequence_number}", timeout=self.timeout)
        logger.info(f"🗑️ Cancelled pending sequence {sequence.sequence_number}")
        return True

    def _select_lines(self, sequence: ShipmentSequence, part_ids: Optional[List[int]]) -> List[ShipmentPart]:
        if part_ids is None:
            return list(sequence.parts)
        owned = {p.id: p for p in sequence.parts}
        unknown = sorted(set(part_ids) - set(owned))
        if unknown:
            raise ValidationError(
                f"Line(s) {', '.join(str(i) for i in unknown)} do not belong to sequence {sequence.sequence_number}"
            )
        if not part_ids:
            raise ValidationError("Select at least one line to confirm")
        return [owned[i] for i in sorted(set(part_ids))]

    async def _check_stock_policy(self, lines: List[ShipmentPart]) -> List[str]:
        """Lock the affected stock rows and apply the negative stock policy.

        Returns one warning per part that ends below zero, or raises
        InsufficientStockError when negative stock is not allowed.
        """
        requested: Dict[str, int] = defaultdict(int)
        for line in lines:
            if line.actual_qty:
                requested[line.part_number] += line.actual_qty

        records = await self.ledger.stock.lock_stock_records(list(requested))
        warnings = []
        shortfalls = []
        for part_number, quantity in sorted(requested.items()):
            available = records[part_number].current_stock
            if available - quantity < 0:
                message = f"{part_number}: shipping {quantity} with {available} on hand leaves {available - quantity}"
                shortfalls.append(message)
                warnings.append(f"Negative stock for {message}")

        if shortfalls and not self.allow_negative_stock:
            raise InsufficientStockError("Insufficient stock: " + "; ".join(shortfalls))
        for warning in warnings:
            logger.warning(f"⚠️ {warning}")
        return warnings

    async def confirm_sequence(
        self,
        sequence_id: int,
        part_ids: Optional[List[int]] = None,
        user_id: Optional[int] = None,
    ) -> Tuple[ShipmentSequence, bool, List[str]]:
        """Confirm the whole sequence or a selected subset of its lines.

        Either way the sequence ends CONFIRMED. Lines outside the subset are
        closed with an actual quantity of zero so nothing is ever deducted for
        them later. Returns the sequence, whether this call applied the
        deduction, and the negative stock warnings.
        """
        sequence = await self._get_sequence_or_404(sequence_id)
        if sequence.status == ShipmentStatus.CONFIRMED.value:
            logger.info(f"Sequence {sequence.sequence_number} already confirmed, nothing to apply")
            return sequence, False, []
        if not sequence.parts:
            raise ValidationError(f"Sequence {sequence.sequence_number} has no parts to confirm")

        selected_ids = {line.id for line in self._select_lines(sequence, part_ids)}
        warnings: List[str] = []

        async def _confirm() -> bool:
            current = await self.get_sequence(sequence_id, lock=True)
            if current is None:
                raise NotFoundError(f"Shipment sequence {sequence_id} not found")
            if current.status == ShipmentStatus.CONFIRMED.value:
                return False

            selected = [line for line in current.parts if line.id in selected_ids]
            warnings.extend(await self._check_stock_policy(selected))

            for line in sorted(current.parts, key=lambda p: (p.part_number, p.id)):
                if line.id not in selected_ids:
                    line.actual_qty = 0
                elif line.actual_qty:
                    transaction, _ = await self.ledger.apply_delta(
                        part_number=line.part_number,
                        delta=-line.actual_qty,
                        transaction_type=TransactionType.OUTBOUND,
                        transaction_date=current.outbound_date,
                        reference_id=current.sequence_number,
                        client_txn_id=f"SHP:{current.sequence_number}:{line.id}",
                        notes=f"Sequence {current.sequence_number} outbound",
                        user_id=user_id,
                    )
                    await self.outbox.enqueue(
                        OutboxEventType.MOVEMENT_TRACKED,
                        {
                            "part_number": line.part_number,
                            "date": current.outbound_date.isoformat(),
                            "quantity": line.actual_qty,
                            "reference_id": current.sequence_number,
                            "balance_after": transaction.balance_after,
                        },
                        dedupe_key=f"TRACK:{transaction.client_txn_id}",
                    )
                line.status = ShipmentStatus.CONFIRMED.value
                line.updated_by = user_id

            self._recompute_totals(current)
            current.status = ShipmentStatus.CONFIRMED.value
            current.confirmed_at = datetime.now(timezone.utc)
            current.updated_by = user_id
            await self.outbox.enqueue(
                OutboxEventType.DAILY_SUMMARY_REQUESTED,
                {
                    "date": current.outbound_date.isoformat(),
                    "source": "shipment",
                    "reference_id": current.sequence_number,
                },
                dedupe_key=f"SUMMARY:{current.outbound_date.isoformat()}:{current.sequence_number}",
            )
            await self.db.flush()
            return True

        sequence_number = sequence.sequence_number
        applied = await run_in_transaction(
            self.db, _confirm, action=f"Confirm sequence {sequence_number}", timeout=self.timeout
        )
        confirmed = await self.get_sequence(sequence_id)
        if not applied:
            logger.info(f"Sequence {sequence_number} was confirmed concurrently, nothing to apply")
            return confirmed, False, []
        logger.info(
            f"✅ Sequence {sequence_number} confirmed: {len(selected_ids)} of "
            f"{len(confirmed.parts)} line(s), {confirmed.total_actual_qty} units"
        )
        return confirmed, True, warnings

    async def get_sequences(
        self,
        page_index: int = 1,
        page_size: int = 100,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Get shipment sequences with pagination"""
        query = (
            select(ShipmentSequence)
            .options(selectinload(ShipmentSequence.parts))
            .where(ShipmentSequence.is_deleted == False)
            .order_by(desc(ShipmentSequence.outbound_date), desc(ShipmentSequence.id))
        )

        conditions = []
        if status:
            conditions.append(ShipmentSequence.status == status)
        if start_date:
            conditions.append(ShipmentSequence.outbound_date >= start_date)
        if end_date:
            conditions.append(ShipmentSequence.outbound_date <= end_date)
        if conditions:
            query = query.where(and_(*conditions))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        result = await self.db.execute(query.offset((page_index - 1) * page_size).limit(page_size))
        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total,
            "data": result.scalars().all(),
        }
