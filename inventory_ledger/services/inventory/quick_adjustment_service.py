import logging
import re
import time
from datetime import date
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from inventory_ledger.core.config import settings
from inventory_ledger.core.exceptions import ValidationError
from inventory_ledger.models.inventory.stock_record import StockRecord
from inventory_ledger.models.shared.enums import TransactionType
from inventory_ledger.schemas.inventory.quick_adjustment import (
    AdjustedPart,
    PasteResult,
    QuickAdjustmentResult,
    QuickAdjustmentRow,
)
from inventory_ledger.services.common.unit_of_work import run_in_transaction
from inventory_ledger.services.inventory.part_service import PartService
from inventory_ledger.services.inventory.stock_ledger import StockLedger
from inventory_ledger.utils.validators.validation_utils import ensure_quantity, normalize_part_number, parse_quantity

logger = logging.getLogger(__name__)

_COLUMN_SPLIT = re.compile(r"\t+|\s{2,}|\s(?=\S+$)")


class QuickAdjustmentService:
    """Direct stock overwrite over a curated list of part numbers."""

    def __init__(self, db: AsyncSession, part_numbers: Optional[List[str]] = None, timeout: Optional[float] = None):
        self.db = db
        self.part_numbers = [
            normalize_part_number(p) for p in (part_numbers or settings.QUICK_ADJUST_PART_NUMBERS)
        ]
        self.timeout = timeout
        self.part_service = PartService(db)
        self.ledger = StockLedger(db)

    async def get_rows(self) -> List[QuickAdjustmentRow]:
        """Curated parts in display order; parts never stocked show zero."""
        result = await self.db.execute(
            select(StockRecord).where(StockRecord.part_number.in_(self.part_numbers))
        )
        records = {record.part_number: record for record in result.scalars().all()}
        return [
            QuickAdjustmentRow(
                part_number=part_number,
                current_stock=records[part_number].current_stock if part_number in records else 0,
                has_record=part_number in records,
            )
            for part_number in self.part_numbers
        ]

    def parse_paste(self, text: str, start_part: Optional[str] = None) -> PasteResult:
        """Turn pasted spreadsheet cells into pending values.

        Two column rows (part, value) are matched by part number and unknown
        parts are reported as unmatched. Single column rows fill the displayed
        rows in order, starting at ``start_part``.
        """
        result = PasteResult()
        position = 0
        if start_part:
            start = normalize_part_number(start_part)
            if start not in self.part_numbers:
                raise ValidationError(f"Part {start} is not available for quick adjustment")
            position = self.part_numbers.index(start)

        for raw_line in (text or "").splitlines():
            line = raw_line.strip()
            if not line:
                continue
            cells = [c.strip() for c in _COLUMN_SPLIT.split(line) if c.strip()]

            if len(cells) >= 2:
                part_number = cells[0].upper()
                value = parse_quantity(cells[-1])
                if part_number not in self.part_numbers:
                    result.unmatched.append(part_number)
                elif value is None or value < 0:
                    result.skipped.append(line)
                else:
                    result.changes[part_number] = value
                continue

            if position >= len(self.part_numbers):
                result.skipped.append(line)
                continue
            value = parse_quantity(cells[0])
            if value is None or value < 0:
                result.skipped.append(line)
            else:
                result.changes[self.part_numbers[position]] = value
            position += 1

        return result

    async def apply_changes(
        self,
        changes: Dict[str, int],
        reason: Optional[str] = None,
        adjustment_date: Optional[date] = None,
        batch_id: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> QuickAdjustmentResult:
        """Overwrite stock for every changed part and log one ADJUSTMENT per part."""
        normalized: Dict[str, int] = {}
        for part_number, value in changes.items():
            part_number = normalize_part_number(part_number)
            if part_number not in self.part_numbers:
                raise ValidationError(f"Part {part_number} is not available for quick adjustment")
            normalized[part_number] = ensure_quantity(value, f"Stock for {part_number}")

        adjustment_date = adjustment_date or date.today()
        batch_id = batch_id or f"ADJ-{int(time.time() * 1000)}"
        reason = reason.strip() if reason and reason.strip() else None
        outcome = QuickAdjustmentResult(batch_id=batch_id)

        async def _apply():
            for part_number in sorted(normalized):
                new_value = normalized[part_number]
                await self.part_service.ensure_part(part_number, user_id)
                transaction, applied = await self.ledger.overwrite(
                    part_number=part_number,
                    new_value=new_value,
                    transaction_type=TransactionType.ADJUSTMENT,
                    transaction_date=adjustment_date,
                    reference_id=batch_id,
                    client_txn_id=f"ADJ:{batch_id}:{part_number}",
                    notes=reason,
                    user_id=user_id,
                )
                if applied:
                    outcome.adjusted.append(
                        AdjustedPart(
                            part_number=part_number,
                            before=new_value - transaction.quantity,
                            after=new_value,
                            difference=transaction.quantity,
                        )
                    )
                else:
                    outcome.unchanged.append(part_number)
            await self.db.flush()

        await run_in_transaction(self.db, _apply, action=f"Quick adjustment {batch_id}", timeout=self.timeout)
        logger.info(f"✏️ Quick adjustment {batch_id}: {len(outcome.adjusted)} adjusted, {len(outcome.unchanged)} unchanged")
        return outcome
