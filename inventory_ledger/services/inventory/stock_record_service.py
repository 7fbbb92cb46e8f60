import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from inventory_ledger.models.inventory.stock_record import StockRecord
from inventory_ledger.models.shared.enums import StockStatus
from inventory_ledger.utils.validators.validation_utils import normalize_part_number

logger = logging.getLogger(__name__)


def derive_stock_status(current_stock: int, min_stock: int = 0) -> StockStatus:
    if current_stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if current_stock < min_stock:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


class StockRecordService:
    """Keyed store of stock on hand per part number."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_stock_record(self, part_number: str) -> Optional[StockRecord]:
        result = await self.db.execute(
            select(StockRecord).where(StockRecord.part_number == normalize_part_number(part_number))
        )
        return result.scalar_one_or_none()

    async def get_stock(self, part_number: str) -> int:
        """Current stock, 0 when the part has no record yet"""
        record = await self.get_stock_record(part_number)
        return record.current_stock if record else 0

    async def lock_stock_record(self, part_number: str) -> StockRecord:
        """Select the record FOR UPDATE, lazily creating a zero stock record.

        The lazily created record is the only stock row without a matching
        transaction.
        """
        part_number = normalize_part_number(part_number)
        result = await self.db.execute(
            select(StockRecord)
            .where(StockRecord.part_number == part_number)
            .with_for_update()
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = StockRecord(
                part_number=part_number,
                current_stock=0,
                min_stock=0,
                status=StockStatus.OUT_OF_STOCK.value,
                last_updated=datetime.now(timezone.utc),
            )
            self.db.add(record)
            await self.db.flush()
            logger.info(f"Created stock record for {part_number}")
        return record

    async def lock_stock_records(self, part_numbers: List[str]) -> Dict[str, StockRecord]:
        """Lock several records in part number order so concurrent workflows cannot deadlock."""
        records = {}
        for part_number in sorted({normalize_part_number(p) for p in part_numbers}):
            records[part_number] = await self.lock_stock_record(part_number)
        return records

    def _write(self, record: StockRecord, value: int) -> None:
        record.current_stock = value
        record.status = derive_stock_status(value, record.min_stock or 0).value
        record.last_updated = datetime.now(timezone.utc)

    async def upsert_stock(self, part_number: str, value: int) -> Tuple[StockRecord, int]:
        """Set stock to an absolute value. Returns the record and the previous value."""
        record = await self.lock_stock_record(part_number)
        previous = record.current_stock
        if previous != value:
            self._write(record, value)
            await self.db.flush()
        return record, previous

    async def adjust_stock(self, part_number: str, delta: int) -> Tuple[StockRecord, int]:
        """Add a signed delta to stock. Returns the record and the previous value."""
        record = await self.lock_stock_record(part_number)
        previous = record.current_stock
        self._write(record, previous + delta)
        await self.db.flush()
        return record, previous

    async def get_stock_records(
        self,
        page_index: int = 1,
        page_size: int = 100,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Get stock records with pagination"""
        query = select(StockRecord).order_by(StockRecord.part_number)

        conditions = []
        if status:
            conditions.append(StockRecord.status == status)
        if search:
            conditions.append(StockRecord.part_number.ilike(f"%{search.strip()}%"))
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
