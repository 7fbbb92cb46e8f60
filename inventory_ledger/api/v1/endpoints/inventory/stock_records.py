from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from inventory_ledger.core.database import get_async_session
from inventory_ledger.models.shared.enums import StockStatus
from inventory_ledger.schemas.common.pagination import PaginatedResponse
from inventory_ledger.schemas.inventory.stock_record import StockLevel, StockRecord
from inventory_ledger.services.inventory.stock_record_service import StockRecordService, derive_stock_status
from inventory_ledger.utils.validators.validation_utils import normalize_part_number

router = APIRouter()

@router.get("/", response_model=PaginatedResponse[StockRecord])
async def get_stock_records(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    status: Optional[StockStatus] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_session)
):
    """Get stock on hand for every stocked part"""
    service = StockRecordService(db)
    return await service.get_stock_records(
        page_index=page_index,
        page_size=page_size,
        status=status.value if status else None,
        search=search
    )

@router.get("/{part_number}", response_model=StockLevel)
async def get_stock(
    part_number: str,
    db: AsyncSession = Depends(get_async_session)
):
    """Get stock for one part, zero when it was never stocked"""
    service = StockRecordService(db)
    record = await service.get_stock_record(part_number)
    if not record:
        return StockLevel(
            part_number=normalize_part_number(part_number),
            current_stock=0,
            status=derive_stock_status(0),
            has_record=False,
        )
    return StockLevel(
        part_number=record.part_number,
        current_stock=record.current_stock,
        status=record.status,
        has_record=True,
    )
