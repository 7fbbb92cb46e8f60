from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from inventory_ledger.api.dependencies import get_current_user_id
from inventory_ledger.core.database import get_async_session
from inventory_ledger.schemas.inventory.quick_adjustment import (
    PasteRequest,
    PasteResult,
    QuickAdjustmentRequest,
    QuickAdjustmentResult,
    QuickAdjustmentRow,
)
from inventory_ledger.services.inventory.quick_adjustment_service import QuickAdjustmentService

router = APIRouter()

@router.get("/", response_model=List[QuickAdjustmentRow])
async def get_rows(db: AsyncSession = Depends(get_async_session)):
    """Curated parts with their current stock"""
    service = QuickAdjustmentService(db)
    return await service.get_rows()

@router.post("/paste", response_model=PasteResult)
async def parse_paste(
    paste: PasteRequest,
    db: AsyncSession = Depends(get_async_session)
):
    """Match pasted spreadsheet cells against the curated rows without saving"""
    service = QuickAdjustmentService(db)
    return service.parse_paste(paste.text, paste.start_part)

@router.post("/", response_model=QuickAdjustmentResult)
async def apply_changes(
    request: QuickAdjustmentRequest,
    db: AsyncSession = Depends(get_async_session),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Overwrite stock for the changed parts"""
    service = QuickAdjustmentService(db)
    return await service.apply_changes(
        request.changes,
        reason=request.reason,
        adjustment_date=request.adjustment_date,
        batch_id=request.batch_id,
        user_id=user_id,
    )
