from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date
from inventory_ledger.api.dependencies import get_current_user_id
from inventory_ledger.core.database import get_async_session
from inventory_ledger.schemas.inventory.reconciliation import RepairRequest, RepairResult, ShipmentMismatch, StockDivergence
from inventory_ledger.services.inventory.reconciliation_service import ReconciliationService

router = APIRouter()

@router.get("/", response_model=List[StockDivergence])
async def find_divergences(
    part_number: Optional[List[str]] = Query(None),
    db: AsyncSession = Depends(get_async_session)
):
    """Stock records the transaction log does not add up to"""
    service = ReconciliationService(db)
    return await service.find_divergences(part_number)

@router.post("/repair", response_model=RepairResult)
async def repair(
    request: RepairRequest,
    db: AsyncSession = Depends(get_async_session),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Log corrective adjustments so the transaction log explains current stock"""
    service = ReconciliationService(db)
    repaired = await service.repair(request.part_numbers, request.transaction_date, user_id, request.batch_id)
    return RepairResult(repaired=repaired)

@router.get("/shipments", response_model=List[ShipmentMismatch])
async def verify_shipments(
    since: date = Query(...),
    db: AsyncSession = Depends(get_async_session)
):
    """Confirmed shipment lines whose OUTBOUND rows do not match the deducted quantity"""
    service = ReconciliationService(db)
    return await service.verify_shipments(since)
