from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import date
from inventory_ledger.core.database import get_async_session
from inventory_ledger.models.shared.enums import TransactionType
from inventory_ledger.schemas.common.pagination import PaginatedResponse
from inventory_ledger.schemas.inventory.inventory_transaction import InventoryTransaction, PartHistory
from inventory_ledger.services.inventory.inventory_transaction_service import InventoryTransactionService
from inventory_ledger.services.inventory.stock_record_service import StockRecordService
from inventory_ledger.utils.validators.validation_utils import normalize_part_number

router = APIRouter()

@router.get("/", response_model=PaginatedResponse[InventoryTransaction])
async def get_transactions(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    part_number: Optional[str] = Query(None),
    transaction_type: Optional[TransactionType] = Query(None),
    reference_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session)
):
    """Get logged stock movements with optional filters"""
    service = InventoryTransactionService(db)
    return await service.get_transactions(
        page_index=page_index,
        page_size=page_size,
        part_number=part_number,
        transaction_type=transaction_type,
        reference_id=reference_id,
        start_date=start_date,
        end_date=end_date
    )

@router.get("/part/{part_number}", response_model=PartHistory)
async def get_part_history(
    part_number: str,
    db: AsyncSession = Depends(get_async_session)
):
    """Full movement history of one part, oldest first"""
    transactions = InventoryTransactionService(db)
    history = await transactions.get_part_history(part_number)
    return PartHistory(
        part_number=normalize_part_number(part_number),
        current_stock=await StockRecordService(db).get_stock(part_number),
        logged_balance=sum(t.quantity for t in history),
        transactions=[InventoryTransaction.model_validate(t) for t in history],
    )
