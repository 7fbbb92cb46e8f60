from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Callable, Optional
from datetime import date
from inventory_ledger.api.dependencies import get_current_user_id, get_session_factory
from inventory_ledger.core.database import get_async_session
from inventory_ledger.core.exceptions import NotFoundError
from inventory_ledger.models.shared.enums import ShipmentStatus
from inventory_ledger.schemas.common.pagination import PaginatedResponse
from inventory_ledger.schemas.logistics.shipment_sequence import (
    ShipmentActualUpdate,
    ShipmentConfirm,
    ShipmentConfirmation,
    ShipmentLinesReplace,
    ShipmentSequence,
    ShipmentSequenceCreate,
)
from inventory_ledger.services.logistics.shipment_service import ShipmentService
from inventory_ledger.services.system.outbox_service import dispatch_outbox_after_commit

router = APIRouter()

@router.post("/sequences", response_model=ShipmentSequence, status_code=status.HTTP_201_CREATED)
async def register_sequence(
    sequence_data: ShipmentSequenceCreate,
    db: AsyncSession = Depends(get_async_session),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Register a pending sequence with pre-filled actual quantities"""
    service = ShipmentService(db)
    return await service.register_sequence(sequence_data, user_id)

@router.get("/sequences", response_model=PaginatedResponse[ShipmentSequence])
async def get_sequences(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    status: Optional[ShipmentStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session)
):
    service = ShipmentService(db)
    return await service.get_sequences(
        page_index=page_index,
        page_size=page_size,
        status=status.value if status else None,
        start_date=start_date,
        end_date=end_date
    )

@router.get("/sequences/{sequence_id}", response_model=ShipmentSequence)
async def get_sequence(
    sequence_id: int,
    db: AsyncSession = Depends(get_async_session)
):
    service = ShipmentService(db)
    sequence = await service.get_sequence(sequence_id)
    if not sequence:
        raise NotFoundError(f"Shipment sequence {sequence_id} not found")
    return sequence

@router.put("/sequences/{sequence_id}/parts", response_model=ShipmentSequence)
async def replace_lines(
    sequence_id: int,
    lines: ShipmentLinesReplace,
    db: AsyncSession = Depends(get_async_session),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Replace every line of a pending sequence"""
    service = ShipmentService(db)
    return await service.replace_lines(sequence_id, lines.parts, user_id)

@router.patch("/parts/{part_id}", response_model=ShipmentSequence)
async def update_actual_quantity(
    part_id: int,
    update_data: ShipmentActualUpdate,
    db: AsyncSession = Depends(get_async_session),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Edit a pending line's actual quantity; stock is not touched"""
    service = ShipmentService(db)
    return await service.update_actual_quantity(part_id, update_data.actual_qty, user_id)

@router.delete("/sequences/{sequence_id}")
async def cancel_sequence(
    sequence_id: int,
    db: AsyncSession = Depends(get_async_session)
):
    service = ShipmentService(db)
    await service.cancel_sequence(sequence_id)
    return {"message": f"Sequence {sequence_id} cancelled successfully"}

@router.post("/sequences/{sequence_id}/confirm", response_model=ShipmentConfirmation)
async def confirm_sequence(
    sequence_id: int,
    background_tasks: BackgroundTasks,
    confirm_data: Optional[ShipmentConfirm] = None,
    db: AsyncSession = Depends(get_async_session),
    session_factory: Callable = Depends(get_session_factory),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Confirm the sequence (or selected lines) and deduct stock"""
    service = ShipmentService(db)
    part_ids = confirm_data.part_ids if confirm_data else None
    sequence, applied, warnings = await service.confirm_sequence(sequence_id, part_ids, user_id)
    if applied:
        background_tasks.add_task(dispatch_outbox_after_commit, session_factory)
    return ShipmentConfirmation(
        sequence=ShipmentSequence.model_validate(sequence),
        applied=applied,
        warnings=warnings,
    )
