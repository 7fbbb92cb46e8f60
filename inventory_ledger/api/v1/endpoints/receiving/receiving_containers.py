from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Callable, Optional
from datetime import date
from inventory_ledger.api.dependencies import get_current_user_id, get_session_factory
from inventory_ledger.core.database import get_async_session
from inventory_ledger.core.exceptions import NotFoundError
from inventory_ledger.models.shared.enums import ReceivingStatus
from inventory_ledger.schemas.common.pagination import PaginatedResponse
from inventory_ledger.schemas.receiving.receiving_container import (
    ReceivingConfirm,
    ReceivingConfirmation,
    ReceivingContainer,
    ReceivingContainerCreate,
    ReceivingContainerUpdate,
    ReceivingPartCreate,
    ReceivingPartUpdate,
)
from inventory_ledger.services.receiving.receiving_service import ReceivingService
from inventory_ledger.services.system.outbox_service import dispatch_outbox_after_commit

router = APIRouter()

@router.post("/", response_model=ReceivingContainer, status_code=status.HTTP_201_CREATED)
async def register_container(
    container_data: ReceivingContainerCreate,
    db: AsyncSession = Depends(get_async_session),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Register a container, or add lines to a pending container with the same number"""
    service = ReceivingService(db)
    return await service.register_container(container_data, user_id)

@router.get("/", response_model=PaginatedResponse[ReceivingContainer])
async def get_containers(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    status: Optional[ReceivingStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_session)
):
    service = ReceivingService(db)
    return await service.get_containers(
        page_index=page_index,
        page_size=page_size,
        status=status.value if status else None,
        start_date=start_date,
        end_date=end_date,
        search=search
    )

@router.get("/{arn_number}", response_model=ReceivingContainer)
async def get_container(
    arn_number: str,
    db: AsyncSession = Depends(get_async_session)
):
    service = ReceivingService(db)
    container = await service.get_container(arn_number)
    if not container:
        raise NotFoundError(f"Receiving container {arn_number} not found")
    return container

@router.put("/{arn_number}", response_model=ReceivingContainer)
async def update_container(
    arn_number: str,
    update_data: ReceivingContainerUpdate,
    db: AsyncSession = Depends(get_async_session),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    service = ReceivingService(db)
    return await service.update_container(arn_number, update_data, user_id)

@router.delete("/{arn_number}")
async def delete_container(
    arn_number: str,
    db: AsyncSession = Depends(get_async_session)
):
    """Delete a pending container; completed containers cannot be deleted"""
    service = ReceivingService(db)
    await service.delete_container(arn_number)
    return {"message": f"Container {arn_number} deleted successfully"}

@router.post("/{arn_number}/parts", response_model=ReceivingContainer, status_code=status.HTTP_201_CREATED)
async def add_part(
    arn_number: str,
    line: ReceivingPartCreate,
    db: AsyncSession = Depends(get_async_session),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    service = ReceivingService(db)
    return await service.add_part(arn_number, line, user_id)

@router.put("/{arn_number}/parts/{part_id}", response_model=ReceivingContainer)
async def update_part(
    arn_number: str,
    part_id: int,
    line: ReceivingPartUpdate,
    db: AsyncSession = Depends(get_async_session),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    service = ReceivingService(db)
    return await service.update_part(arn_number, part_id, line.quantity, user_id)

@router.delete("/{arn_number}/parts/{part_id}", response_model=ReceivingContainer)
async def remove_part(
    arn_number: str,
    part_id: int,
    db: AsyncSession = Depends(get_async_session)
):
    service = ReceivingService(db)
    return await service.remove_part(arn_number, part_id)

@router.post("/{arn_number}/confirm", response_model=ReceivingConfirmation)
async def confirm_container(
    arn_number: str,
    confirm_data: ReceivingConfirm,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_async_session),
    session_factory: Callable = Depends(get_session_factory),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Receive the container into stock on the given inbound date"""
    service = ReceivingService(db)
    container, applied = await service.confirm_container(arn_number, confirm_data.inbound_date, user_id)
    if applied:
        background_tasks.add_task(dispatch_outbox_after_commit, session_factory)
    return ReceivingConfirmation(container=ReceivingContainer.model_validate(container), applied=applied)
