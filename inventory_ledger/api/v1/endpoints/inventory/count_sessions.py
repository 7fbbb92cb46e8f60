from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Callable, List, Optional
from inventory_ledger.api.dependencies import get_current_user_id, get_pending_edit_store, get_session_factory
from inventory_ledger.core.database import get_async_session
from inventory_ledger.models.shared.enums import CountSessionStatus
from inventory_ledger.schemas.common.pagination import PaginatedResponse
from inventory_ledger.schemas.inventory.count_session import (
    CompletionPreviewLine,
    CountCompletionResult,
    CountItemCreate,
    CountItemEdit,
    CountSessionCreate,
    CountSessionInDB,
    CountSessionView,
)
from inventory_ledger.services.inventory.count_session_service import CountSessionService
from inventory_ledger.services.inventory.pending_edit_store import PendingEditStore
from inventory_ledger.services.system.outbox_service import dispatch_outbox_after_commit

router = APIRouter()

@router.post("/sessions", response_model=CountSessionView, status_code=status.HTTP_201_CREATED)
async def create_session(
    session_data: CountSessionCreate,
    db: AsyncSession = Depends(get_async_session),
    store: PendingEditStore = Depends(get_pending_edit_store),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Open a physical count session"""
    service = CountSessionService(db, store)
    return await service.create_session(session_data, user_id)

@router.get("/sessions", response_model=PaginatedResponse[CountSessionInDB])
async def get_sessions(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    status: Optional[CountSessionStatus] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    store: PendingEditStore = Depends(get_pending_edit_store)
):
    service = CountSessionService(db, store)
    return await service.get_sessions(
        page_index=page_index,
        page_size=page_size,
        status=status.value if status else None
    )

@router.get("/sessions/{session_id}", response_model=CountSessionView)
async def get_session(
    session_id: int,
    db: AsyncSession = Depends(get_async_session),
    store: PendingEditStore = Depends(get_pending_edit_store)
):
    """Session items with pending edits applied"""
    service = CountSessionService(db, store)
    return await service.get_session_view(session_id)

@router.post("/sessions/{session_id}/items", response_model=CountSessionView, status_code=status.HTTP_201_CREATED)
async def add_item(
    session_id: int,
    item_data: CountItemCreate,
    db: AsyncSession = Depends(get_async_session),
    store: PendingEditStore = Depends(get_pending_edit_store),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    service = CountSessionService(db, store)
    return await service.add_item(session_id, item_data, user_id)

@router.patch("/sessions/{session_id}/items/{item_id}", response_model=CountSessionView)
async def stage_edit(
    session_id: int,
    item_id: int,
    edit: CountItemEdit,
    db: AsyncSession = Depends(get_async_session),
    store: PendingEditStore = Depends(get_pending_edit_store)
):
    """Buffer an edit; it is applied when the session is completed"""
    service = CountSessionService(db, store)
    await service.stage_edit(session_id, item_id, edit.physical_stock, edit.notes)
    return await service.get_session_view(session_id)

@router.delete("/sessions/{session_id}/pending-edits", response_model=CountSessionView)
async def discard_edits(
    session_id: int,
    db: AsyncSession = Depends(get_async_session),
    store: PendingEditStore = Depends(get_pending_edit_store)
):
    service = CountSessionService(db, store)
    await service.discard_edits(session_id)
    return await service.get_session_view(session_id)

@router.get("/sessions/{session_id}/preview", response_model=List[CompletionPreviewLine])
async def preview_completion(
    session_id: int,
    db: AsyncSession = Depends(get_async_session),
    store: PendingEditStore = Depends(get_pending_edit_store)
):
    """Items that will change stock when the session is completed"""
    service = CountSessionService(db, store)
    return await service.preview_completion(session_id)

@router.post("/sessions/{session_id}/complete", response_model=CountCompletionResult)
async def complete_session(
    session_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_async_session),
    store: PendingEditStore = Depends(get_pending_edit_store),
    session_factory: Callable = Depends(get_session_factory),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Complete the session and overwrite stock with the counted quantities"""
    service = CountSessionService(db, store)
    view, applied, adjusted = await service.complete_session(session_id, user_id)
    if applied:
        background_tasks.add_task(dispatch_outbox_after_commit, session_factory)
    return CountCompletionResult(session=view, applied=applied, adjusted_parts=adjusted)
