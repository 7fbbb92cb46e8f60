from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from inventory_ledger.api.dependencies import get_current_user_id
from inventory_ledger.core.database import get_async_session
from inventory_ledger.models.shared.enums import PartCategory
from inventory_ledger.schemas.common.pagination import PaginatedResponse
from inventory_ledger.schemas.inventory.part import Part, PartCreate
from inventory_ledger.services.inventory.part_service import PartService

router = APIRouter()

@router.post("/", response_model=Part, status_code=status.HTTP_201_CREATED)
async def create_part(
    part_data: PartCreate,
    db: AsyncSession = Depends(get_async_session),
    user_id: Optional[int] = Depends(get_current_user_id)
):
    """Register a part in the catalog"""
    service = PartService(db)
    return await service.create_part(part_data, user_id)

@router.get("/", response_model=PaginatedResponse[Part])
async def get_parts(
    page_index: int = Query(1, ge=1),
    page_size: int = Query(100, ge=1, le=1000),
    category: Optional[PartCategory] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_session)
):
    """List catalog parts"""
    service = PartService(db)
    return await service.get_parts(
        page_index=page_index,
        page_size=page_size,
        category=category.value if category else None,
        search=search
    )

@router.get("/{part_number}", response_model=Part)
async def get_part(
    part_number: str,
    db: AsyncSession = Depends(get_async_session)
):
    service = PartService(db)
    return await service.get_part_or_404(part_number)
