import logging
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import and_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from inventory_ledger.core.exceptions import NotFoundError, ValidationError
from inventory_ledger.models.inventory.part import Part
from inventory_ledger.models.shared.enums import PartCategory, PartStatus
from inventory_ledger.schemas.inventory.part import PartCreate
from inventory_ledger.services.common.unit_of_work import run_in_transaction
from inventory_ledger.utils.validators.validation_utils import derive_part_category, normalize_part_number

logger = logging.getLogger(__name__)


class PartService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_part(self, part_number: str) -> Optional[Part]:
        result = await self.db.execute(
            select(Part).where(
                and_(
                    Part.part_number == normalize_part_number(part_number),
                    Part.is_deleted == False
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_part_or_404(self, part_number: str) -> Part:
        part = await self.get_part(part_number)
        if not part:
            raise NotFoundError(f"Part {part_number} not found")
        return part

    async def require_parts(self, part_numbers: Iterable[str]) -> Dict[str, Part]:
        """Resolve catalog entries, failing on the first unknown part number."""
        wanted = {normalize_part_number(p) for p in part_numbers}
        if not wanted:
            return {}
        result = await self.db.execute(
            select(Part).where(and_(Part.part_number.in_(wanted), Part.is_deleted == False))
        )
        parts = {part.part_number: part for part in result.scalars().all()}
        missing = sorted(wanted - set(parts))
        if missing:
            raise ValidationError(f"Unknown part number(s): {', '.join(missing)}")
        return parts

    async def ensure_part(self, part_number: str, user_id: Optional[int] = None) -> Part:
        """Return the catalog entry, registering it when receiving meets a new part."""
        part = await self.get_part(part_number)
        if part:
            return part
        part_number = normalize_part_number(part_number)
        part = Part(
            part_number=part_number,
            category=derive_part_category(part_number).value,
            status=PartStatus.ACTIVE.value,
            created_by=user_id,
        )
        self.db.add(part)
        await self.db.flush()
        logger.info(f"🆕 Registered part {part_number} ({part.category})")
        return part

    async def create_part(self, part_data: PartCreate, user_id: Optional[int] = None) -> Part:
        part_number = normalize_part_number(part_data.part_number)
        if await self.get_part(part_number):
            raise ValidationError(f"Part {part_number} already exists")

        category = part_data.category or derive_part_category(part_number)
        part = Part(
            part_number=part_number,
            category=PartCategory(category).value,
            status=PartStatus.ACTIVE.value,
            description=part_data.description,
            created_by=user_id,
        )

        async def _register():
            self.db.add(part)
            await self.db.flush()
            return part

        return await run_in_transaction(self.db, _register, action=f"Register part {part_number}")

    async def get_parts(
        self,
        page_index: int = 1,
        page_size: int = 100,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        query = select(Part).where(Part.is_deleted == False).order_by(Part.part_number)
        if category:
            query = query.where(Part.category == category)
        if search:
            query = query.where(Part.part_number.ilike(f"%{search.strip()}%"))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        result = await self.db.execute(query.offset((page_index - 1) * page_size).limit(page_size))
        return {
            "page_index": page_index,
            "page_size": page_size,
            "count": total,
            "data": result.scalars().all(),
        }
