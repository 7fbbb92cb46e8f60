import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import and_, desc, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from inventory_ledger.core.exceptions import NotFoundError, ValidationError
from inventory_ledger.models.receiving.receiving_container import ReceivingContainer
from inventory_ledger.models.receiving.receiving_part import ReceivingPart
from inventory_ledger.models.shared.enums import OutboxEventType, ReceivingStatus, TransactionType
from inventory_ledger.schemas.receiving.receiving_container import (
    ReceivingContainerCreate,
    ReceivingContainerUpdate,
    ReceivingPartCreate,
)
from inventory_ledger.services.common.unit_of_work import run_in_transaction
from inventory_ledger.services.inventory.part_service import PartService
from inventory_ledger.services.inventory.stock_ledger import StockLedger
from inventory_ledger.services.system.outbox_service import OutboxService
from inventory_ledger.utils.validators.validation_utils import ensure_quantity, normalize_part_number

logger = logging.getLogger(__name__)

ARN_PATTERN = re.compile(r"^ARN-\d{8}-(\d+)$")


class ReceivingService:
    """Container intake: PENDING containers are freely editable, confirmation increments stock once."""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout
        self.part_service = PartService(db)
        self.ledger = StockLedger(db)
        self.outbox = OutboxService(db)

    async def generate_arn_number(self, on_date: Optional[date] = None) -> str:
        """ARN-YYYYMMDD-NNNNN, the sequence keeps counting across days"""
        on_date = on_date or date.today()
        result = await self.db.execute(
            select(ReceivingContainer.arn_number).order_by(desc(ReceivingContainer.id)).limit(1)
        )
        latest = result.scalar_one_or_none()
        sequence = 1
        if latest:
            match = ARN_PATTERN.match(latest)
            if match:
                sequence = int(match.group(1)) + 1
        return f"ARN-{on_date.strftime('%Y%m%d')}-{sequence:05d}"

    def _validate_lines(self, lines: List[ReceivingPartCreate]) -> List[Tuple[str, int]]:
        seen = set()
        validated = []
        for line in lines:
            part_number = normalize_part_number(line.part_number)
            ensure_quantity(line.quantity, f"Quantity for {part_number}", allow_zero=False)
            if part_number in seen:
                raise ValidationError(f"Duplicate line for part {part_number}")
            seen.add(part_number)
            validated.append((part_number, line.quantity))
        return validated

    async def get_container(self, arn_number: str, lock: bool = False) -> Optional[ReceivingContainer]:
        query = (
            select(ReceivingContainer)
            .options(selectinload(ReceivingContainer.parts))
            .where(
                and_(
                    ReceivingContainer.arn_number == arn_number,
                    ReceivingContainer.is_deleted == False
                )
            )
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _get_container_or_404(self, arn_number: str) -> ReceivingContainer:
        container = await self.get_container(arn_number)
        if not container:
            raise NotFoundError(f"Receiving container {arn_number} not found")
        return container

    async def _get_by_container_number(self, container_number: str) -> Optional[ReceivingContainer]:
        result = await self.db.execute(
            select(ReceivingContainer)
            .options(selectinload(ReceivingContainer.parts))
            .where(
                and_(
                    ReceivingContainer.container_number == container_number,
                    ReceivingContainer.is_deleted == False
                )
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _ensure_pending(container: ReceivingContainer, action: str) -> None:
        if container.status == ReceivingStatus.COMPLETED.value:
            raise ValidationError(f"Cannot {action} completed container {container.arn_number}")

    async def register_container(
        self, container_data: ReceivingContainerCreate, user_id: Optional[int] = None
    ) -> ReceivingContainer:
        """Register a container, or add lines to a pending one with the same number."""
        container_number = container_data.container_number.strip()
        if not container_number:
            raise ValidationError("Container number is required")
        lines = self._validate_lines(container_data.parts)

        existing = await self._get_by_container_number(container_number)
        if existing:
            self._ensure_pending(existing, "add parts to")
            duplicates = sorted({p.part_number for p in existing.parts} & {p for p, _ in lines})
            if duplicates:
                raise ValidationError(
                    f"Container {container_number} already has line(s) for {', '.join(duplicates)}"
                )
            arn_number = existing.arn_number

            async def _append():
                for part_number, quantity in lines:
                    existing.parts.append(
                        ReceivingPart(part_number=part_number, quantity=quantity, created_by=user_id)
                    )
                if container_data.arrival_date:
                    existing.arrival_date = container_data.arrival_date
                existing.updated_by = user_id
                await self.db.flush()

            await run_in_transaction(self.db, _append, action=f"Add parts to {arn_number}", timeout=self.timeout)
            logger.info(f"📥 Added {len(lines)} line(s) to container {container_number} ({arn_number})")
            return await self.get_container(arn_number)

        arn_number = await self.generate_arn_number()

        async def _create():
            container = ReceivingContainer(
                arn_number=arn_number,
                container_number=container_number,
                arrival_date=container_data.arrival_date,
                status=ReceivingStatus.PENDING.value,
                created_by=user_id,
                parts=[
                    ReceivingPart(part_number=part_number, quantity=quantity, created_by=user_id)
                    for part_number, quantity in lines
                ],
            )
            self.db.add(container)
            await self.db.flush()

        await run_in_transaction(self.db, _create, action=f"Register container {container_number}", timeout=self.timeout)
        logger.info(f"📥 Registered container {container_number} as {arn_number} with {len(lines)} line(s)")
        return await self.get_container(arn_number)

    async def update_container(
        self, arn_number: str, update_data: ReceivingContainerUpdate, user_id: Optional[int] = None
    ) -> ReceivingContainer:
        container = await self._get_container_or_404(arn_number)
        self._ensure_pending(container, "edit")

        if update_data.container_number is not None:
            container_number = update_data.container_number.strip()
            other = await self._get_by_container_number(container_number)
            if other and other.id != container.id:
                raise ValidationError(f"Container {container_number} is already registered as {other.arn_number}")
            container.container_number = container_number
        if update_data.arrival_date is not None:
            container.arrival_date = update_data.arrival_date
        container.updated_by = user_id

        async def _save():
            await self.db.flush()

        await run_in_transaction(self.db, _save, action=f"Update container {arn_number}", timeout=self.timeout)
        return await self.get_container(arn_number)

    async def add_part(
        self, arn_number: str, line: ReceivingPartCreate, user_id: Optional[int] = None
    ) -> ReceivingContainer:
        container = await self._get_container_or_404(arn_number)
        self._ensure_pending(container, "add parts to")
        [(part_number, quantity)] = self._validate_lines([line])
        if any(p.part_number == part_number for p in container.parts):
            raise ValidationError(f"Container {arn_number} already has a line for {part_number}")

        async def _add():
            container.parts.append(ReceivingPart(part_number=part_number, quantity=quantity, created_by=user_id))
            await self.db.flush()

        await run_in_transaction(self.db, _add, action=f"Add part to {arn_number}", timeout=self.timeout)
        return await self.get_container(arn_number)

    def _find_line(self, container: ReceivingContainer, part_id: int) -> ReceivingPart:
        for line in container.parts:
            if line.id == part_id:
                return line
        raise NotFoundError(f"Part line {part_id} not found in container {container.arn_number}")

    async def update_part(
        self, arn_number: str, part_id: int, quantity: int, user_id: Optional[int] = None
    ) -> ReceivingContainer:
        container = await self._get_container_or_404(arn_number)
        self._ensure_pending(container, "edit parts of")
        line = self._find_line(container, part_id)
        ensure_quantity(quantity, f"Quantity for {line.part_number}", allow_zero=False)

        async def _update():
            line.quantity = quantity
            line.updated_by = user_id
            await self.db.flush()

        await run_in_transaction(self.db, _update, action=f"Update part line {part_id}", timeout=self.timeout)
        return await self.get_container(arn_number)

    async def remove_part(self, arn_number: str, part_id: int) -> ReceivingContainer:
        container = await self._get_container_or_404(arn_number)
        self._ensure_pending(container, "remove parts from")
        line = self._find_line(container, part_id)

        async def _remove():
            container.parts.remove(line)
            await self.db.flush()

        await run_in_transaction(self.db, _remove, action=f"Remove part line {part_id}", timeout=self.timeout)
        return await self.get_container(arn_number)

    async def delete_container(self, arn_number: str) -> bool:
        """Delete a pending container. No stock is touched."""
        container = await self._get_container_or_404(arn_number)
        self._ensure_pending(container, "delete")

        async def _delete():
            await self.db.delete(container)
            await self.db.flush()

        await run_in_transaction(self.db, _delete, action=f"Delete container {arn_number}", timeout=self.timeout)
        logger.info(f"🗑️ Deleted pending container {arn_number}")
        return True

    async def confirm_container(
        self, arn_number: str, inbound_date: date, user_id: Optional[int] = None
    ) -> Tuple[ReceivingContainer, bool]:
        """Mark the container and its lines COMPLETED and receive every line into stock.

        Returns the container and whether this call applied the intake. A
        container that is already COMPLETED is returned untouched.
        """
        container = await self._get_container_or_404(arn_number)
        if container.status == ReceivingStatus.COMPLETED.value:
            logger.info(f"Container {arn_number} already completed, nothing to apply")
            return container, False
        if not container.parts:
            raise ValidationError(f"Container {arn_number} has no parts to receive")
        if inbound_date is None:
            raise ValidationError("Inbound date is required")

        async def _confirm() -> bool:
            current = await self.get_container(arn_number, lock=True)
            if current is None:
                raise NotFoundError(f"Receiving container {arn_number} not found")
            if current.status == ReceivingStatus.COMPLETED.value:
                return False

            for line in sorted(current.parts, key=lambda p: p.part_number):
                await self.part_service.ensure_part(line.part_number, user_id)
                await self.ledger.apply_delta(
                    part_number=line.part_number,
                    delta=line.quantity,
                    transaction_type=TransactionType.INBOUND,
                    transaction_date=inbound_date,
                    reference_id=arn_number,
                    client_txn_id=f"RCV:{arn_number}:{line.id}",
                    notes=f"Container {current.container_number} inbound",
                    user_id=user_id,
                )
                line.status = ReceivingStatus.COMPLETED.value
                line.updated_by = user_id

            current.status = ReceivingStatus.COMPLETED.value
            current.inbound_date = inbound_date
            current.updated_by = user_id
            await self.outbox.enqueue(
                OutboxEventType.DAILY_SUMMARY_REQUESTED,
                {"date": inbound_date.isoformat(), "source": "receiving", "reference_id": arn_number},
                dedupe_key=f"SUMMARY:{inbound_date.isoformat()}:{arn_number}",
            )
            await self.db.flush()
            return True

        applied = await run_in_transaction(self.db, _confirm, action=f"Confirm container {arn_number}", timeout=self.timeout)
        received = await self.get_container(arn_number)
        if not applied:
            logger.info(f"Container {arn_number} was completed concurrently, nothing to apply")
            return received, False
        logger.info(
            f"✅ Container {received.container_number} ({arn_number}) received on {inbound_date}: "
            f"{len(received.parts)} line(s), {sum(p.quantity for p in received.parts)} units"
        )
        return received, True

    async def get_containers(
        self,
        page_index: int = 1,
        page_size: int = 100,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Get receiving containers with pagination"""
        query = (
            select(ReceivingContainer)
            .options(selectinload(ReceivingContainer.parts))
            .where(ReceivingContainer.is_deleted == False)
            .order_by(desc(ReceivingContainer.id))
        )

        conditions = []
        if status:
            conditions.append(ReceivingContainer.status == status)
        if start_date:
            conditions.append(ReceivingContainer.arrival_date >= start_date)
        if end_date:
            conditions.append(ReceivingContainer.arrival_date <= end_date)
        if search:
            term = f"%{search.strip()}%"
            conditions.append(
                or_(
                    ReceivingContainer.container_number.ilike(term),
                    ReceivingContainer.arn_number.ilike(term),
                )
            )
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
