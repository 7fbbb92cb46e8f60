import logging
from datetime import date
from typing import Any, Dict, List, Optional
from sqlalchemy import and_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from inventory_ledger.core.exceptions import DuplicateTransactionError, ValidationError
from inventory_ledger.models.inventory.inventory_transaction import InventoryTransaction
from inventory_ledger.models.shared.enums import TransactionType
from inventory_ledger.utils.validators.validation_utils import normalize_part_number

logger = logging.getLogger(__name__)


class InventoryTransactionService:
    """Append-only log of stock movements.

    Quantities are signed: positive increments stock, negative decrements it.
    Every row carries a caller generated ``client_txn_id``. Appending an id
    that is already logged raises DuplicateTransactionError, so callers check
    ``get_by_client_txn_id`` before mutating anything.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_client_txn_id(self, client_txn_id: str) -> Optional[InventoryTransaction]:
        result = await self.db.execute(
            select(InventoryTransaction).where(InventoryTransaction.client_txn_id == client_txn_id)
        )
        return result.scalar_one_or_none()

    def _validate(self, transaction_type, quantity, reference_id: str, client_txn_id: str) -> TransactionType:
        try:
            txn_type = TransactionType(transaction_type)
        except ValueError:
            raise ValidationError(f"Unknown transaction type: {transaction_type}")

        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Transaction quantity must be an integer")
        if quantity == 0:
            raise ValidationError("Transaction quantity must not be zero")
        if txn_type == TransactionType.INBOUND and quantity < 0:
            raise ValidationError("INBOUND transactions must have a positive quantity")
        if txn_type == TransactionType.OUTBOUND and quantity > 0:
            raise ValidationError("OUTBOUND transactions must have a negative quantity")
        if not reference_id or not str(reference_id).strip():
            raise ValidationError("Transaction reference is required")
        if not client_txn_id:
            raise ValidationError("client_txn_id is required")
        return txn_type

    async def append_transaction(
        self,
        part_number: str,
        transaction_type: TransactionType,
        quantity: int,
        reference_id: str,
        transaction_date: date,
        client_txn_id: str,
        notes: Optional[str] = None,
        balance_after: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> InventoryTransaction:
        """Append one movement inside the caller's database transaction."""
        txn_type = self._validate(transaction_type, quantity, reference_id, client_txn_id)

        if await self.get_by_client_txn_id(client_txn_id):
            logger.warning(f"⚠️ Transaction {client_txn_id} already recorded, refusing to append again")
            raise DuplicateTransactionError(client_txn_id)

        transaction = InventoryTransaction(
            transaction_date=transaction_date,
            part_number=normalize_part_number(part_number),
            transaction_type=txn_type.value,
            quantity=quantity,
            reference_id=str(reference_id).strip(),
            notes=notes,
            balance_after=balance_after,
            client_txn_id=client_txn_id,
            created_by=user_id,
        )
        self.db.add(transaction)
        await self.db.flush()
        return transaction

    async def get_logged_balance(self, part_number: str) -> int:
        """Running sum of signed quantities for one part"""
        result = await self.db.execute(
            select(func.coalesce(func.sum(InventoryTransaction.quantity), 0))
            .where(InventoryTransaction.part_number == normalize_part_number(part_number))
        )
        return int(result.scalar() or 0)

    async def get_logged_balances(self) -> Dict[str, int]:
        result = await self.db.execute(
            select(InventoryTransaction.part_number, func.sum(InventoryTransaction.quantity))
            .group_by(InventoryTransaction.part_number)
        )
        return {part_number: int(total or 0) for part_number, total in result.all()}

    async def get_part_history(self, part_number: str) -> List[InventoryTransaction]:
        result = await self.db.execute(
            select(InventoryTransaction)
            .where(InventoryTransaction.part_number == normalize_part_number(part_number))
            .order_by(InventoryTransaction.id)
        )
        return result.scalars().all()

    async def get_transactions_by_reference(
        self, reference_id: str, transaction_type: Optional[TransactionType] = None
    ) -> List[InventoryTransaction]:
        query = select(InventoryTransaction).where(InventoryTransaction.reference_id == reference_id)
        if transaction_type:
            query = query.where(InventoryTransaction.transaction_type == TransactionType(transaction_type).value)
        result = await self.db.execute(query.order_by(InventoryTransaction.id))
        return result.scalars().all()

    async def get_transactions(
        self,
        page_index: int = 1,
        page_size: int = 100,
        part_number: Optional[str] = None,
        transaction_type: Optional[TransactionType] = None,
        reference_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Get transactions with filters and pagination, newest first"""
        query = select(InventoryTransaction).order_by(
            desc(InventoryTransaction.transaction_date), desc(InventoryTransaction.id)
        )

        conditions = []
        if part_number:
            conditions.append(InventoryTransaction.part_number == normalize_part_number(part_number))
        if transaction_type:
            conditions.append(InventoryTransaction.transaction_type == TransactionType(transaction_type).value)
        if reference_id:
            conditions.append(InventoryTransaction.reference_id == reference_id)
        if start_date:
            conditions.append(InventoryTransaction.transaction_date >= start_date)
        if end_date:
            conditions.append(InventoryTransaction.transaction_date <= end_date)
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
