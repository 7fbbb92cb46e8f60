import logging
from datetime import date
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_ledger.models.inventory.inventory_transaction import InventoryTransaction
from inventory_ledger.models.shared.enums import TransactionType
from inventory_ledger.services.inventory.inventory_transaction_service import InventoryTransactionService
from inventory_ledger.services.inventory.stock_record_service import StockRecordService

logger = logging.getLogger(__name__)


class StockLedger:
    """Pairs every stock mutation with its transaction row.

    Both writes happen in the caller's session and become durable on the
    caller's commit. ``balance_after`` is the stock right after the change.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.stock = StockRecordService(db)
        self.transactions = InventoryTransactionService(db)

    async def apply_delta(
        self,
        part_number: str,
        delta: int,
        transaction_type: TransactionType,
        transaction_date: date,
        reference_id: str,
        client_txn_id: str,
        notes: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Tuple[InventoryTransaction, bool]:
        """Add ``delta`` to stock. Returns the transaction and whether it was newly applied.

        The stock record is locked before the replay check so two writers
        carrying the same ``client_txn_id`` cannot both pass it.
        """
        await self.stock.lock_stock_record(part_number)
        existing = await self.transactions.get_by_client_txn_id(client_txn_id)
        if existing:
            return existing, False

        record, before = await self.stock.adjust_stock(part_number, delta)
        transaction = await self.transactions.append_transaction(
            part_number=record.part_number,
            transaction_type=transaction_type,
            quantity=delta,
            reference_id=reference_id,
            transaction_date=transaction_date,
            client_txn_id=client_txn_id,
            notes=notes,
            balance_after=record.current_stock,
            user_id=user_id,
        )
        logger.info(
            f"📦 {TransactionType(transaction_type).value} {record.part_number}: "
            f"{before} -> {record.current_stock} ({delta:+d}) ref={reference_id}"
        )
        return transaction, True

    async def overwrite(
        self,
        part_number: str,
        new_value: int,
        transaction_type: TransactionType,
        transaction_date: date,
        reference_id: str,
        client_txn_id: str,
        notes: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Tuple[Optional[InventoryTransaction], bool]:
        """Set stock to ``new_value`` and log the signed delta actually applied.

        When stock already equals ``new_value`` nothing is written and
        ``(None, False)`` is returned.
        """
        await self.stock.lock_stock_record(part_number)
        existing = await self.transactions.get_by_client_txn_id(client_txn_id)
        if existing:
            return existing, False

        record, before = await self.stock.upsert_stock(part_number, new_value)
        delta = new_value - before
        if delta == 0:
            return None, False

        transaction = await self.transactions.append_transaction(
            part_number=record.part_number,
            transaction_type=transaction_type,
            quantity=delta,
            reference_id=reference_id,
            transaction_date=transaction_date,
            client_txn_id=client_txn_id,
            notes=notes or f"{before} → {new_value}",
            balance_after=record.current_stock,
            user_id=user_id,
        )
        logger.info(
            f"📝 {TransactionType(transaction_type).value} {record.part_number}: "
            f"{before} -> {new_value} ({delta:+d}) ref={reference_id}"
        )
        return transaction, True
