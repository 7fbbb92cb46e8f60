import logging
import uuid
from datetime import date
from typing import List, Optional
from sqlalchemy import and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from inventory_ledger.models.inventory.stock_record import StockRecord
from inventory_ledger.models.logistics.shipment_sequence import ShipmentSequence
from inventory_ledger.models.shared.enums import ShipmentStatus, TransactionType
from inventory_ledger.schemas.inventory.reconciliation import ShipmentMismatch, StockDivergence
from inventory_ledger.services.common.unit_of_work import run_in_transaction
from inventory_ledger.services.inventory.inventory_transaction_service import InventoryTransactionService
from inventory_ledger.utils.validators.validation_utils import normalize_part_number

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Finds stock records the transaction log does not explain, and repairs the log."""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout
        self.transactions = InventoryTransactionService(db)

    async def find_divergences(self, part_numbers: Optional[List[str]] = None) -> List[StockDivergence]:
        query = select(StockRecord).order_by(StockRecord.part_number)
        if part_numbers:
            query = query.where(StockRecord.part_number.in_([normalize_part_number(p) for p in part_numbers]))
        records = (await self.db.execute(query)).scalars().all()
        balances = await self.transactions.get_logged_balances()

        divergences = []
        for record in records:
            logged = balances.get(record.part_number, 0)
            if logged != record.current_stock:
                divergences.append(
                    StockDivergence(
                        part_number=record.part_number,
                        current_stock=record.current_stock,
                        logged_balance=logged,
                        difference=record.current_stock - logged,
                    )
                )
        if divergences:
            logger.warning(f"⚠️ {len(divergences)} stock record(s) diverge from the transaction log")
        return divergences

    async def repair(
        self,
        part_numbers: Optional[List[str]] = None,
        transaction_date: Optional[date] = None,
        user_id: Optional[int] = None,
        batch_id: Optional[str] = None,
    ) -> List[StockDivergence]:
        """Append a corrective ADJUSTMENT per divergent part. Stock records are left as they are.

        Each run is keyed by ``batch_id``; retrying a batch posts nothing for
        parts it already corrected, and those parts are not reported again.
        """
        transaction_date = transaction_date or date.today()
        reference_id = f"RECON-{transaction_date.strftime('%Y%m%d')}"
        batch_id = batch_id or f"{reference_id}-{uuid.uuid4().hex[:8].upper()}"
        divergences: List[StockDivergence] = []

        async def _repair():
            for divergence in await self.find_divergences(part_numbers):
                client_txn_id = f"RECON:{batch_id}:{divergence.part_number}"
                if await self.transactions.get_by_client_txn_id(client_txn_id):
                    logger.info(f"{divergence.part_number} already reconciled in batch {batch_id}, skipping")
                    continue
                await self.transactions.append_transaction(
                    part_number=divergence.part_number,
                    transaction_type=TransactionType.ADJUSTMENT,
                    quantity=divergence.difference,
                    reference_id=reference_id,
                    transaction_date=transaction_date,
                    client_txn_id=client_txn_id,
                    notes=f"Reconciliation: log {divergence.logged_balance} → stock {divergence.current_stock}",
                    balance_after=divergence.current_stock,
                    user_id=user_id,
                )
                divergences.append(divergence)

        await run_in_transaction(self.db, _repair, action=f"Reconcile stock log ({batch_id})", timeout=self.timeout)
        for divergence in divergences:
            logger.info(f"🔧 Reconciled {divergence.part_number}: {divergence.difference:+d} batch={batch_id}")
        return divergences

    async def verify_shipments(self, since: date) -> List[ShipmentMismatch]:
        """Compare confirmed shipment lines with the OUTBOUND rows logged for them."""
        result = await self.db.execute(
            select(ShipmentSequence)
            .options(selectinload(ShipmentSequence.parts))
            .where(
                and_(
                    ShipmentSequence.status == ShipmentStatus.CONFIRMED.value,
                    ShipmentSequence.outbound_date >= since,
                    ShipmentSequence.is_deleted == False
                )
            )
            .order_by(ShipmentSequence.outbound_date, ShipmentSequence.id)
        )
        mismatches = []
        for sequence in result.scalars().all():
            logged = {}
            for transaction in await self.transactions.get_transactions_by_reference(
                sequence.sequence_number, TransactionType.OUTBOUND
            ):
                logged[transaction.part_number] = logged.get(transaction.part_number, 0) - transaction.quantity

            for line in sequence.parts:
                logged_qty = logged.get(line.part_number, 0)
                if logged_qty != line.actual_qty:
                    mismatches.append(
                        ShipmentMismatch(
                            sequence_number=sequence.sequence_number,
                            part_number=line.part_number,
                            actual_qty=line.actual_qty,
                            logged_qty=logged_qty,
                        )
                    )
        if mismatches:
            logger.warning(f"⚠️ {len(mismatches)} confirmed shipment line(s) do not match the log")
        return mismatches
