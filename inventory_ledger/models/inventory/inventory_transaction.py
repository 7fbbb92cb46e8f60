from sqlalchemy import Column, Integer, String, Text, Date, Index
from inventory_ledger.db.base import BaseModel

class InventoryTransaction(BaseModel):
    """Immutable stock movement. Rows are only ever inserted."""
    __tablename__ = 'inventory_transactions'

    transaction_date = Column(Date, nullable=False, index=True)
    part_number = Column(String(50), nullable=False, index=True)
    transaction_type = Column(String(30), nullable=False)  # INBOUND, OUTBOUND, PHYSICAL_INVENTORY, ADJUSTMENT
    quantity = Column(Integer, nullable=False)  # signed
    reference_id = Column(String(100), nullable=False, index=True)
    notes = Column(Text)
    balance_after = Column(Integer, nullable=True)
    client_txn_id = Column(String(200), unique=True, nullable=False)

    __table_args__ = (
        Index("ix_inventory_transactions_part_date", "part_number", "transaction_date"),
    )
