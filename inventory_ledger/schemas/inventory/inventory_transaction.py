from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime, date
from inventory_ledger.models.shared.enums import TransactionType

class InventoryTransaction(BaseModel):
    id: int
    transaction_date: date
    part_number: str
    transaction_type: TransactionType
    quantity: int
    reference_id: str
    notes: Optional[str] = None
    balance_after: Optional[int] = None
    client_txn_id: str
    created_at: Optional[datetime] = None
    created_by: Optional[int] = None

    class Config:
        from_attributes = True

class PartHistory(BaseModel):
    part_number: str
    current_stock: int
    logged_balance: int
    transactions: List[InventoryTransaction]
