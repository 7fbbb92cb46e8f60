from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from inventory_ledger.models.shared.enums import StockStatus

class StockRecord(BaseModel):
    id: int
    part_number: str
    current_stock: int
    min_stock: int
    status: StockStatus
    last_updated: Optional[datetime] = None
    version: int

    class Config:
        from_attributes = True

class StockLevel(BaseModel):
    """Stock for one part, zero when the part has never been stocked."""
    part_number: str
    current_stock: int
    status: StockStatus
    has_record: bool
