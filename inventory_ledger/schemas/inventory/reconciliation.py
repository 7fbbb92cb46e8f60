from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date

class StockDivergence(BaseModel):
    part_number: str
    current_stock: int
    logged_balance: int
    difference: int

class RepairRequest(BaseModel):
    part_numbers: Optional[List[str]] = None
    transaction_date: Optional[date] = None
    batch_id: Optional[str] = None

class RepairResult(BaseModel):
    repaired: List[StockDivergence] = Field(default_factory=list)

class ShipmentMismatch(BaseModel):
    sequence_number: str
    part_number: str
    actual_qty: int
    logged_qty: int
