from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from inventory_ledger.models.shared.enums import CountSessionStatus, CountItemStatus, CountItemDisplay

class CountSessionCreate(BaseModel):
    session_name: str = Field(..., min_length=1, max_length=100)
    session_date: date
    notes: Optional[str] = None

class CountItemCreate(BaseModel):
    part_number: str
    # Defaults to the system stock snapshot when omitted
    physical_stock: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None

class CountItemEdit(BaseModel):
    physical_stock: Optional[int] = None
    notes: Optional[str] = None

class PendingEdit(BaseModel):
    physical_stock: Optional[int] = None
    notes: Optional[str] = None

    def is_empty(self) -> bool:
        return self.physical_stock is None and self.notes is None

class CountItemView(BaseModel):
    id: int
    part_number: str
    system_stock: int
    physical_stock: int
    difference: int
    notes: Optional[str] = None
    status: CountItemStatus
    display_status: CountItemDisplay
    has_pending_edit: bool = False

class CountSessionInDB(BaseModel):
    id: int
    session_name: str
    session_date: date
    status: CountSessionStatus
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    created_by: Optional[int] = None

    class Config:
        from_attributes = True

class CountSessionView(CountSessionInDB):
    items: List[CountItemView] = Field(default_factory=list)
    pending_edit_count: int = 0

class CompletionPreviewLine(BaseModel):
    item_id: int
    part_number: str
    system_stock: int
    physical_stock: int
    difference: int

class CountCompletionResult(BaseModel):
    session: CountSessionView
    applied: bool
    adjusted_parts: List[str] = Field(default_factory=list)
