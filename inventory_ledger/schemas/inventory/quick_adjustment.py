from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import date

class QuickAdjustmentRow(BaseModel):
    part_number: str
    current_stock: int
    has_record: bool

class PasteRequest(BaseModel):
    text: str
    start_part: Optional[str] = None

class PasteResult(BaseModel):
    changes: Dict[str, int] = Field(default_factory=dict)
    unmatched: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)

class QuickAdjustmentRequest(BaseModel):
    changes: Dict[str, int]
    reason: Optional[str] = None
    adjustment_date: Optional[date] = None
    # Reusing a batch id makes a retried request a no-op
    batch_id: Optional[str] = None

class AdjustedPart(BaseModel):
    part_number: str
    before: int
    after: int
    difference: int

class QuickAdjustmentResult(BaseModel):
    batch_id: str
    adjusted: List[AdjustedPart] = Field(default_factory=list)
    unchanged: List[str] = Field(default_factory=list)
