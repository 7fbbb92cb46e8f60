from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from inventory_ledger.models.shared.enums import ShipmentStatus

class ShipmentLineCreate(BaseModel):
    part_number: str
    quantity: int = Field(..., gt=0)

class ShipmentSequenceCreate(BaseModel):
    outbound_date: date
    sequence_label: str = Field(..., min_length=1, max_length=20)
    parts: List[ShipmentLineCreate] = Field(..., min_length=1)

class ShipmentLinesReplace(BaseModel):
    parts: List[ShipmentLineCreate] = Field(..., min_length=1)

class ShipmentActualUpdate(BaseModel):
    actual_qty: int = Field(..., ge=0)

class ShipmentConfirm(BaseModel):
    # None confirms every line, otherwise only the listed lines are deducted
    part_ids: Optional[List[int]] = None

class ShipmentPart(BaseModel):
    id: int
    sequence_id: int
    part_number: str
    planned_qty: int
    scanned_qty: int
    actual_qty: int
    status: ShipmentStatus

    class Config:
        from_attributes = True

class ShipmentSequence(BaseModel):
    id: int
    sequence_number: str
    outbound_date: date
    sequence_label: str
    status: ShipmentStatus
    total_scanned_qty: int
    total_actual_qty: int
    confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    created_by: Optional[int] = None
    parts: List[ShipmentPart] = Field(default_factory=list)

    class Config:
        from_attributes = True

class ShipmentConfirmation(BaseModel):
    sequence: ShipmentSequence
    applied: bool
    warnings: List[str] = Field(default_factory=list)
