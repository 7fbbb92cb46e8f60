from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from inventory_ledger.models.shared.enums import ReceivingStatus

class ReceivingPartCreate(BaseModel):
    part_number: str
    quantity: int = Field(..., gt=0)

class ReceivingPartUpdate(BaseModel):
    quantity: int = Field(..., gt=0)

class ReceivingPart(BaseModel):
    id: int
    part_number: str
    quantity: int
    status: ReceivingStatus

    class Config:
        from_attributes = True

class ReceivingContainerCreate(BaseModel):
    container_number: str = Field(..., min_length=1, max_length=50)
    arrival_date: Optional[date] = None
    parts: List[ReceivingPartCreate] = Field(default_factory=list)

class ReceivingContainerUpdate(BaseModel):
    container_number: Optional[str] = Field(None, min_length=1, max_length=50)
    arrival_date: Optional[date] = None

class ReceivingConfirm(BaseModel):
    inbound_date: date

class ReceivingContainer(BaseModel):
    id: int
    arn_number: str
    container_number: str
    arrival_date: Optional[date] = None
    inbound_date: Optional[date] = None
    status: ReceivingStatus
    created_at: Optional[datetime] = None
    created_by: Optional[int] = None
    parts: List[ReceivingPart] = Field(default_factory=list)

    class Config:
        from_attributes = True

class ReceivingConfirmation(BaseModel):
    container: ReceivingContainer
    applied: bool
