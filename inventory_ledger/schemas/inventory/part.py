from pydantic import BaseModel, validator
from typing import Optional
from datetime import datetime
from inventory_ledger.models.shared.enums import PartCategory, PartStatus

class PartBase(BaseModel):
    part_number: str
    category: Optional[PartCategory] = None
    description: Optional[str] = None

    @validator("part_number")
    def part_number_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("part_number is required")
        return v.strip().upper()

class PartCreate(PartBase):
    pass

class Part(PartBase):
    id: int
    category: PartCategory
    status: PartStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
