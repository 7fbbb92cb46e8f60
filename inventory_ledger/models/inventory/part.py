from sqlalchemy import Column, String, Text
from inventory_ledger.db.base import BaseModel
from inventory_ledger.models.shared.enums import PartStatus

class Part(BaseModel):
    __tablename__ = 'parts'

    part_number = Column(String(50), unique=True, nullable=False, index=True)
    category = Column(String(20), nullable=False)  # REAR, INNER
    status = Column(String(20), nullable=False, default=PartStatus.ACTIVE.value)
    description = Column(Text)
