from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from inventory_ledger.db.base import BaseModel
from inventory_ledger.models.shared.enums import ShipmentStatus

class ShipmentPart(BaseModel):
    __tablename__ = 'shipment_parts'

    sequence_id = Column(Integer, ForeignKey('shipment_sequences.id'), nullable=False, index=True)
    part_number = Column(String(50), nullable=False)
    planned_qty = Column(Integer, nullable=False, default=0)
    scanned_qty = Column(Integer, nullable=False, default=0)  # informational
    actual_qty = Column(Integer, nullable=False, default=0)  # the value deducted at confirmation
    status = Column(String(20), nullable=False, default=ShipmentStatus.PENDING.value)

    # Relationships
    sequence = relationship("ShipmentSequence", back_populates="parts")
