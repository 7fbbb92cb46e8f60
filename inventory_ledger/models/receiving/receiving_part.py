from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from inventory_ledger.db.base import BaseModel
from inventory_ledger.models.shared.enums import ReceivingStatus

class ReceivingPart(BaseModel):
    __tablename__ = 'receiving_parts'

    container_id = Column(Integer, ForeignKey('receiving_containers.id'), nullable=False, index=True)
    part_number = Column(String(50), nullable=False)
    quantity = Column(Integer, nullable=False)  # planned intake
    status = Column(String(20), nullable=False, default=ReceivingStatus.PENDING.value)

    __table_args__ = (
        UniqueConstraint("container_id", "part_number", name="uq_receiving_parts_container_part"),
    )

    # Relationships
    container = relationship("ReceivingContainer", back_populates="parts")
