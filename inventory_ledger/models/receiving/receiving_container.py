from sqlalchemy import Column, String, Date
from sqlalchemy.orm import relationship
from inventory_ledger.db.base import BaseModel
from inventory_ledger.models.shared.enums import ReceivingStatus

class ReceivingContainer(BaseModel):
    __tablename__ = 'receiving_containers'

    arn_number = Column(String(30), unique=True, nullable=False, index=True)
    container_number = Column(String(50), unique=True, nullable=False, index=True)
    arrival_date = Column(Date)
    inbound_date = Column(Date)
    status = Column(String(20), nullable=False, default=ReceivingStatus.PENDING.value)

    # Relationships
    parts = relationship(
        "ReceivingPart",
        back_populates="container",
        cascade="all, delete-orphan",
        order_by="ReceivingPart.id",
    )
