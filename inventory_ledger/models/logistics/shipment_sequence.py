from sqlalchemy import Column, Integer, String, DateTime, Date, UniqueConstraint
from sqlalchemy.orm import relationship
from inventory_ledger.db.base import BaseModel
from inventory_ledger.models.shared.enums import ShipmentStatus

class ShipmentSequence(BaseModel):
    __tablename__ = 'shipment_sequences'

    sequence_number = Column(String(50), unique=True, nullable=False, index=True)
    outbound_date = Column(Date, nullable=False)
    sequence_label = Column(String(20), nullable=False)  # numbered run or 'AS' for ad-hoc
    status = Column(String(20), nullable=False, default=ShipmentStatus.PENDING.value)
    total_scanned_qty = Column(Integer, nullable=False, default=0)
    total_actual_qty = Column(Integer, nullable=False, default=0)
    confirmed_at = Column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("outbound_date", "sequence_label", name="uq_shipment_sequences_date_label"),
    )

    # Relationships
    parts = relationship(
        "ShipmentPart",
        back_populates="sequence",
        cascade="all, delete-orphan",
        order_by="ShipmentPart.id",
    )
