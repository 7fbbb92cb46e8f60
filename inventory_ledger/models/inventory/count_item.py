from sqlalchemy import Column, Integer, String, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from inventory_ledger.db.base import BaseModel
from inventory_ledger.models.shared.enums import CountItemStatus

class CountItem(BaseModel):
    __tablename__ = 'count_items'

    session_id = Column(Integer, ForeignKey('count_sessions.id'), nullable=False, index=True)
    part_number = Column(String(50), nullable=False)
    system_stock = Column(Integer, nullable=False)  # snapshot when the item was added
    physical_stock = Column(Integer, nullable=False)
    difference = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=CountItemStatus.PENDING.value)
    notes = Column(Text)

    __table_args__ = (
        UniqueConstraint("session_id", "part_number", name="uq_count_items_session_part"),
    )

    # Relationships
    session = relationship("CountSession", back_populates="items")
