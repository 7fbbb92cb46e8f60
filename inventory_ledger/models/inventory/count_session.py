from sqlalchemy import Column, String, DateTime, Text, Date
from sqlalchemy.orm import relationship
from inventory_ledger.db.base import BaseModel
from inventory_ledger.models.shared.enums import CountSessionStatus

class CountSession(BaseModel):
    __tablename__ = 'count_sessions'

    session_name = Column(String(100), nullable=False)
    session_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=CountSessionStatus.ACTIVE.value)
    notes = Column(Text)
    completed_at = Column(DateTime(timezone=True))

    # Relationships
    items = relationship(
        "CountItem",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="CountItem.id",
    )
