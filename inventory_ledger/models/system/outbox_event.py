from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from inventory_ledger.db.base import BaseModel
from inventory_ledger.models.shared.enums import OutboxStatus

class OutboxEvent(BaseModel):
    """Side effect recorded with the stock change and delivered after commit."""
    __tablename__ = 'outbox_events'

    event_type = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default=OutboxStatus.PENDING.value, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    dispatched_at = Column(DateTime(timezone=True))
    dedupe_key = Column(String(200), unique=True, nullable=False)
