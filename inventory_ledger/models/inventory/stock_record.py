from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from inventory_ledger.db.base import BaseModel
from inventory_ledger.models.shared.enums import StockStatus

class StockRecord(BaseModel):
    __tablename__ = 'stock_records'

    part_number = Column(String(50), unique=True, nullable=False, index=True)
    current_stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=StockStatus.OUT_OF_STOCK.value)
    last_updated = Column(DateTime(timezone=True), server_default=func.now())
    version = Column(Integer, nullable=False)

    # Every UPDATE checks and bumps the version, a stale write raises StaleDataError
    __mapper_args__ = {
        "version_id_col": version,
        "eager_defaults": True,
    }
