from sqlalchemy.orm import declarative_base
from enum import Enum

Base = declarative_base()

# Enums
class TransactionType(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"
    PHYSICAL_INVENTORY = "PHYSICAL_INVENTORY"
    ADJUSTMENT = "ADJUSTMENT"

class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"

class PartCategory(str, Enum):
    REAR = "REAR"
    INNER = "INNER"

class PartStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

class ReceivingStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"

class ShipmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"

class CountSessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"

class CountItemStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"

class CountItemDisplay(str, Enum):
    # Display classification of a still pending count item
    MATCHED = "MATCHED"
    DIFFERENCE = "DIFFERENCE"
    COMPLETED = "COMPLETED"

class OutboxEventType(str, Enum):
    MOVEMENT_TRACKED = "MOVEMENT_TRACKED"
    DAILY_SUMMARY_REQUESTED = "DAILY_SUMMARY_REQUESTED"

class OutboxStatus(str, Enum):
    PENDING = "PENDING"
    DISPATCHED = "DISPATCHED"
    FAILED = "FAILED"
