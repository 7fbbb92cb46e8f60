"""Imports every mapped model so Base.metadata is complete."""
from inventory_ledger.models.shared.enums import Base
from inventory_ledger.models.inventory.part import Part
from inventory_ledger.models.inventory.stock_record import StockRecord
from inventory_ledger.models.inventory.inventory_transaction import InventoryTransaction
from inventory_ledger.models.inventory.count_session import CountSession
from inventory_ledger.models.inventory.count_item import CountItem
from inventory_ledger.models.receiving.receiving_container import ReceivingContainer
from inventory_ledger.models.receiving.receiving_part import ReceivingPart
from inventory_ledger.models.logistics.shipment_sequence import ShipmentSequence
from inventory_ledger.models.logistics.shipment_part import ShipmentPart
from inventory_ledger.models.system.outbox_event import OutboxEvent
