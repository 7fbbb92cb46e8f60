from fastapi import APIRouter
from inventory_ledger.api.v1.endpoints.inventory import count_sessions, parts, quick_adjustments, reconciliation, stock_records, transactions
from inventory_ledger.api.v1.endpoints.logistics import shipment_sequences
from inventory_ledger.api.v1.endpoints.receiving import receiving_containers

api_router = APIRouter()

# Inventory routes
api_router.include_router(parts.router, prefix="/inventory/parts", tags=["Inventory"])
api_router.include_router(stock_records.router, prefix="/inventory/stock", tags=["Inventory"])
api_router.include_router(transactions.router, prefix="/inventory/transactions", tags=["Inventory"])
api_router.include_router(quick_adjustments.router, prefix="/inventory/quick-adjustments", tags=["Inventory"])
api_router.include_router(reconciliation.router, prefix="/inventory/reconciliation", tags=["Inventory"])

# Workflow routes
api_router.include_router(receiving_containers.router, prefix="/receiving/containers", tags=["Receiving"])
api_router.include_router(shipment_sequences.router, prefix="/shipments", tags=["Shipments"])
api_router.include_router(count_sessions.router, prefix="/physical-count", tags=["Physical Count"])
