import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from inventory_ledger.core.config import settings
from inventory_ledger.core.database import engine
from inventory_ledger.core.logging_config import setup_logging
from inventory_ledger.core.redis import redis_client
from inventory_ledger.api.v1.api import api_router
from inventory_ledger.middleware.logging import LoggingMiddleware

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"📦 Inventory Ledger Service starting ({settings.ENVIRONMENT})")
    yield
    await redis_client.disconnect()
    await engine.dispose()
    logger.info("Inventory Ledger Service stopped")


app = FastAPI(
    title="Inventory Ledger Service",
    description="Stock on hand, movement log and receiving/shipment/count workflows for parts inventory",
    version=APP_VERSION,
    lifespan=lifespan,
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS,
)
app.add_middleware(LoggingMiddleware)

# Include routers
app.include_router(api_router, prefix="/api/v1")

@app.get("/")
async def root():
    return {
        "message": "📦 Inventory Ledger Service",
        "status": "active",
        "version": APP_VERSION,
        "docs": "/docs"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
        "pending_edit_backend": settings.PENDING_EDIT_BACKEND,
    }


def run_http(host: str = "0.0.0.0", port: int = 9106):
    """Run the HTTP server"""
    import uvicorn
    print(f"🚀 Starting HTTP server on port {port}...")
    uvicorn.run(
        "inventory_ledger.main:app",  # Use string import
        host=host,
        port=port,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run_http()
