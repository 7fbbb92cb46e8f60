from typing import AsyncIterator
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from inventory_ledger.core.config import settings

database_url = settings.DATABASE_URL

engine_options = {
    "echo": False,
    "future": True,
    "pool_pre_ping": True,
}
# sqlite (tests, local tooling) does not accept queue pool sizing
if not database_url.startswith("sqlite"):
    engine_options.update(
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=60,
        pool_recycle=3600,
    )

engine = create_async_engine(database_url, **engine_options)

async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

async def get_async_session() -> AsyncIterator[AsyncSession]:
    async with async_session_maker() as session:
        yield session
