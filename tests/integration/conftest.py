import pytest
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_ledger.main import app
from inventory_ledger.api.dependencies import get_pending_edit_store, get_session_factory
from inventory_ledger.core.database import get_async_session
from inventory_ledger.db.all_models import Base
from inventory_ledger.services.inventory.pending_edit_store import InMemoryPendingEditStore

# Fresh in-memory database per test
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def pending_store() -> InMemoryPendingEditStore:
    return InMemoryPendingEditStore()


@pytest.fixture
async def client(session_maker, pending_store) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the test database"""
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_maker
    app.dependency_overrides[get_pending_edit_store] = lambda: pending_store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
