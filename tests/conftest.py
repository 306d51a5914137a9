"""
Sakada Cash Advance - Test Configuration

Pytest fixtures and configuration.

Each test gets its own in-memory SQLite database (aiosqlite) with foreign
keys enforced and the cash_advance_summary view installed.
"""

from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import sakada.models  # noqa: F401  (registers mappers and audit listeners)
from sakada.database import Base, create_summary_view, get_async_session
from sakada.models.employee import Employee
from sakada.models.user import User, UserRole
from tests.factories import make_employee, make_user
from main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await create_summary_view(conn)
    
    yield engine
    
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""
    
    async def override_get_session():
        yield db_session
    
    app.dependency_overrides[get_async_session] = override_get_session
    
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    
    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """An active administrator."""
    return await make_user(db_session, "admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def supervisor_user(db_session: AsyncSession) -> User:
    """An active supervisor."""
    return await make_user(db_session, "supervisor", UserRole.SUPERVISOR)


@pytest_asyncio.fixture
async def employee(db_session: AsyncSession) -> Employee:
    """An employee with no supervisor."""
    return await make_employee(db_session, "Maria", "Santos")


@pytest_asyncio.fixture
async def second_employee(db_session: AsyncSession) -> Employee:
    return await make_employee(db_session, "Jose", "Reyes")
