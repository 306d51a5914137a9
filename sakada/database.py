"""
Sakada Cash Advance - Database Configuration

This module handles database connection setup using SQLAlchemy 2.0 async.
"""

import logging
from typing import Optional

from sqlalchemy import MetaData, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from sakada.config import settings
from sakada.utils.error_handling import ConstraintViolationException

logger = logging.getLogger(__name__)


# Naming convention for constraints (helps with migrations)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

SUMMARY_VIEW_NAME = "cash_advance_summary"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    metadata = MetaData(naming_convention=convention)


def _engine_options(url: str) -> dict:
    options = {
        "echo": settings.debug,  # Log SQL queries in debug mode
        "pool_pre_ping": True,   # Verify connections before use
    }
    if not url.startswith("sqlite"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return options


# Create async engine
engine = create_async_engine(
    settings.database_url_async,
    **_engine_options(settings.database_url_async),
)

# Create async session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_async_session() -> AsyncSession:
    """
    Dependency for getting async database session.
    Use with FastAPI's Depends().
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


# Alias for backward compatibility
get_db = get_async_session


def summary_view_ddl(dialect) -> str:
    """Render the CREATE VIEW statement for the cash advance summary."""
    from sakada.models.cash_advance import cash_advance_summary_select
    
    body = cash_advance_summary_select().compile(
        dialect=dialect,
        compile_kwargs={"literal_binds": True},
    )
    if dialect.name == "postgresql":
        return f"CREATE OR REPLACE VIEW {SUMMARY_VIEW_NAME} AS {body}"
    return f"CREATE VIEW IF NOT EXISTS {SUMMARY_VIEW_NAME} AS {body}"


async def create_summary_view(conn: AsyncConnection) -> None:
    """Install the read-only cash_advance_summary view."""
    await conn.execute(text(summary_view_ddl(conn.dialect)))


async def init_db():
    """
    Initialize database - create all tables and the summary view.
    Use this for development/testing only.
    For production, use Alembic migrations.
    """
    # Registers every mapped class on Base.metadata
    import sakada.models  # noqa: F401
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await create_summary_view(conn)
    logger.info("Database initialized: %s", settings.postgres_db)


async def close_db():
    """Close database connections."""
    await engine.dispose()


async def commit_or_raise(session: AsyncSession, resource_type: Optional[str] = None) -> None:
    """
    Commit the unit of work, translating integrity failures.
    
    The session is rolled back before raising so no partial write survives.
    """
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        logger.warning("Integrity error on %s: %s", resource_type or "commit", exc.orig)
        raise ConstraintViolationException.from_integrity_error(exc, resource_type) from exc
    except Exception:
        await session.rollback()
        raise


async def release_row_locks(session: AsyncSession) -> None:
    """
    End a transaction that has only read and locked rows.
    
    Called before raising a refusal so SELECT ... FOR UPDATE locks are not
    held until the session closes. Nothing is pending at that point, and
    loaded instances stay usable because the session does not expire on commit.
    """
    await session.commit()
