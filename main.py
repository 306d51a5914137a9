"""
Sakada Cash Advance - FastAPI Application Entry Point

Hosts the shared exception handlers and a health check. The cash advance
ledger itself is used through the service layer in ``sakada.services``.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sakada import __version__
from sakada.config import settings
from sakada.database import close_db, get_async_session, init_db
from sakada.utils.error_handling import setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Database: {settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}")

    # Initialize database (dev only - use migrations in production)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Cash advance request, approval and repayment tracking",
    version=__version__,
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s -> %s (%.1f ms)",
        request.method, request.url.path, response.status_code, elapsed_ms,
    )
    return response


@app.get("/")
async def root():
    """Service identification."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "environment": settings.app_env,
    }


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_async_session)):
    """Health check endpoint."""
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Health check database query failed: {e}")
        database = "unavailable"
    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
