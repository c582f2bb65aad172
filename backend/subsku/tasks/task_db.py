"""Database utilities for Dramatiq background tasks."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Register all models with SQLAlchemy metadata
import subsku.models  # noqa: F401
from subsku.config import settings


@asynccontextmanager
async def task_session_maker() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Provide a session maker bound to a fresh engine for one task run.

    Each asyncio.run() call creates a new event loop and the database
    connections must belong to it, so the engine lives only as long as
    the task and is disposed afterwards.
    """
    engine = create_async_engine(
        settings.database_url,
        echo=False,  # SQL logging controlled via structlog configuration
        future=True,
        pool_size=2,
        max_overflow=3,
        pool_pre_ping=True,
    )
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        # Release all connections back to PostgreSQL
        await engine.dispose()
