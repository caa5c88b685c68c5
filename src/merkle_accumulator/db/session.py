"""
Merkle Accumulator - Database Session

Async database session management with connection pooling.
"""

from functools import lru_cache

import structlog
from sqlalchemy import Column, Integer, LargeBinary, MetaData, String, Table, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from merkle_accumulator.core.config import settings

logger = structlog.get_logger(__name__)

metadata = MetaData()

accumulators = Table(
    "accumulators",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("record", LargeBinary, nullable=False),
    Column("leaf_count", Integer, nullable=False, default=0),
    Column("root", String(64), nullable=False),
)


@lru_cache
def get_engine() -> AsyncEngine:
    """Create the process-wide engine from settings."""
    options = {"pool_pre_ping": True, "echo": settings.DEBUG}
    if settings.DATABASE_URL.startswith("postgresql"):
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_POOL_MAX_OVERFLOW,
            pool_recycle=3600,
        )
    return create_async_engine(settings.DATABASE_URL, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Verify connectivity and ensure the accumulators table exists."""
    engine = engine or get_engine()
    logger.info("Initializing database connection", url=engine.url.render_as_string(hide_password=True))

    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        await conn.run_sync(metadata.create_all)

    logger.info("Database connection verified")


async def close_db(engine: AsyncEngine | None = None) -> None:
    """Close database connections gracefully."""
    await (engine or get_engine()).dispose()
    logger.info("Database connections closed")

