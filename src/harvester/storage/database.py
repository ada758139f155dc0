"""Async engine and sessions for the harvest tables.

The engine is created at import from ``DATABASE_URL``. Repositories open one
session per operation through ``session_factory``.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..config.settings import get_settings
from ..models.database import Base

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=False,
    # long harvest runs outlive idle connections
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    # imported rows are read after commit (ids, metadata)
    expire_on_commit=False,
    autoflush=False,
)


def session_factory() -> AsyncSession:
    return AsyncSessionLocal()


async def init_db() -> None:
    """Create data_sources, harvesting_configs, harvest_results and harvest_logs if missing.

    This includes the ``uq_harvest_results_batch_doc`` constraint that
    rejects a second import of the same batch.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
