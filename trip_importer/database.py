"""Async database session and engine configuration."""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from trip_importer.config import settings

Base = declarative_base()

# asyncpg takes connect and per-statement deadlines as connect args
_engine_options = {}
if settings.database_url.startswith("postgresql+asyncpg"):
    _engine_options = {
        "pool_timeout": settings.database_timeout,
        "connect_args": {
            "timeout": settings.database_timeout,
            "command_timeout": settings.database_timeout,
        },
    }

# Async engine for PostgreSQL (default) or provided DATABASE_URL
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    **_engine_options,
)

# Session factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def init_db() -> None:
    """Create tables if they don't exist."""
    from trip_importer.models import orm  # noqa: F401  Ensures models are registered

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

