"""
Database configuration and session management.
"""

from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import get_settings

settings = get_settings()


def to_async_url(url: str) -> str:
    """Convert a plain database URL to its async driver form."""
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


async_url = to_async_url(settings.database.url)
is_sqlite = async_url.startswith("sqlite")

async_engine_args: Dict[str, Any] = {
    "echo": settings.database.echo,
    "pool_recycle": settings.database.pool_recycle,
    "pool_pre_ping": True,
}

# Only add pool settings for non-SQLite databases
if not is_sqlite:
    async_engine_args.update(
        {
            "pool_size": settings.database.pool_size,
            "max_overflow": 10,
        }
    )

async_engine = create_async_engine(async_url, **async_engine_args)

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Create base class for models
Base = declarative_base()


async def init_db() -> None:
    """Create any missing tables."""
    # Registers every model on Base.metadata
    import app.models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await async_engine.dispose()
