"""Database engine and session factory.

Provides async database connectivity for the SQLAlchemy record store.
Engines are created lazily so importing this module never opens a
connection or requires a database driver.
"""

from functools import lru_cache
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config import get_settings
from models.base import Base


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine with pool settings appropriate for the dialect."""
    engine_kwargs = {
        "pool_pre_ping": True,  # Verify connections before using
        "echo": False,  # Set to True for SQL query logging
    }

    # Pool settings only apply to server databases (not SQLite)
    if not database_url.startswith("sqlite"):
        engine_kwargs["pool_size"] = 5
        engine_kwargs["max_overflow"] = 10

    return create_async_engine(database_url, **engine_kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: rows are converted to dicts after commit
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@lru_cache()
def get_engine(database_url: Optional[str] = None) -> AsyncEngine:
    return build_engine(database_url or get_settings().DATABASE_URL)


async def create_all(engine: AsyncEngine) -> None:
    """Create every table (development and tests; production uses migrations)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
