"""Database connection and session management for LiftMetrics.

Provides async SQLAlchemy engine and session management.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from liftmetrics.db.models import Base


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, making sure a SQLite file's directory exists.

    Args:
        url: SQLAlchemy async database URL
        echo: Log every SQL statement

    Returns:
        AsyncEngine: SQLAlchemy async engine
    """
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

    return create_async_engine(url, echo=echo)


@asynccontextmanager
async def get_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Get async database session (context manager).

    Usage:
        async with get_session(engine) as session:
            result = await session.execute(query)

    Yields:
        AsyncSession: SQLAlchemy async session

    Raises:
        SQLAlchemyError: If database operation fails
    """
    session = async_sessionmaker(engine, expire_on_commit=False)()

    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db(engine: AsyncEngine, drop: bool = False) -> None:
    """Create all tables (optionally dropping them first).

    Raises:
        SQLAlchemyError: If table creation fails
    """
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
