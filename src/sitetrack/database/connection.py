"""Database connection management for SiteTrack.

This module provides factory functions for creating SQLAlchemy async engines
and session factories, configured from the application's DatabaseConfig,
plus the unit-of-work helper every mutating workflow operation runs in.

Example usage:
    >>> from sitetrack.config import DatabaseConfig
    >>> from sitetrack.database.connection import get_engine, get_session_factory
    >>>
    >>> engine = get_engine(DatabaseConfig(url="postgresql+asyncpg://localhost/sitetrack"))
    >>> SessionFactory = get_session_factory(engine)
    >>>
    >>> async with SessionFactory() as session:
    ...     async with unit_of_work(session):
    ...         session.add(project)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from sitetrack.config import DatabaseConfig


def get_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine from database configuration.

    Args:
        config: Database configuration containing URL, pool settings,
                and SQL echo preference.

    Returns:
        Configured AsyncEngine instance with connection pooling.
    """
    if config.url.startswith("sqlite"):
        # SQLite uses a single-file pool without size settings
        return create_async_engine(config.url, echo=config.echo)

    return create_async_engine(
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        echo=config.echo,
    )


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the given engine.

    Sessions use expire_on_commit=False so that attributes stay readable
    after commit without triggering lazy loads in async code.

    Args:
        engine: AsyncEngine to bind sessions to.

    Returns:
        Configured async_sessionmaker that produces AsyncSession instances.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run a block of writes as one transaction.

    Commits when the block exits normally and rolls back every write made in
    the block when it raises, so cross-entity side effects (submission status
    plus milestone status plus outbox event) land together or not at all.

    Args:
        session: Session the block writes through.

    Yields:
        The same session.
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
