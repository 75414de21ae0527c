"""Database connection management for async Postgres operations.

This module provides async connection management using SQLAlchemy's async
engine with SQLModel. The engine is created once per process and shared by
reference through the service container.
"""
import os
import ssl
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

# Query parameters libpq understands but asyncpg rejects
_ASYNCPG_INCOMPATIBLE_PARAMS = ("sslmode", "channel_binding", "options")


def get_database_url(database_url: Optional[str] = None) -> tuple[str, dict]:
    """Normalize a Postgres URL for the asyncpg driver.

    Args:
        database_url: URL to normalize (default: DATABASE_URL env var).

    Returns:
        Tuple of (database URL with asyncpg driver, connect_args dict).

    Raises:
        ValueError: If no URL is given and DATABASE_URL is not set.
    """
    database_url = database_url or os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is not set")

    parsed = urlparse(database_url)
    query_params = parse_qs(parsed.query)

    connect_args = {}
    sslmode = query_params.get("sslmode", [""])[0]
    ssl_required = sslmode in ("require", "verify-ca", "verify-full")

    filtered_params = {
        k: v for k, v in query_params.items() if k not in _ASYNCPG_INCOMPATIBLE_PARAMS
    }
    new_query = urlencode(filtered_params, doseq=True) if filtered_params else ""

    clean_url = urlunparse((
        "postgresql+asyncpg",
        parsed.netloc,
        parsed.path,
        parsed.params,
        new_query,
        parsed.fragment
    ))

    if ssl_required:
        ssl_context = ssl.create_default_context()
        if sslmode == "require":
            # libpq "require" encrypts without verifying the server certificate
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = ssl_context

    return clean_url, connect_args


class Database:
    """Owns the async engine and session factory for one process."""

    def __init__(self, database_url: Optional[str] = None):
        url, connect_args = get_database_url(database_url)
        self.engine: AsyncEngine = create_async_engine(
            url,
            pool_pre_ping=True,  # Verify connections before use
            pool_size=5,
            max_overflow=10,
            pool_recycle=300,
            echo=False,
            connect_args=connect_args,
        )
        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )
        logger.info("Database engine created successfully")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Async context manager for database sessions.

        Usage:
            async with database.session() as session:
                result = await session.execute(query)
        """
        async with self.session_maker() as session:
            try:
                yield session
            except Exception as e:
                await session.rollback()
                logger.error(f"Database session error: {e}", exc_info=True)
                raise

    async def create_tables(self) -> None:
        """Create missing tables. Existing tables are left untouched."""
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Database tables ensured")

    async def close(self) -> None:
        """Dispose of pooled connections. Called during application shutdown."""
        await self.engine.dispose()
        logger.info("Database engine closed")
