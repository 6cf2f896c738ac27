"""
Async database engine and session factory for the message store.
Using SQLAlchemy 2.0 with async support
"""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """Owns the engine and hands out one AsyncSession per request."""

    def __init__(self, database_url: str, echo: bool = False):
        if not database_url:
            raise ValueError("Database URL is not configured")
        self.engine: AsyncEngine = create_async_engine(database_url, echo=echo)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_all(self) -> None:
        """Create tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database connections closed")

    def session(self) -> AsyncSession:
        return self.session_factory()
