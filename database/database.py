"""Database connection handling."""
from contextlib import asynccontextmanager
from typing import AsyncIterator, List
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
import logging

logger = logging.getLogger(__name__)

class Base(DeclarativeBase):
    """Base class for all database models."""
    pass

def engine_options(database_url: str, acquire_timeout: float, pool_size: int) -> dict:
    """Connection options bounding how long a caller may wait for the database."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        # SQLite serializes writers itself; the busy timeout bounds lock waits
        return {"connect_args": {"timeout": acquire_timeout}}
    return {
        "pool_size": pool_size,
        "pool_timeout": acquire_timeout,
        "pool_pre_ping": True,
    }

class Database:
    """Database connection and session management.

    One instance is created at process start, handed to the services that
    need it and disposed with ``close()`` at shutdown.
    """

    def __init__(self, database_url: str, acquire_timeout: float = 30.0, pool_size: int = 5):
        """Initialize database connection.

        Args:
            database_url (str): Database connection URL
            acquire_timeout (float): Seconds to wait for a connection or lock
            pool_size (int): Maximum pooled connections for server databases
        """
        self.url = database_url
        self.engine = create_async_engine(
            database_url,
            **engine_options(database_url, acquire_timeout, pool_size)
        )
        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config):
        """Create a Database from a DatabaseConfig."""
        return cls(config.url, acquire_timeout=config.acquire_timeout, pool_size=config.pool_size)

    @property
    def session(self):
        """Get a session factory for creating new database sessions."""
        return self.async_session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Session wrapped in a transaction: commit on success, rollback on error."""
        async with self.async_session() as session:
            async with session.begin():
                yield session

    async def initialize(self) -> List[str]:
        """Migrate existing tables, then create any that are missing.

        Returns:
            List of ``table.column`` names added by the migration.
        """
        from .migrations import SchemaMigrator

        added = await SchemaMigrator(self.engine).migrate()
        await self.create_all()
        return added

    async def create_all(self):
        """Create all database tables."""
        try:
            # Import all models to ensure they're registered with Base
            from .models import GuildConfig, Streak  # noqa: F401

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self.logger.info("Database tables created successfully")
        except Exception as e:
            self.logger.error(f"Error creating database tables: {e}")
            raise

    async def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            self.logger.error(f"Database health check failed: {e}")
            return False

    async def close(self):
        """Close database connection."""
        await self.engine.dispose()
