"""
Database session and engine management.

Provides async SQLite connections with per-connection pragmas,
transaction management, and context managers.

Responsibility: Manage database connections and sessions
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker
)
from sqlalchemy.pool import NullPool, StaticPool

from ..config import DatabaseConfig, settings

logger = logging.getLogger(__name__)


class Database:
    """
    Database connection manager.

    Handles engine creation, SQLite pragmas and session management for the
    single-file cache.

    Example:
        # Initialize
        db = Database()
        await db.initialize()
        await db.create_tables()

        # Use session (commits on success, rolls back on error)
        async with db.session() as session:
            result = await session.execute(query)

        # Cleanup
        await db.close()
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        """
        Initialize database manager

        Args:
            config: Database settings (defaults to the global settings)
        """
        self.config = config or settings.db
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Initialize database engine and session factory.

        File databases get no connection pooling (every session opens its
        own connection); an in-memory database shares one connection so all
        sessions see the same data.
        """
        if self._initialized:
            logger.warning("Database already initialized")
            return

        self.config.ensure_parent_dir()
        connection_string = self.config.connection_string

        logger.info(f"Opening cache database {connection_string}")

        if self.config.is_memory:
            pool_kwargs = {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        else:
            pool_kwargs = {"poolclass": NullPool}

        self.engine = create_async_engine(
            connection_string,
            echo=self.config.echo,
            **pool_kwargs
        )
        self._install_pragmas(self.engine)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Don't expire objects after commit
            autoflush=False,  # Manual flush control
        )

        self._initialized = True
        logger.debug("Engine ready")

    def _install_pragmas(self, engine: AsyncEngine) -> None:
        """Apply SQLite pragmas on every new DBAPI connection."""
        busy_timeout = self.config.busy_timeout_ms
        use_wal = self.config.wal and not self.config.is_memory

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout)}")
            if use_wal:
                # Readers in other processes are not blocked by a writer
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a new database session with automatic cleanup.

        Everything executed in the block is one transaction: committed on
        success, rolled back if the block raises.

        Yields:
            AsyncSession for database operations
        """
        if not self._initialized or not self.session_factory:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        session = self.session_factory()

        try:
            yield session
            if session.in_transaction():
                await session.commit()
        except Exception as e:
            logger.error(f"Session error, rolling back: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_tables(self) -> None:
        """Create missing cache tables; existing tables are left alone."""
        if not self._initialized or not self.engine:
            raise RuntimeError("Database not initialized")

        from .models import Base

        logger.debug("Ensuring cache schema")

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.debug("Cache schema ready")

    async def close(self) -> None:
        """
        Close database engine and cleanup connections.

        Should be called when the command finishes.
        """
        if not self._initialized:
            return

        if self.engine:
            logger.debug("Disposing engine")
            await self.engine.dispose()
            self.engine = None

        self.session_factory = None
        self._initialized = False

        logger.debug("Database closed")
