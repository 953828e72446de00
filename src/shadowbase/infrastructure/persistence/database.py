"""Database engine management using SQLAlchemy 2.0 async.

This module provides the engine configuration for the model registry.
It supports SQLite (aiosqlite) and PostgreSQL (asyncpg) drivers.
"""

from typing import TYPE_CHECKING, AsyncContextManager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from shadowbase.core.config import Settings, get_settings
from shadowbase.core.logging import get_logger

if TYPE_CHECKING:
    from shadowbase.infrastructure.persistence.model_registry import ModelRegistry

logger = get_logger(__name__)


class DatabaseManager:
    """Database engine manager.

    Owns the async engine and hands out model registries bound to it.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the database manager."""
        self.settings = settings or get_settings()
        self._engine: AsyncEngine | None = None

    @property
    def engine(self) -> AsyncEngine:
        """Get or create the database engine.

        Returns:
            AsyncEngine: SQLAlchemy async engine instance.
        """
        if self._engine is None:
            self._engine = create_async_engine(
                self.settings.database_url,
                echo=self.settings.db_echo,
                pool_timeout=self.settings.db_pool_timeout,
                # SQLite-specific settings
                connect_args={
                    "check_same_thread": False,
                }
                if self.settings.database_url.startswith("sqlite")
                else {},
            )
            logger.info(
                "Database engine created",
                database_url=self._engine.url.render_as_string(hide_password=True),
            )
        return self._engine

    def begin(self) -> AsyncContextManager[AsyncConnection]:
        """Open a connection inside a transaction.

        Pass the connection as ``transaction=`` to several writes to make
        them, and their snapshots, one atomic unit.
        """
        return self.engine.begin()

    def create_registry(self) -> "ModelRegistry":
        """Create a model registry bound to this engine."""
        from shadowbase.infrastructure.persistence.model_registry import ModelRegistry

        return ModelRegistry(self.engine)

    async def disconnect(self) -> None:
        """Close the database engine and all connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Database engine disposed")

    async def check_connection(self) -> bool:
        """Check if database connection is working.

        Returns:
            bool: True if connection is successful, False otherwise.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                logger.debug("Database connection check successful")
                return True
        except Exception as e:
            logger.error("Database connection check failed", error=str(e))
            return False


# Global database manager instance
_db_manager: DatabaseManager | None = None


def get_db_manager() -> DatabaseManager:
    """Get the global database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager
