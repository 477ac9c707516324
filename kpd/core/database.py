"""
Async SQLAlchemy connection management for the product class store.

Owns the engine and session factory, applies SQLite pragmas on connect and
exposes health checks in the same shape the HTTP layer reports them.
"""

from typing import Optional, Any, Dict
import logging
import time
from contextlib import asynccontextmanager

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from .config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM tables"""


class DatabaseManager:
    """Database manager holding one async engine and its session factory"""

    def __init__(
        self,
        database_url: Optional[str] = None,
        echo: Optional[bool] = None,
        busy_timeout: Optional[float] = None,
    ):
        self.database_url = database_url or settings.database_url
        self.echo = settings.database_echo if echo is None else echo
        self.busy_timeout = busy_timeout or settings.database_busy_timeout
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._connection_healthy = False
        self._last_health_check = 0.0
        self._health_check_interval = 30  # seconds

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def _get_engine_options(self) -> Dict[str, Any]:
        """Engine options per backend"""
        options: Dict[str, Any] = {"echo": self.echo}
        if self.is_sqlite:
            # sqlite3's timeout is the busy handler used by concurrent writers
            options["connect_args"] = {"timeout": self.busy_timeout}
        else:
            options.update({"pool_size": 10, "max_overflow": 10, "pool_pre_ping": True})
        return options

    def connect(self) -> AsyncEngine:
        """Create the engine and session factory (idempotent)"""
        if self.engine is not None:
            return self.engine

        self.engine = create_async_engine(self.database_url, **self._get_engine_options())
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _apply_sqlite_pragmas)

        logger.info(f"Database engine created for {self.engine.url.render_as_string(hide_password=True)}")
        return self.engine

    async def create_schema(self) -> None:
        """Create all ORM tables that do not exist yet"""
        engine = self.connect()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured")

    async def close(self) -> None:
        """Dispose the engine and its pooled connections"""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Database engine disposed")

    @asynccontextmanager
    async def session(self):
        """Yield a session; the caller decides when to commit"""
        if self.session_factory is None:
            self.connect()
        async with self.session_factory() as session:
            yield session

    @asynccontextmanager
    async def transaction(self):
        """Yield a session inside a transaction committed on exit"""
        if self.session_factory is None:
            self.connect()
        async with self.session_factory() as session:
            async with session.begin():
                yield session

    async def is_healthy(self) -> bool:
        """Check connectivity, caching the result for the health check interval"""
        current_time = time.time()
        if (current_time - self._last_health_check) < self._health_check_interval:
            return self._connection_healthy

        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            self._connection_healthy = True
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Database health check failed: {e}")
            self._connection_healthy = False

        self._last_health_check = current_time
        return self._connection_healthy

    def get_connection_stats(self) -> Dict[str, Any]:
        """Get engine/pool statistics"""
        stats = {
            "connected": self.engine is not None,
            "healthy": self._connection_healthy,
            "last_health_check": self._last_health_check,
        }
        if self.engine is not None:
            stats["dialect"] = self.engine.dialect.name
            stats["pool"] = self.engine.pool.status()
        return stats


def _apply_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA synchronous=NORMAL")
    finally:
        cursor.close()
