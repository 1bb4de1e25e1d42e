"""Async engine, session factory and the request-scoped session dependency.

The engine talks to PostgreSQL through asyncpg. A request gets one session;
it commits when the handler returns, rolls back when SQLAlchemy raises, and
a transaction held longer than ``db_slow_query_threshold_ms`` is logged.
"""

import re
import time
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from brandkit.core.config import Settings, get_settings
from brandkit.core.logging import db_logger, get_logger

logger = get_logger(__name__)

ASYNC_SCHEMES = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
}

# Ordered from most to least specific
_TABLE_IN_ERROR = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r'relation "([^"]+)"',
        r"table '([^']+)'",
        r'INSERT INTO "?([^\s"(]+)"?',
        r'UPDATE "?([^\s"]+)"?',
        r'DELETE FROM "?([^\s"]+)"?',
    )
)


class Base(DeclarativeBase):
    pass


def to_async_url(db_url: str) -> str:
    """Rewrite a plain postgres URL to use the asyncpg driver."""
    for prefix, replacement in ASYNC_SCHEMES.items():
        if db_url.startswith(prefix):
            return replacement + db_url[len(prefix) :]
    return db_url


def _connect_args(settings: Settings) -> dict[str, Any]:
    # asyncpg spells TLS as ssl=..., libpq's sslmode is not understood
    args: dict[str, Any] = {
        "timeout": settings.db_connect_timeout,
        "command_timeout": settings.db_command_timeout,
    }
    if settings.environment == "production":
        args["ssl"] = "require"
    return args


class DatabaseManager:
    """Owns the engine and session factory for the process."""

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def _require(self, value: Any) -> Any:
        if value is None:
            raise RuntimeError("Database not initialized. Call init_db() first.")
        return value

    @property
    def engine(self) -> AsyncEngine:
        return self._require(self._engine)

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._require(self._session_factory)

    def init_db(self) -> None:
        """Build the engine from settings; connection errors are logged and re-raised."""
        settings = get_settings()
        db_url = to_async_url(str(settings.database_url))

        try:
            engine = create_async_engine(
                db_url,
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_timeout=settings.db_pool_timeout,
                pool_pre_ping=True,
                echo=settings.debug,
                connect_args=_connect_args(settings),
            )
        except Exception as e:
            db_logger.connection_error(e, db_url)
            raise

        self._engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database engine ready", extra={"pool_size": settings.db_pool_size})

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed")

    async def check_connection(self) -> bool:
        """Run ``SELECT 1``; False (and a logged error) when that fails."""
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            db_logger.connection_error(e, str(get_settings().database_url))
            return False
        return True


db_manager = DatabaseManager()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session bound to the request."""
    threshold_ms = get_settings().db_slow_query_threshold_ms

    async with db_manager.session_factory() as session:
        started = time.monotonic()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            db_logger.transaction_failure(
                e, table=_extract_table_from_error(e), context="request session"
            )
            raise
        finally:
            held_ms = (time.monotonic() - started) * 1000
            if held_ms > threshold_ms:
                db_logger.slow_query(query="request session", duration_ms=held_ms)


def _extract_table_from_error(error: Exception) -> str | None:
    """Best-effort table name from a driver error message."""
    message = str(error)
    for pattern in _TABLE_IN_ERROR:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None
