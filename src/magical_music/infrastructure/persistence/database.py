"""Database engine and session management."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from magical_music.config import DatabaseSettings
from magical_music.domain.exceptions import DatabaseUnavailableError

logger = logging.getLogger(__name__)


class Database:
    """Database connection and session manager.

    Creating the engine does not touch the network. connect() is the startup probe
    the lifecycle controller awaits; it is the only call allowed to fail startup.
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self.settings = settings
        self._connected = False

        engine_kwargs: dict[str, Any] = {
            "echo": settings.echo,
            "pool_pre_ping": settings.pool_pre_ping,
        }
        if self.is_sqlite:
            engine_kwargs["connect_args"] = {"timeout": 30}
        else:
            engine_kwargs.update(
                {
                    "pool_size": settings.pool_size,
                    "max_overflow": settings.max_overflow,
                    "pool_timeout": settings.connect_timeout,
                }
            )

        self._engine = create_async_engine(settings.url, **engine_kwargs)
        if self.is_sqlite:
            self._enable_sqlite_foreign_keys()

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.settings.url.startswith("sqlite")

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def safe_url(self) -> str:
        """Connection URL with the password masked, for logs."""
        return make_url(self.settings.url).render_as_string(hide_password=True)

    def _enable_sqlite_foreign_keys(self) -> None:
        """Enable foreign key constraints for SQLite connections."""

        @event.listens_for(self._engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    async def _probe(self) -> None:
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def connect(self) -> None:
        """Open a connection and run a probe query.

        Raises:
            DatabaseUnavailableError: the probe failed or exceeded connect_timeout
        """
        try:
            await asyncio.wait_for(self._probe(), timeout=self.settings.connect_timeout)
        except TimeoutError as exc:
            self._connected = False
            raise DatabaseUnavailableError(
                f"Database did not answer within {self.settings.connect_timeout:.0f}s",
                url=self.safe_url,
            ) from exc
        except (SQLAlchemyError, OSError) as exc:
            self._connected = False
            raise DatabaseUnavailableError(
                f"Database unreachable: {exc}", url=self.safe_url
            ) from exc
        self._connected = True

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session for a FastAPI dependency."""
        async with self.session_scope() as session:
            yield session

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for database operations."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                # Rollback on any exception, then re-raise for the caller to handle.
                await session.rollback()
                raise

    async def close(self) -> None:
        """Dispose the engine and its pooled connections."""
        self._connected = False
        await self._engine.dispose()
