"""Networked PostgreSQL storage backend.

Runs the shared relational operations on SQLAlchemy's asyncio engine
(asyncpg driver). Each operation is handed to ``AsyncSession.run_sync``
inside one transaction.
"""
import asyncio
import logging
from typing import Any, Callable, Optional

from gamesaves.core.config import settings
from gamesaves.core.database_async import create_async_db_engine, create_session_factory
from gamesaves.models.base import Base
from gamesaves.storage.sql_chain import RelationalBackend

logger = logging.getLogger(__name__)


class PostgresBackend(RelationalBackend):
    """Database server backend."""

    log_prefix = "PostgreSQL"

    def __init__(
        self,
        database_url: Optional[str] = None,
        max_game_days: Optional[int] = None,
        echo: Optional[bool] = None,
    ):
        super().__init__(max_game_days=max_game_days)
        self._engine = create_async_db_engine(
            database_url or settings.DATABASE_URL,
            echo=settings.DEBUG if echo is None else echo,
        )
        self._session_factory = create_session_factory(self._engine)
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    async def init_schema(self) -> None:
        """Create the tables on first use."""
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self._schema_ready = True

    async def _execute(self, fn: Callable[..., Any], *args: Any) -> Any:
        await self.init_schema()
        async with self._session_factory() as session:
            try:
                result = await session.run_sync(fn, *args)
                await session.commit()
                return result
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        await super().close()
        await self._engine.dispose()
        logger.info("PostgreSQL database connections closed")
