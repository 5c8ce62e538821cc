"""Embedded SQLite storage backend.

Runs the shared relational operations on a synchronous SQLAlchemy engine.
Each call executes in a worker thread so the event loop never blocks on
disk; a lock serializes writers on the single database file.
"""
import asyncio
import logging
import threading
from typing import Any, Callable, Optional

from sqlalchemy.orm import sessionmaker

from gamesaves.core.config import settings
from gamesaves.core.database import create_sqlite_engine
from gamesaves.models.base import Base
from gamesaves.storage.sql_chain import RelationalBackend

logger = logging.getLogger(__name__)


class SQLiteBackend(RelationalBackend):
    """Single-file database backend."""

    log_prefix = "SQLite"

    def __init__(
        self,
        database_url: Optional[str] = None,
        max_game_days: Optional[int] = None,
        echo: Optional[bool] = None,
    ):
        super().__init__(max_game_days=max_game_days)
        self._engine = create_sqlite_engine(
            database_url or settings.DATABASE_URL,
            echo=settings.DEBUG if echo is None else echo,
        )
        # Create the tables that store every save if they don't exist
        Base.metadata.create_all(bind=self._engine)
        self._session_factory = sessionmaker(bind=self._engine, autocommit=False, autoflush=False)
        self._lock = threading.Lock()

    def _execute_sync(self, fn: Callable[..., Any], *args: Any) -> Any:
        with self._lock:
            with self._session_factory() as session:
                result = fn(session, *args)
                session.commit()
                return result

    async def _execute(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(self._execute_sync, fn, *args)

    async def close(self) -> None:
        await super().close()
        self._engine.dispose()
        logger.info("SQLite database connections closed")
