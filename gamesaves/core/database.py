"""Synchronous database engine for the embedded SQLite backend."""
import logging
import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def create_sqlite_engine(database_url: str, echo: bool = False) -> Engine:
    """Create a SQLite engine, making sure the database directory exists."""
    url = make_url(database_url)
    in_memory = url.database in (None, "", ":memory:")

    if not in_memory:
        db_dir = os.path.dirname(url.database)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    kwargs = {
        "connect_args": {"check_same_thread": False},
        "echo": echo,
    }
    if in_memory:
        # A single shared connection, otherwise every worker thread sees an empty database
        kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    event.listen(engine, "connect", _set_sqlite_pragma)
    logger.info(f"SQLite database configured: {url.database or ':memory:'}")
    return engine


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite connection for better concurrency handling."""
    cursor = dbapi_connection.cursor()
    # WAL lets readers proceed while a save is being written
    cursor.execute("PRAGMA journal_mode=WAL")
    # Wait for locks instead of failing immediately
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()
