"""Save store abstraction layer.

Provides a pluggable backend interface for versioned game snapshots.

Configuration:
    LOCAL_FS_DB=<anything>        selects the local file tree backend
    DATABASE_URL=postgres://...   selects the PostgreSQL backend
    DATABASE_URL=sqlite:///...    selects the SQLite backend (default)
"""

import logging
from typing import Optional

from gamesaves.core.config import Settings, settings as default_settings
from gamesaves.storage.backend import SaveStoreBackend
from gamesaves.storage.file_tree import FileTreeBackend
from gamesaves.storage.postgres_backend import PostgresBackend
from gamesaves.storage.save_chain import GameData, Score, Snapshot, new_save_id
from gamesaves.storage.sqlite_backend import SQLiteBackend

logger = logging.getLogger(__name__)

__all__ = [
    "SaveStoreBackend",
    "FileTreeBackend",
    "SQLiteBackend",
    "PostgresBackend",
    "GameData",
    "Score",
    "Snapshot",
    "new_save_id",
    "create_backend",
]


def create_backend(config: Optional[Settings] = None) -> SaveStoreBackend:
    """Create a storage backend based on configuration.

    Returns:
        Configured SaveStoreBackend instance
    """
    config = config or default_settings

    if config.use_local_fs:
        logger.info("Save store backend: local file tree")
        return FileTreeBackend(config.file_tree_root)

    if config.is_postgres:
        logger.info("Save store backend: PostgreSQL")
        return PostgresBackend(config.DATABASE_URL, max_game_days=config.MAX_GAME_DAYS)

    logger.info("Save store backend: SQLite")
    return SQLiteBackend(config.DATABASE_URL, max_game_days=config.MAX_GAME_DAYS)
