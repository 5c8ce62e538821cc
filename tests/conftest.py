"""Pytest configuration and fixtures for the save store tests."""
import os
import tempfile

# Set test environment before importing the package
os.environ.pop("LOCAL_FS_DB", None)
os.environ.pop("DATABASE_URL", None)
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="gamesaves_test_")
os.environ["MAX_GAME_DAYS"] = "10"

import pytest
import pytest_asyncio

from gamesaves.storage.file_tree import FileTreeBackend
from gamesaves.storage.postgres_backend import PostgresBackend
from gamesaves.storage.sqlite_backend import SQLiteBackend


# ============================================================================
# Backend Fixtures
# ============================================================================

@pytest.fixture
def file_backend(tmp_path) -> FileTreeBackend:
    """File tree backend rooted in a per-test directory."""
    return FileTreeBackend(tmp_path / "files")


@pytest_asyncio.fixture
async def sqlite_backend(tmp_path):
    """Embedded SQLite backend on a per-test database file."""
    backend = SQLiteBackend(f"sqlite:///{tmp_path / 'game.db'}", max_game_days=10)
    yield backend
    await backend.close()


@pytest_asyncio.fixture(params=["sqlite", "postgres"])
async def relational_backend(request, tmp_path):
    """Both relational variants.

    The server variant runs on aiosqlite: it only depends on SQLAlchemy's
    async engine, not on a particular driver.
    """
    if request.param == "sqlite":
        backend = SQLiteBackend(f"sqlite:///{tmp_path / 'game.db'}", max_game_days=10)
    else:
        backend = PostgresBackend(f"sqlite+aiosqlite:///{tmp_path / 'game_async.db'}", max_game_days=10)
    yield backend
    await backend.close()
