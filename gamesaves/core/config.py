"""Application configuration.

Uses Pydantic BaseSettings for declarative environment variable binding.
A .env file is pre-loaded when one is found next to the project.
"""
import logging
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

__all__ = ["settings", "Settings", "DEFAULT_MAX_GAME_DAYS", "parse_max_game_days"]

# Unfinished games older than this are purged unless MAX_GAME_DAYS overrides it
DEFAULT_MAX_GAME_DAYS = 10

ENV_FILE_PATH: Optional[Path] = None


def _find_env_file() -> Optional[Path]:
    """Find .env file from the project root or the working directory."""
    global ENV_FILE_PATH
    current_file = Path(__file__).resolve()
    possible_paths = [
        current_file.parent.parent.parent / ".env",
        Path.cwd() / ".env",
    ]

    for env_path in possible_paths:
        if env_path.exists():
            ENV_FILE_PATH = env_path
            logger.info(f"Found .env at: {env_path}")
            return env_path

    return None


_env_path = _find_env_file()
if _env_path:
    load_dotenv(dotenv_path=_env_path, override=False)


def parse_max_game_days(value: Any) -> int:
    """Parse the purge age threshold, falling back to the default.

    Shared by every backend so that an unparsable MAX_GAME_DAYS behaves
    the same way regardless of the storage medium.
    """
    if value is None or value == "":
        return DEFAULT_MAX_GAME_DAYS
    if isinstance(value, bool):
        logger.warning(f"Invalid MAX_GAME_DAYS={value!r}, using {DEFAULT_MAX_GAME_DAYS}")
        return DEFAULT_MAX_GAME_DAYS
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        logger.warning(f"Invalid MAX_GAME_DAYS={value!r}, using {DEFAULT_MAX_GAME_DAYS}")
        return DEFAULT_MAX_GAME_DAYS


def derive_async_database_url(url: str) -> str:
    """Derive async database URL from sync URL."""
    if "+aiosqlite" in url or "+asyncpg" in url:
        return url
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://")
    return url


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Application settings ---
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    DATA_DIR: str = "data"

    # --- Storage selection ---
    # Presence (even empty) selects the local file tree backend
    LOCAL_FS_DB: Optional[str] = None
    # postgres:// or postgresql:// selects the networked backend, anything else SQLite
    DATABASE_URL: Optional[str] = None

    # --- Save retention ---
    MAX_GAME_DAYS: int = DEFAULT_MAX_GAME_DAYS

    # --- GameLoader cache ---
    GAME_CACHE_TTL_SECONDS: int = 7200
    GAME_CACHE_MAX_GAMES: int = 1000

    # --- Computed fields (set by model_validator) ---
    DATABASE_URL_ASYNC: str = ""

    @field_validator("MAX_GAME_DAYS", mode="before")
    @classmethod
    def _fallback_max_game_days(cls, value: Any) -> int:
        return parse_max_game_days(value)

    @model_validator(mode="after")
    def _derive_database_urls(self) -> "Settings":
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"sqlite:///{self.DATA_DIR}/game.db"
        self.DATABASE_URL_ASYNC = derive_async_database_url(self.DATABASE_URL)
        return self

    @property
    def use_local_fs(self) -> bool:
        return self.LOCAL_FS_DB is not None

    @property
    def is_postgres(self) -> bool:
        return self.DATABASE_URL.startswith(("postgres://", "postgresql"))

    @property
    def file_tree_root(self) -> Path:
        return Path(self.DATA_DIR) / "db" / "files"


settings = Settings()
