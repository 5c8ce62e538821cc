"""Caching loader for live games.

Sits above a save store backend: reconstitutes games from their snapshots,
keeps recently used heads in memory, and makes concurrent requests for the
same (game, save) share a single backend read.
"""
import asyncio
import functools
import logging
import time
from typing import Optional

from gamesaves.core.config import settings
from gamesaves.models.game import Game
from gamesaves.services.snapshot_codec import deserialize_game
from gamesaves.storage.backend import SaveStoreBackend

logger = logging.getLogger(__name__)

_LoadKey = tuple[str, Optional[str]]


class GameLoader:
    """In-memory game cache with TTL/capacity management."""

    def __init__(
        self,
        backend: SaveStoreBackend,
        ttl_seconds: Optional[int] = None,
        max_games: Optional[int] = None,
    ):
        self._backend = backend
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.GAME_CACHE_TTL_SECONDS
        self.max_games = max_games if max_games is not None else settings.GAME_CACHE_MAX_GAMES
        self.games: dict[str, Game] = {}
        self._last_access: dict[str, float] = {}  # game_id -> timestamp
        self._pending: dict[_LoadKey, asyncio.Task] = {}

    @property
    def backend(self) -> SaveStoreBackend:
        return self._backend

    async def get_by_game_id(
        self,
        game_id: str,
        save_id: Optional[str] = None,
        force_reload: bool = False,
    ) -> Optional[Game]:
        """Return the game at its head, or at ``save_id`` when given.

        Heads are served from the cache unless ``force_reload`` is set.
        Returns None when the game or save is unknown. The backend read runs
        as its own task shared by every caller asking for the same key, so
        cancelling one caller does not cancel the read for the others.
        """
        if save_id is None and not force_reload:
            cached = self.games.get(game_id)
            if cached is not None:
                self._last_access[game_id] = time.time()
                return cached

        key = (game_id, save_id)
        task = self._pending.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._load(game_id, save_id))
            self._pending[key] = task
            task.add_done_callback(functools.partial(self._on_load_done, key))
        else:
            logger.debug(f"Joining in-flight load of {game_id} at {save_id or 'head'}")
        return await asyncio.shield(task)

    def _on_load_done(self, key: _LoadKey, task: asyncio.Task) -> None:
        self._pending.pop(key, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Loading {key[0]} at {key[1] or 'head'} failed: {exc}")
            return
        game = task.result()
        if game is not None and key[1] is None:
            self.add(game)

    async def _load(self, game_id: str, save_id: Optional[str]) -> Optional[Game]:
        if save_id is None:
            snapshot = await self._backend.get_game(game_id)
        else:
            snapshot = await self._backend.get_game_version(game_id, save_id)
        if snapshot is None:
            logger.warning(f"Unable to find {game_id} at {save_id or 'head'} in database")
            return None
        return deserialize_game(snapshot.body)

    async def load_cloneable(self, game_id: str) -> Optional[Game]:
        """Return the game as of its root save, without caching it."""
        snapshot = await self._backend.load_cloneable_game(game_id)
        if snapshot is None:
            return None
        return deserialize_game(snapshot.body)

    def add(self, game: Game) -> None:
        """Cache a live game as the current head for its id."""
        if game.id not in self.games and len(self.games) >= self.max_games:
            self._cleanup_old_games()
            if len(self.games) >= self.max_games:
                self._evict_least_recent()
        self.games[game.id] = game
        self._last_access[game.id] = time.time()

    def evict(self, game_id: str) -> bool:
        """Drop a game from the cache. Returns True if it was cached."""
        self._last_access.pop(game_id, None)
        return self.games.pop(game_id, None) is not None

    def _cleanup_old_games(self) -> int:
        """Remove games that haven't been accessed within TTL.

        Returns:
            Number of games cleaned up
        """
        now = time.time()
        to_remove = [
            game_id for game_id, last_access in self._last_access.items()
            if now - last_access > self.ttl_seconds
        ]
        for game_id in to_remove:
            self.evict(game_id)
        return len(to_remove)

    def _evict_least_recent(self) -> None:
        if not self._last_access:
            return
        oldest = min(self._last_access, key=self._last_access.get)
        self.evict(oldest)
