"""Local file tree storage backend.

Every save is one pretty-printed JSON file. Layout under the root:

    game-{game_id}.json                      head of each game
    history/game-{game_id}-{save_id}.json    every save, id zero-padded to 5
    start/game-{game_id}.json                root save, the clone source

The file tree tracks no status or creation time, so result recording,
pruning, purging and multi-step rollback are not supported.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional, TYPE_CHECKING, Union

from gamesaves.core.config import settings
from gamesaves.core.exceptions import SaveConflictError, StorageError, UnsupportedOperationError
from gamesaves.services.snapshot_codec import dumps, loads, serialize_game
from gamesaves.storage.save_chain import (
    GameData,
    SaveId,
    Score,
    Snapshot,
    advance_chain,
    walk_rollback,
)

if TYPE_CHECKING:
    from gamesaves.models.game import Game, GameOptions

logger = logging.getLogger(__name__)

_BACKEND_NAME = "file tree"
_GAME_FILE_RE = re.compile(r"^game-(.*)\.json$")


class FileTreeBackend:
    """JSON file backed save store for local development."""

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self._root = Path(root) if root is not None else settings.file_tree_root
        self._history = self._root / "history"
        self._start = self._root / "start"
        logger.info(f"Starting local database at {self._root}")
        for folder in (self._root, self._history, self._start):
            folder.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _filename(self, game_id: str) -> Path:
        return self._root / f"game-{game_id}.json"

    def _history_filename(self, game_id: str, save_id: SaveId) -> Path:
        # Padding is not injective: "1" and "01" share a file, and save_game
        # reports the second one as a conflict instead of overwriting
        return self._history / f"game-{game_id}-{str(save_id).rjust(5, '0')}.json"

    def _start_filename(self, game_id: str) -> Path:
        return self._start / f"game-{game_id}.json"

    # ------------------------------------------------------------------
    # File helpers (run in worker threads)
    # ------------------------------------------------------------------

    def _read(self, operation: str, path: Path) -> Optional[dict]:
        if not path.is_file():
            return None
        try:
            return loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"LocalFilesystem:{operation} failed reading {path}: {e}", exc_info=True)
            raise StorageError(operation, str(e)) from e

    @staticmethod
    def _create(operation: str, path: Path, text: str, game_id: str, message: str) -> None:
        """Write a file that must not exist yet."""
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(text)
        except FileExistsError:
            raise SaveConflictError(operation, message, game_id=game_id)

    def _write_files(self, operation: str, body: dict, save_start: bool, exclusive: bool) -> None:
        game_id = body["id"]
        text = dumps(body, pretty=True)
        history = self._history_filename(game_id, body["save_id"])
        start = self._start_filename(game_id)
        try:
            if exclusive:
                # A game has exactly one root, and the root is never rewritten
                if save_start:
                    self._create(operation, start, text, game_id, f"Game {game_id} already has a start save")
                try:
                    self._create(
                        operation, history, text, game_id,
                        f"Save {body['save_id']} already exists for game {game_id}",
                    )
                except SaveConflictError:
                    if save_start:
                        start.unlink(missing_ok=True)
                    raise
            else:
                history.write_text(text, encoding="utf-8")
                if save_start:
                    start.write_text(text, encoding="utf-8")
            # The head mirror is written last so it never names a missing history file
            self._filename(game_id).write_text(text, encoding="utf-8")
        except OSError as e:
            logger.error(f"LocalFilesystem:{operation} failed for game {game_id}: {e}", exc_info=True)
            raise StorageError(operation, str(e)) from e

    def _snapshot(self, operation: str, path: Path) -> Optional[Snapshot]:
        body = self._read(operation, path)
        return Snapshot.from_body(body) if body is not None else None

    def _list_game_ids(self) -> list[str]:
        entries = []
        for path in self._root.iterdir():
            if not path.is_file():
                continue
            match = _GAME_FILE_RE.match(path.name)
            if match is None:
                continue
            entries.append((path.stat().st_mtime, match.group(1)))
        entries.sort(key=lambda entry: entry[0], reverse=True)
        return [game_id for _, game_id in entries]

    def _list_clonable(self) -> list[GameData]:
        games = []
        for game_id in self._list_game_ids():
            body = self._read("getClonableGames", self._start_filename(game_id))
            if body is None:
                continue
            games.append(GameData(game_id=game_id, player_count=len(body.get("players", []))))
        games.sort(key=lambda g: g.game_id)
        return games

    # ------------------------------------------------------------------
    # SaveStoreBackend
    # ------------------------------------------------------------------

    async def save_game(self, game: "Game", new_save_id: SaveId) -> None:
        with advance_chain(game, new_save_id) as first_save:
            logger.info(f"saving {game.id} at position {new_save_id}")
            await asyncio.to_thread(
                self._write_files, "saveGame", serialize_game(game), first_save, True
            )

    async def save_serialized_game(self, body: dict, save_start: bool) -> None:
        """Write an already serialized body, overwriting any previous copy."""
        await asyncio.to_thread(self._write_files, "saveSerializedGame", body, save_start, False)

    async def get_game(self, game_id: str) -> Optional[Snapshot]:
        logger.debug(f"Loading {game_id}")
        return await asyncio.to_thread(self._snapshot, "getGame", self._filename(game_id))

    async def get_game_version(self, game_id: str, save_id: SaveId) -> Optional[Snapshot]:
        snapshot = await asyncio.to_thread(
            self._snapshot, "getGameVersion", self._history_filename(game_id, save_id)
        )
        if snapshot is None or snapshot.game_id != game_id or snapshot.save_id != save_id:
            return None
        return snapshot

    async def load_cloneable_game(self, game_id: str) -> Optional[Snapshot]:
        logger.debug(f"Loading {game_id} at save point 0")
        return await asyncio.to_thread(self._snapshot, "loadCloneableGame", self._start_filename(game_id))

    async def get_clonable_games(self) -> list[GameData]:
        return await asyncio.to_thread(self._list_clonable)

    async def get_games(self) -> list[str]:
        return await asyncio.to_thread(self._list_game_ids)

    async def save_game_results(
        self,
        game_id: str,
        player_count: int,
        generation_count: int,
        game_options: Union["GameOptions", dict],
        scores: list[Union[Score, dict]],
    ) -> None:
        raise UnsupportedOperationError("saveGameResults", _BACKEND_NAME)

    async def clean_saves(self, game_id: str) -> None:
        raise UnsupportedOperationError("cleanSaves", _BACKEND_NAME)

    async def purge_unfinished_games(self) -> int:
        raise UnsupportedOperationError("purgeUnfinishedGames", _BACKEND_NAME)

    async def delete_game_nbr_saves(
        self, game_id: str, from_save_id: SaveId, rollback_count: int
    ) -> Optional[SaveId]:
        if rollback_count > 1:
            raise UnsupportedOperationError("deleteGameNbrSaves", _BACKEND_NAME)

        async def load_snapshot(save_id: SaveId) -> Optional[Snapshot]:
            return await self.get_game_version(game_id, save_id)

        async def delete_save(save_id: SaveId) -> None:
            await asyncio.to_thread(self._unlink, game_id, save_id)

        async def set_head(save_id: SaveId) -> None:
            body = await asyncio.to_thread(
                self._read, "deleteGameNbrSaves", self._history_filename(game_id, save_id)
            )
            if body is None:
                raise StorageError("deleteGameNbrSaves", f"save {save_id} of game {game_id} is missing")
            await asyncio.to_thread(self._write_head, game_id, body)

        return await walk_rollback(
            game_id,
            from_save_id,
            rollback_count,
            load_snapshot=load_snapshot,
            delete_save=delete_save,
            set_head=set_head,
        )

    def _unlink(self, game_id: str, save_id: SaveId) -> None:
        try:
            self._history_filename(game_id, save_id).unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"LocalFilesystem:deleteGameNbrSaves failed for game {game_id}: {e}", exc_info=True)
            raise StorageError("deleteGameNbrSaves", str(e)) from e

    def _write_head(self, game_id: str, body: dict) -> None:
        try:
            self._filename(game_id).write_text(dumps(body, pretty=True), encoding="utf-8")
        except OSError as e:
            logger.error(f"LocalFilesystem:deleteGameNbrSaves failed for game {game_id}: {e}", exc_info=True)
            raise StorageError("deleteGameNbrSaves", str(e)) from e

    async def close(self) -> None:
        return None
