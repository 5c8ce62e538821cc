"""Storage backend protocol for save chains.

Defines the interface that all storage backends implement. This enables
swapping between the local file tree, SQLite and PostgreSQL without
changing GameLoader or the route handlers.
"""

from typing import Optional, Protocol, TYPE_CHECKING, Union

from gamesaves.storage.save_chain import GameData, SaveId, Score, Snapshot

if TYPE_CHECKING:
    from gamesaves.models.game import Game, GameOptions


class SaveStoreBackend(Protocol):
    """Protocol defining the save store interface.

    Implementations:
    - FileTreeBackend: JSON files on the local filesystem (development)
    - SQLiteBackend: embedded single-file database
    - PostgresBackend: networked database server

    Read paths return None for an unknown game or save.
    """

    async def save_game(self, game: "Game", new_save_id: SaveId) -> None:
        """Append a snapshot of ``game`` and advance its head."""
        ...

    async def get_game(self, game_id: str) -> Optional[Snapshot]:
        """Return the head snapshot."""
        ...

    async def get_game_version(self, game_id: str, save_id: SaveId) -> Optional[Snapshot]:
        """Return the snapshot at an exact save of the game's chain."""
        ...

    async def load_cloneable_game(self, game_id: str) -> Optional[Snapshot]:
        """Return the root snapshot."""
        ...

    async def get_clonable_games(self) -> list[GameData]:
        """Return every known game, ordered by game id."""
        ...

    async def get_games(self) -> list[str]:
        """Return ids of running games, most recent first."""
        ...

    async def save_game_results(
        self,
        game_id: str,
        player_count: int,
        generation_count: int,
        game_options: Union["GameOptions", dict],
        scores: list[Union[Score, dict]],
    ) -> None:
        """Record the result of a finished game, once."""
        ...

    async def clean_saves(self, game_id: str) -> None:
        """Keep only the root and head saves and flag the game finished."""
        ...

    async def purge_unfinished_games(self) -> int:
        """Delete running games older than MAX_GAME_DAYS."""
        ...

    async def delete_game_nbr_saves(
        self, game_id: str, from_save_id: SaveId, rollback_count: int
    ) -> Optional[SaveId]:
        """Roll the head back ``rollback_count`` saves."""
        ...

    async def close(self) -> None:
        """Wait for background work and release the medium."""
        ...
