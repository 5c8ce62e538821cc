"""Relational save chain logic shared by the SQLite and PostgreSQL backends.

Every operation is a plain function over a synchronous SQLAlchemy Session.
The SQLite backend runs them in a worker thread, the PostgreSQL backend
through ``AsyncSession.run_sync``; the statements and their order are the
same for both.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional, TYPE_CHECKING, Union

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gamesaves.core.config import settings
from gamesaves.core.exceptions import (
    AppException,
    GameNotFoundError,
    SaveConflictError,
    StorageError,
)
from gamesaves.models.save import GameResultRow, GameRow, SaveRow
from gamesaves.schemas.enums import GameRecordStatus
from gamesaves.services.snapshot_codec import dumps, loads, serialize_game, serialize_options
from gamesaves.storage.save_chain import (
    GameData,
    GameRecord,
    GameResult,
    SaveId,
    Score,
    Snapshot,
    advance_chain,
    normalize_scores,
    purge_cutoff,
    scores_to_plain,
    walk_rollback,
)

if TYPE_CHECKING:
    from gamesaves.models.game import Game, GameOptions

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Session operations
# ---------------------------------------------------------------------------

def _snapshot_from_text(text: Optional[str]) -> Optional[Snapshot]:
    if text is None:
        return None
    return Snapshot.from_body(loads(text))


def write_save(
    session: Session,
    game_id: str,
    save_id: SaveId,
    player_count: int,
    body_text: str,
    first_save: bool,
) -> None:
    if first_save:
        # The game row must exist before its first save references it
        session.execute(
            insert(GameRow).values(
                game_id=game_id,
                players=player_count,
                first_save_id=save_id,
                current_save_id=save_id,
            )
        )
        session.execute(insert(SaveRow).values(save_id=save_id, game_id=game_id, game=body_text))
        return

    # Insert the save before moving the head, so a reader never sees a head without a row
    session.execute(insert(SaveRow).values(save_id=save_id, game_id=game_id, game=body_text))
    result = session.execute(
        update(GameRow).where(GameRow.game_id == game_id).values(current_save_id=save_id)
    )
    if result.rowcount == 0:
        raise GameNotFoundError(game_id)


def fetch_head(session: Session, game_id: str) -> Optional[Snapshot]:
    stmt = (
        select(SaveRow.game)
        .join(GameRow, SaveRow.save_id == GameRow.current_save_id)
        .where(GameRow.game_id == game_id)
    )
    return _snapshot_from_text(session.execute(stmt).scalar_one_or_none())


def fetch_root(session: Session, game_id: str) -> Optional[Snapshot]:
    stmt = (
        select(SaveRow.game)
        .join(GameRow, SaveRow.save_id == GameRow.first_save_id)
        .where(GameRow.game_id == game_id)
    )
    return _snapshot_from_text(session.execute(stmt).scalar_one_or_none())


def fetch_version(session: Session, game_id: str, save_id: SaveId) -> Optional[Snapshot]:
    stmt = select(SaveRow.game).where(SaveRow.game_id == game_id, SaveRow.save_id == save_id)
    return _snapshot_from_text(session.execute(stmt).scalar_one_or_none())


def fetch_record(session: Session, game_id: str) -> Optional[GameRecord]:
    row = session.execute(select(GameRow).where(GameRow.game_id == game_id)).scalar_one_or_none()
    if row is None:
        return None
    return GameRecord(
        game_id=row.game_id,
        player_count=row.players,
        first_save_id=row.first_save_id,
        current_save_id=row.current_save_id,
        status=GameRecordStatus(row.status),
        created_time=row.created_time,
    )


def list_clonable(session: Session) -> list[GameData]:
    rows = session.execute(select(GameRow.game_id, GameRow.players).order_by(GameRow.game_id.asc()))
    return [GameData(game_id=game_id, player_count=players) for game_id, players in rows]


def list_running(session: Session) -> list[str]:
    stmt = (
        select(GameRow.game_id)
        .where(GameRow.status == GameRecordStatus.RUNNING.value)
        .order_by(GameRow.created_time.desc())
    )
    return list(session.execute(stmt).scalars().all())


def insert_result(session: Session, result: GameResult) -> None:
    session.execute(
        insert(GameResultRow).values(
            game_id=result.game_id,
            seed_game_id=result.seed_game_id,
            players=result.player_count,
            generations=result.generation_count,
            game_options=result.game_options,
            scores=scores_to_plain(result.scores),
        )
    )


def fetch_result(session: Session, game_id: str) -> Optional[GameResult]:
    row = session.execute(
        select(GameResultRow).where(GameResultRow.game_id == game_id)
    ).scalar_one_or_none()
    if row is None:
        return None
    return GameResult(
        game_id=row.game_id,
        seed_game_id=row.seed_game_id,
        player_count=row.players,
        generation_count=row.generations,
        game_options=dict(row.game_options),
        scores=normalize_scores(row.scores),
    )


def prune_to_endpoints(session: Session, game_id: str) -> bool:
    """Delete every save except root and head, then flag the game finished."""
    endpoints = session.execute(
        select(GameRow.first_save_id, GameRow.current_save_id).where(GameRow.game_id == game_id)
    ).one_or_none()
    if endpoints is None:
        return False
    first_save_id, current_save_id = endpoints
    session.execute(
        delete(SaveRow).where(
            SaveRow.game_id == game_id,
            SaveRow.save_id != current_save_id,
            SaveRow.save_id != first_save_id,
        )
    )
    session.execute(
        update(GameRow)
        .where(GameRow.game_id == game_id)
        .values(status=GameRecordStatus.FINISHED.value)
    )
    return True


def purge_stale(session: Session, cutoff: datetime) -> list[str]:
    game_ids = list(
        session.execute(
            select(GameRow.game_id).where(
                GameRow.created_time < cutoff,
                GameRow.status == GameRecordStatus.RUNNING.value,
            )
        ).scalars().all()
    )
    if game_ids:
        # Saves first, they reference the game rows
        session.execute(delete(SaveRow).where(SaveRow.game_id.in_(game_ids)))
        session.execute(delete(GameRow).where(GameRow.game_id.in_(game_ids)))
    return game_ids


def delete_save(session: Session, game_id: str, save_id: SaveId) -> None:
    session.execute(delete(SaveRow).where(SaveRow.game_id == game_id, SaveRow.save_id == save_id))


def set_head(session: Session, game_id: str, save_id: SaveId) -> None:
    session.execute(update(GameRow).where(GameRow.game_id == game_id).values(current_save_id=save_id))


# ---------------------------------------------------------------------------
# Backend base
# ---------------------------------------------------------------------------

class RelationalBackend:
    """Save store over the games/saves/game_results schema.

    Subclasses provide ``_execute``, which opens a transaction, runs one
    session operation inside it and commits.
    """

    log_prefix = "SQL"

    def __init__(self, max_game_days: Optional[int] = None):
        self._max_game_days = max_game_days
        self._background_tasks: set[asyncio.Task] = set()

    async def _execute(self, fn: Callable[..., Any], *args: Any) -> Any:
        raise NotImplementedError

    async def _run(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await self._execute(fn, *args)
        except AppException:
            raise
        except IntegrityError as e:
            logger.warning(f"{self.log_prefix}:{operation} conflict: {e.orig}")
            raise SaveConflictError(operation, f"{operation} conflict: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error(f"{self.log_prefix}:{operation} failed: {e}", exc_info=True)
            raise StorageError(operation, str(e)) from e

    @property
    def max_game_days(self) -> int:
        if self._max_game_days is not None:
            return self._max_game_days
        return settings.MAX_GAME_DAYS

    async def save_game(self, game: "Game", new_save_id: SaveId) -> None:
        with advance_chain(game, new_save_id) as first_save:
            body_text = dumps(serialize_game(game))
            await self._run(
                "saveGame",
                write_save,
                game.id,
                new_save_id,
                len(game.get_players()),
                body_text,
                first_save,
            )
        logger.debug(f"Saved game {game.id} at {new_save_id}")

    async def get_game(self, game_id: str) -> Optional[Snapshot]:
        return await self._run("getGame", fetch_head, game_id)

    async def get_game_version(self, game_id: str, save_id: SaveId) -> Optional[Snapshot]:
        return await self._run("getGameVersion", fetch_version, game_id, save_id)

    async def load_cloneable_game(self, game_id: str) -> Optional[Snapshot]:
        return await self._run("loadCloneableGame", fetch_root, game_id)

    async def get_game_record(self, game_id: str) -> Optional[GameRecord]:
        return await self._run("getGameRecord", fetch_record, game_id)

    async def get_clonable_games(self) -> list[GameData]:
        return await self._run("getClonableGames", list_clonable)

    async def get_games(self) -> list[str]:
        return await self._run("getGames", list_running)

    async def save_game_results(
        self,
        game_id: str,
        player_count: int,
        generation_count: int,
        game_options: Union["GameOptions", dict],
        scores: list[Union[Score, dict]],
    ) -> None:
        options = game_options if isinstance(game_options, dict) else serialize_options(game_options)
        result = GameResult(
            game_id=game_id,
            seed_game_id=options.get("cloned_game_id"),
            player_count=player_count,
            generation_count=generation_count,
            game_options=options,
            scores=normalize_scores(scores),
        )
        await self._run("saveGameResults", insert_result, result)

    async def get_game_result(self, game_id: str) -> Optional[GameResult]:
        return await self._run("getGameResult", fetch_result, game_id)

    async def clean_saves(self, game_id: str) -> None:
        try:
            found = await self._run("cleanSaves", prune_to_endpoints, game_id)
            if not found:
                logger.warning(f"Couldn't find game {game_id} to cleanSaves")
        finally:
            self._schedule(self.purge_unfinished_games())

    async def purge_unfinished_games(self) -> int:
        cutoff = purge_cutoff(self.max_game_days)
        purged = await self._run("purgeUnfinishedGames", purge_stale, cutoff)
        if purged:
            logger.info(f"Purged {len(purged)} unfinished games older than {self.max_game_days} days")
        return len(purged)

    async def delete_game_nbr_saves(
        self, game_id: str, from_save_id: SaveId, rollback_count: int
    ) -> Optional[SaveId]:
        async def load_snapshot(save_id: SaveId) -> Optional[Snapshot]:
            return await self._run("deleteGameNbrSaves", fetch_version, game_id, save_id)

        async def drop(save_id: SaveId) -> None:
            await self._run("deleteGameNbrSaves", delete_save, game_id, save_id)

        async def move_head(save_id: SaveId) -> None:
            await self._run("deleteGameNbrSaves", set_head, game_id, save_id)

        return await walk_rollback(
            game_id,
            from_save_id,
            rollback_count,
            load_snapshot=load_snapshot,
            delete_save=drop,
            set_head=move_head,
        )

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    def _schedule(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"{self.log_prefix}: background purge failed: {exc}")

    async def wait_background(self) -> None:
        """Wait for fire-and-forget work such as the post-cleanSaves purge."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.wait_background()
