"""Save chain model shared by every storage backend.

A game's saves form a parent-linked chain: the root (start) save has no
parent, every later save points at the head that preceded it. This module
holds the value types and the bookkeeping every backend applies the same
way; it performs no I/O.
"""
import logging
import secrets
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator, Optional, Union

from gamesaves.schemas.enums import GameRecordStatus

if TYPE_CHECKING:
    from gamesaves.models.game import Game

logger = logging.getLogger(__name__)

SaveId = str


@dataclass(frozen=True)
class Snapshot:
    """One immutable persisted version of a game."""
    game_id: str
    save_id: SaveId
    parent_save_id: Optional[SaveId]
    player_count: int
    body: dict = field(repr=False, compare=False)

    @property
    def is_root(self) -> bool:
        return self.parent_save_id is None

    @classmethod
    def from_body(cls, body: dict) -> "Snapshot":
        return cls(
            game_id=body["id"],
            save_id=body["save_id"],
            parent_save_id=body.get("parent_save_id"),
            player_count=len(body.get("players", [])),
            body=body,
        )


@dataclass(frozen=True)
class GameData:
    """Listing entry for a game that can be cloned."""
    game_id: str
    player_count: int


@dataclass
class GameRecord:
    """Per-game metadata: chain endpoints and lifecycle status."""
    game_id: str
    player_count: int
    first_save_id: Optional[SaveId]
    current_save_id: Optional[SaveId]
    status: GameRecordStatus = GameRecordStatus.RUNNING
    created_time: Optional[datetime] = None


@dataclass(frozen=True)
class Score:
    player: str
    score: int


@dataclass(frozen=True)
class GameResult:
    """Terminal, write-once summary of a game."""
    game_id: str
    seed_game_id: Optional[str]
    player_count: int
    generation_count: int
    game_options: dict
    scores: list[Score]


def new_save_id(prefix: str = "s") -> SaveId:
    """Generate a save id with 64 random bits."""
    return f"{prefix}{secrets.token_hex(8)}"


def normalize_scores(scores: list[Union[Score, dict]]) -> list[Score]:
    return [s if isinstance(s, Score) else Score(player=s["player"], score=s["score"]) for s in scores]


def scores_to_plain(scores: list[Score]) -> list[dict]:
    return [{"player": s.player, "score": s.score} for s in scores]


@contextmanager
def advance_chain(game: "Game", new_save_id: SaveId) -> Iterator[bool]:
    """Move a game's head to ``new_save_id`` for the duration of a save.

    The parent link is set before the body is serialized, so the stored
    snapshot always names the head it was derived from. Yields True when
    this is the game's first save (the new snapshot is the root). If the
    write fails the previous ids are restored: the head did not advance.
    """
    previous_save_id = game.save_id
    previous_parent_id = game.parent_save_id
    first_save = previous_save_id is None

    game.parent_save_id = previous_save_id
    game.save_id = new_save_id
    try:
        yield first_save
    except BaseException:
        game.save_id = previous_save_id
        game.parent_save_id = previous_parent_id
        raise


def purge_cutoff(max_game_days: int, now: Optional[datetime] = None) -> datetime:
    """Creation time before which an unfinished game is stale."""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=max_game_days)


async def walk_rollback(
    game_id: str,
    from_save_id: SaveId,
    rollback_count: int,
    *,
    load_snapshot: Callable[[SaveId], Awaitable[Optional[Snapshot]]],
    delete_save: Callable[[SaveId], Awaitable[Any]],
    set_head: Callable[[SaveId], Awaitable[Any]],
) -> Optional[SaveId]:
    """Delete up to ``rollback_count`` saves walking parent links.

    The visited saves are deleted newest first, then the head is moved to
    the parent of the last one deleted, so rolling back exactly the chain
    depth lands on the root. Asking for more than the depth logs a warning
    and keeps the root's child: it becomes the head and only the saves
    above it are deleted. Every step is its own write, so a failure leaves
    the deletions made so far in place.

    Returns the new head, or None when nothing changed.
    """
    if rollback_count <= 0:
        return None

    visited: list[Snapshot] = []
    save_id = from_save_id
    reached_root = False
    for _ in range(rollback_count):
        snapshot = await load_snapshot(save_id)
        if snapshot is None:
            logger.warning(f"Game {game_id} rollback stopped: save {save_id} not found")
            return None
        if snapshot.is_root:
            reached_root = True
            break
        visited.append(snapshot)
        save_id = snapshot.parent_save_id

    if reached_root:
        logger.warning(f"Game {game_id} could not be rolled back behind the root save {save_id}")
        if not visited:
            return None
        save_id = visited.pop().save_id
        if not visited:
            return None

    for snapshot in visited:
        await delete_save(snapshot.save_id)
    await set_head(save_id)
    logger.info(f"Game {game_id} rolled back {len(visited)} saves to {save_id}")
    return save_id
