"""Live game model handed to the store by the rules engine.

The store only relies on the id, the two save ids, the player list and
the serialize()/deserialize() pair; everything the rules engine keeps
beyond that travels in ``state`` untouched.
"""
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Player:
    """Player model."""
    id: str
    name: str
    color: str = ""
    is_bot: bool = False


@dataclass
class GameOptions:
    """Options the game was created with."""
    board_name: str = "tharsis"
    cloned_game_id: Optional[str] = None  # Set when started from another game's root save
    undo_option: bool = False
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class Game:
    """Game model."""
    id: str
    players: list[Player] = field(default_factory=list)
    options: GameOptions = field(default_factory=GameOptions)
    generation: int = 1
    phase: str = "research"
    # Save chain bookkeeping, maintained by the storage backends
    save_id: Optional[str] = None
    parent_save_id: Optional[str] = None
    # Rules engine state, must be JSON-compatible
    state: dict[str, Any] = field(default_factory=dict)

    def get_players(self) -> list[Player]:
        return list(self.players)

    def serialize(self) -> dict:
        from gamesaves.services.snapshot_codec import serialize_game
        return serialize_game(self)

    def to_json(self) -> str:
        from gamesaves.services.snapshot_codec import dumps, serialize_game
        return dumps(serialize_game(self))

    @classmethod
    def deserialize(cls, body: dict) -> "Game":
        from gamesaves.services.snapshot_codec import deserialize_game
        return deserialize_game(body)
