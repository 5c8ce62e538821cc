"""Game snapshot serialization.

Turns a live Game into a tree of plain JSON values and back. The storage
backends only read ``id``, ``save_id``, ``parent_save_id`` and
``players`` from a serialized body; the rest is opaque to them.
"""
import copy
import json
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gamesaves.models.game import Game, GameOptions, Player


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def serialize_game(game: "Game") -> dict:
    """Serialize a Game dataclass to a JSON-compatible dict."""
    return {
        "id": game.id,
        "save_id": game.save_id,
        "parent_save_id": game.parent_save_id,
        "generation": game.generation,
        "phase": game.phase,
        "players": [_serialize_player(p) for p in game.players],
        "game_options": serialize_options(game.options),
        "state": copy.deepcopy(game.state),
    }


def _serialize_player(player: "Player") -> dict:
    return {
        "id": player.id,
        "name": player.name,
        "color": player.color,
        "is_bot": player.is_bot,
    }


def serialize_options(options: "GameOptions") -> dict:
    data = asdict(options)
    data["extra"] = copy.deepcopy(options.extra)
    return data


# ---------------------------------------------------------------------------
# Deserialization helpers
# ---------------------------------------------------------------------------

def deserialize_game(data: dict) -> "Game":
    """Deserialize a dict back into a Game dataclass."""
    from gamesaves.models.game import Game, Player

    players = [
        Player(
            id=p_data["id"],
            name=p_data["name"],
            color=p_data.get("color", ""),
            is_bot=p_data.get("is_bot", False),
        )
        for p_data in data.get("players", [])
    ]
    return Game(
        id=data["id"],
        players=players,
        options=deserialize_options(data.get("game_options") or {}),
        generation=data.get("generation", 1),
        phase=data.get("phase", "research"),
        save_id=data.get("save_id"),
        parent_save_id=data.get("parent_save_id"),
        state=copy.deepcopy(data.get("state", {})),
    )


def deserialize_options(data: dict) -> "GameOptions":
    from gamesaves.models.game import GameOptions

    return GameOptions(
        board_name=data.get("board_name", "tharsis"),
        cloned_game_id=data.get("cloned_game_id"),
        undo_option=data.get("undo_option", False),
        extra=copy.deepcopy(data.get("extra", {})),
    )


# ---------------------------------------------------------------------------
# Text encoding
# ---------------------------------------------------------------------------

def dumps(body: Any, pretty: bool = False) -> str:
    """Encode a serialized body; pretty output is used for files on disk."""
    if pretty:
        return json.dumps(body, ensure_ascii=False, indent=2)
    return json.dumps(body, ensure_ascii=False)


def loads(text: str) -> Any:
    return json.loads(text)
