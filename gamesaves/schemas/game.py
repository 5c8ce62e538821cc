"""Game API schemas."""
from typing import Any, Optional

from pydantic import BaseModel, Field


class PlayerModel(BaseModel):
    """Public view of a player."""
    id: str
    name: str
    color: str = ""
    is_bot: bool = False


class GameModel(BaseModel):
    """Read-only projection of a live game returned by the routes."""
    id: str
    save_id: Optional[str] = None
    parent_save_id: Optional[str] = None
    generation: int
    phase: str
    player_count: int
    players: list[PlayerModel] = Field(default_factory=list)
    game_options: dict[str, Any] = Field(default_factory=dict)


class LoadGameRequest(BaseModel):
    """Body of PUT /load_game."""
    game_id: str
    rollback_count: int = Field(default=0, description="Number of saves to roll back before loading")


class GameDataResponse(BaseModel):
    """Listing entry for a clonable game."""
    game_id: str
    player_count: int
