"""Game API endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from gamesaves.api.dependencies import get_backend, get_game_loader
from gamesaves.core.exceptions import GameNotFoundError, raise_not_found
from gamesaves.schemas.game import GameDataResponse, GameModel, LoadGameRequest
from gamesaves.services.game_loader import GameLoader
from gamesaves.services.game_model import build_game_model
from gamesaves.storage.backend import SaveStoreBackend

router = APIRouter(tags=["game"])
logger = logging.getLogger(__name__)


@router.get("/api/game", response_model=GameModel)
async def get_game(
    game_id: Optional[str] = Query(default=None, alias="id"),
    save_id: Optional[str] = Query(default=None, alias="save-id"),
    loader: GameLoader = Depends(get_game_loader),
):
    """Return a game at its head, or at a historical save."""
    if not game_id:
        raise_not_found("id parameter missing")

    game = await loader.get_by_game_id(game_id, save_id, force_reload=False)
    if game is None:
        raise GameNotFoundError(game_id, save_id)
    return build_game_model(game)


@router.put("/load_game", response_model=GameModel)
async def load_game(
    request: LoadGameRequest,
    loader: GameLoader = Depends(get_game_loader),
    backend: SaveStoreBackend = Depends(get_backend),
):
    """Reload a game from the store, optionally rolling back its newest saves."""
    game = await loader.get_by_game_id(request.game_id, None, force_reload=True)
    if game is None:
        logger.warning(f"unable to find {request.game_id} in database")
        raise GameNotFoundError(request.game_id)

    if request.rollback_count > 0:
        await backend.delete_game_nbr_saves(request.game_id, game.save_id, request.rollback_count)
        game = await loader.get_by_game_id(request.game_id, None, force_reload=True)
        if game is None:
            raise GameNotFoundError(request.game_id)

    return build_game_model(game)


@router.get("/api/games", response_model=list[str])
async def list_games(backend: SaveStoreBackend = Depends(get_backend)):
    """Ids of running games, most recent first."""
    return await backend.get_games()


@router.get("/api/clonablegames", response_model=list[GameDataResponse])
async def list_clonable_games(backend: SaveStoreBackend = Depends(get_backend)):
    """Every known game with its player count, ordered by id."""
    games = await backend.get_clonable_games()
    return [GameDataResponse(game_id=g.game_id, player_count=g.player_count) for g in games]
