"""Read-only projections of live games for the route handlers."""
from gamesaves.models.game import Game
from gamesaves.schemas.game import GameModel, PlayerModel
from gamesaves.services.snapshot_codec import serialize_options


def build_game_model(game: Game) -> GameModel:
    """Project a game into the model sent to clients.

    The projection is a copy; mutating it does not touch the game.
    """
    return GameModel(
        id=game.id,
        save_id=game.save_id,
        parent_save_id=game.parent_save_id,
        generation=game.generation,
        phase=game.phase,
        player_count=len(game.players),
        players=[
            PlayerModel(id=p.id, name=p.name, color=p.color, is_bot=p.is_bot)
            for p in game.players
        ],
        game_options=serialize_options(game.options),
    )
