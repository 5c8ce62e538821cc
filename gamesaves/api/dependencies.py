"""FastAPI dependencies for the save store and the game loader.

Both are constructed once in the application lifespan and stored on
``app.state``.
"""
from fastapi import Request

from gamesaves.services.game_loader import GameLoader
from gamesaves.storage.backend import SaveStoreBackend


def get_backend(request: Request) -> SaveStoreBackend:
    return request.app.state.backend


def get_game_loader(request: Request) -> GameLoader:
    return request.app.state.game_loader
