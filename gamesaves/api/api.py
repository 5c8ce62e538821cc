"""API router aggregation."""
from fastapi import APIRouter

from gamesaves.api.endpoints import game

api_router = APIRouter()
api_router.include_router(game.router)
