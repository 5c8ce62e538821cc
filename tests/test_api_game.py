"""Integration tests for the game endpoints."""
import asyncio

import pytest
from fastapi.testclient import TestClient

from gamesaves.main import create_app
from gamesaves.models.game import Game, Player
from gamesaves.storage.sqlite_backend import SQLiteBackend


def _make_game(game_id: str, players: int = 2) -> Game:
    return Game(
        id=game_id,
        players=[Player(id=f"p{i}", name=f"Player {i}") for i in range(players)],
    )


async def _seed(backend: SQLiteBackend) -> None:
    game = _make_game("g1")
    for i in range(4):
        game.generation = i + 1
        await backend.save_game(game, f"g1-s{i}")
    await backend.save_game(_make_game("g2", players=3), "g2-s0")


@pytest.fixture
def client(tmp_path):
    backend = SQLiteBackend(f"sqlite:///{tmp_path / 'api.db'}", max_game_days=10)
    asyncio.run(_seed(backend))
    with TestClient(create_app(backend)) as client:
        yield client


class TestGetGame:
    """GET /api/game"""

    def test_head(self, client):
        response = client.get("/api/game", params={"id": "g1"})
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "g1"
        assert data["save_id"] == "g1-s3"
        assert data["parent_save_id"] == "g1-s2"
        assert data["generation"] == 4
        assert data["player_count"] == 2

    def test_version(self, client):
        response = client.get("/api/game", params={"id": "g1", "save-id": "g1-s1"})
        assert response.status_code == 200
        assert response.json()["generation"] == 2

    def test_missing_id(self, client):
        response = client.get("/api/game")
        assert response.status_code == 404
        assert response.json()["detail"] == "id parameter missing"

    def test_unknown_game(self, client):
        response = client.get("/api/game", params={"id": "nope"})
        assert response.status_code == 404
        assert response.json()["error"] == "GAME_NOT_FOUND"

    def test_unknown_version(self, client):
        response = client.get("/api/game", params={"id": "g1", "save-id": "g2-s0"})
        assert response.status_code == 404
        assert response.json()["details"] == {"game_id": "g1", "save_id": "g2-s0"}


class TestLoadGame:
    """PUT /load_game"""

    def test_reload_without_rollback(self, client):
        response = client.put("/load_game", json={"game_id": "g1"})
        assert response.status_code == 200
        assert response.json()["save_id"] == "g1-s3"

    def test_rollback(self, client):
        response = client.put("/load_game", json={"game_id": "g1", "rollback_count": 2})
        assert response.status_code == 200
        assert response.json()["save_id"] == "g1-s1"

        # The cached head follows the rollback
        response = client.get("/api/game", params={"id": "g1"})
        assert response.json()["save_id"] == "g1-s1"
        response = client.get("/api/game", params={"id": "g1", "save-id": "g1-s3"})
        assert response.status_code == 404

    def test_rollback_beyond_depth_keeps_root_child(self, client):
        response = client.put("/load_game", json={"game_id": "g1", "rollback_count": 10})
        assert response.status_code == 200
        assert response.json()["save_id"] == "g1-s1"

    def test_unknown_game(self, client):
        response = client.put("/load_game", json={"game_id": "nope", "rollback_count": 1})
        assert response.status_code == 404
        assert response.json()["error"] == "GAME_NOT_FOUND"


class TestListings:
    """GET /api/games and GET /api/clonablegames"""

    def test_games(self, client):
        response = client.get("/api/games")
        assert response.status_code == 200
        assert set(response.json()) == {"g1", "g2"}

    def test_clonable_games(self, client):
        response = client.get("/api/clonablegames")
        assert response.status_code == 200
        assert response.json() == [
            {"game_id": "g1", "player_count": 2},
            {"game_id": "g2", "player_count": 3},
        ]

    def test_health(self, client):
        response = client.get("/health")
        assert response.json() == {"status": "healthy"}
