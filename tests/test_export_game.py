"""Tests for the export tool."""
import pytest

from gamesaves.core.config import settings
from gamesaves.core.exceptions import GameNotFoundError
from gamesaves.models.game import Game, Player
from gamesaves.storage.file_tree import FileTreeBackend
from gamesaves.tools import export_game as export_tool


def _make_game(game_id: str = "g1") -> Game:
    return Game(id=game_id, players=[Player(id="p1", name="Alice"), Player(id="p2", name="Bob")])


async def _save_chain(backend, game: Game, depth: int) -> None:
    for i in range(depth):
        await backend.save_game(game, f"{i}")


class TestExportGame:
    """export_game copies a chain into a file tree."""

    @pytest.mark.asyncio
    async def test_exports_every_version(self, sqlite_backend, tmp_path):
        await _save_chain(sqlite_backend, _make_game(), 3)
        target = FileTreeBackend(tmp_path / "export")

        written = await export_tool.export_game("g1", sqlite_backend, target)

        assert written == 3
        for save_id in ("0", "1", "2"):
            assert (await target.get_game_version("g1", save_id)) is not None
        assert (await target.get_game("g1")).save_id == "2"
        assert (await target.load_cloneable_game("g1")).save_id == "0"

    @pytest.mark.asyncio
    async def test_pruned_game_stops_at_gap(self, sqlite_backend, tmp_path):
        await _save_chain(sqlite_backend, _make_game(), 3)
        await sqlite_backend.clean_saves("g1")
        await sqlite_backend.wait_background()
        target = FileTreeBackend(tmp_path / "export")

        written = await export_tool.export_game("g1", sqlite_backend, target)

        assert written == 1
        assert (await target.get_game("g1")).save_id == "2"
        assert await target.load_cloneable_game("g1") is None

    @pytest.mark.asyncio
    async def test_unknown_game(self, sqlite_backend, tmp_path):
        with pytest.raises(GameNotFoundError):
            await export_tool.export_game("nope", sqlite_backend, FileTreeBackend(tmp_path))


class TestExportMain:
    """Command line entry point."""

    def test_refuses_local_filesystem(self, monkeypatch):
        monkeypatch.setattr(settings, "LOCAL_FS_DB", "1")
        assert export_tool.main(["g1"]) == 2

    def test_unknown_game_exit_code(self, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, "LOCAL_FS_DB", None)
        monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite:///{tmp_path / 'game.db'}")
        assert export_tool.main(["nope", "--out", str(tmp_path / "out")]) == 1
