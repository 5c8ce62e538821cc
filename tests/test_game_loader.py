"""Tests for the caching GameLoader."""
import asyncio
from typing import Optional

import pytest

from gamesaves.core.exceptions import StorageError
from gamesaves.models.game import Game, Player
from gamesaves.services.game_loader import GameLoader
from gamesaves.services.snapshot_codec import serialize_game
from gamesaves.storage.save_chain import Snapshot


def _make_game(game_id: str = "g1", save_id: str = "s1", parent: Optional[str] = "s0") -> Game:
    return Game(
        id=game_id,
        players=[Player(id="p1", name="Alice")],
        save_id=save_id,
        parent_save_id=parent,
    )


class FakeBackend:
    """Counts reads and can hold them until a gate opens."""

    def __init__(self):
        self.snapshots: dict[tuple[str, str], Snapshot] = {}
        self.heads: dict[str, str] = {}
        self.roots: dict[str, str] = {}
        self.reads = 0
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None

    def put(self, game: Game, head: bool = True) -> None:
        snapshot = Snapshot.from_body(serialize_game(game))
        self.snapshots[(game.id, game.save_id)] = snapshot
        if head:
            self.heads[game.id] = game.save_id
        if snapshot.is_root:
            self.roots[game.id] = game.save_id

    async def _read(self, game_id: str, save_id: Optional[str]) -> Optional[Snapshot]:
        self.reads += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if save_id is None:
            return None
        return self.snapshots.get((game_id, save_id))

    async def get_game(self, game_id: str) -> Optional[Snapshot]:
        return await self._read(game_id, self.heads.get(game_id))

    async def get_game_version(self, game_id: str, save_id: str) -> Optional[Snapshot]:
        return await self._read(game_id, save_id)

    async def load_cloneable_game(self, game_id: str) -> Optional[Snapshot]:
        return await self._read(game_id, self.roots.get(game_id))


@pytest.fixture
def backend() -> FakeBackend:
    backend = FakeBackend()
    backend.put(_make_game(save_id="s0", parent=None), head=False)
    backend.put(_make_game(save_id="s1", parent="s0"))
    return backend


class TestGameLoaderCache:
    """Head caching."""

    @pytest.mark.asyncio
    async def test_head_is_cached(self, backend):
        loader = GameLoader(backend)
        first = await loader.get_by_game_id("g1")
        second = await loader.get_by_game_id("g1")

        assert first is second
        assert first.save_id == "s1"
        assert backend.reads == 1

    @pytest.mark.asyncio
    async def test_force_reload_reads_again(self, backend):
        loader = GameLoader(backend)
        await loader.get_by_game_id("g1")
        backend.put(_make_game(save_id="s2", parent="s1"))

        game = await loader.get_by_game_id("g1", force_reload=True)

        assert game.save_id == "s2"
        assert backend.reads == 2
        assert loader.games["g1"] is game

    @pytest.mark.asyncio
    async def test_versions_are_not_cached(self, backend):
        loader = GameLoader(backend)
        game = await loader.get_by_game_id("g1", "s0")

        assert game.save_id == "s0"
        assert game.parent_save_id is None
        assert "g1" not in loader.games

    @pytest.mark.asyncio
    async def test_unknown_game_returns_none(self, backend):
        loader = GameLoader(backend)
        assert await loader.get_by_game_id("nope") is None
        assert "nope" not in loader.games

    @pytest.mark.asyncio
    async def test_load_cloneable(self, backend):
        loader = GameLoader(backend)
        game = await loader.load_cloneable("g1")
        assert game.save_id == "s0"
        assert "g1" not in loader.games

    def test_capacity_evicts_least_recent(self):
        loader = GameLoader(FakeBackend(), ttl_seconds=3600, max_games=2)
        loader.add(_make_game("a"))
        loader.add(_make_game("b"))
        loader._last_access["a"] -= 10
        loader.add(_make_game("c"))

        assert set(loader.games) == {"b", "c"}

    def test_capacity_drops_expired_first(self):
        loader = GameLoader(FakeBackend(), ttl_seconds=60, max_games=2)
        loader.add(_make_game("a"))
        loader.add(_make_game("b"))
        loader._last_access["b"] -= 120
        loader.add(_make_game("c"))

        assert set(loader.games) == {"a", "c"}

    def test_evict(self):
        loader = GameLoader(FakeBackend())
        loader.add(_make_game("a"))
        assert loader.evict("a") is True
        assert loader.evict("a") is False


class TestGameLoaderConcurrency:
    """Concurrent loads of the same (game, save) share one backend read."""

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_read(self, backend):
        loader = GameLoader(backend)
        backend.gate = asyncio.Event()

        first = asyncio.create_task(loader.get_by_game_id("g1", force_reload=True))
        second = asyncio.create_task(loader.get_by_game_id("g1", force_reload=True))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        backend.gate.set()
        game_a, game_b = await asyncio.gather(first, second)

        assert backend.reads == 1
        assert game_a is game_b

    @pytest.mark.asyncio
    async def test_distinct_saves_read_separately(self, backend):
        loader = GameLoader(backend)
        backend.gate = asyncio.Event()

        head = asyncio.create_task(loader.get_by_game_id("g1", force_reload=True))
        root = asyncio.create_task(loader.get_by_game_id("g1", "s0"))
        await asyncio.sleep(0)
        backend.gate.set()
        head_game, root_game = await asyncio.gather(head, root)

        assert backend.reads == 2
        assert head_game.save_id == "s1"
        assert root_game.save_id == "s0"

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self, backend):
        loader = GameLoader(backend)
        backend.gate = asyncio.Event()
        backend.error = StorageError("getGame", "connection lost")

        first = asyncio.create_task(loader.get_by_game_id("g1", force_reload=True))
        second = asyncio.create_task(loader.get_by_game_id("g1", force_reload=True))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        backend.gate.set()
        results = await asyncio.gather(first, second, return_exceptions=True)

        assert backend.reads == 1
        assert all(isinstance(r, StorageError) for r in results)
        assert loader._pending == {}

        # The failed load is not remembered
        backend.error = None
        assert (await loader.get_by_game_id("g1")).save_id == "s1"

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_joiners(self, backend):
        loader = GameLoader(backend)
        backend.gate = asyncio.Event()

        first = asyncio.create_task(loader.get_by_game_id("g1", force_reload=True))
        await asyncio.sleep(0)
        second = asyncio.create_task(loader.get_by_game_id("g1", force_reload=True))
        await asyncio.sleep(0)
        first.cancel()
        await asyncio.sleep(0)
        backend.gate.set()

        game = await second
        assert game.save_id == "s1"
        assert backend.reads == 1
        with pytest.raises(asyncio.CancelledError):
            await first
        assert loader.games["g1"] is game
        assert loader._pending == {}
