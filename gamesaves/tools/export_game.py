"""Export every saved version of a game into a local file tree.

Usage:
    python -m gamesaves.tools.export_game GAME_ID [--out DIR]

Reads from the configured relational backend and writes the layout used
by the file tree backend, so the game can be replayed locally.
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional

from gamesaves.core.config import settings
from gamesaves.core.exceptions import GameNotFoundError
from gamesaves.storage import create_backend
from gamesaves.storage.backend import SaveStoreBackend
from gamesaves.storage.file_tree import FileTreeBackend

logger = logging.getLogger(__name__)


async def export_game(game_id: str, source: SaveStoreBackend, target: FileTreeBackend) -> int:
    """Copy every version from the head back to the root.

    Returns:
        Number of versions written
    """
    logger.info(f"Loading game {game_id}")
    head = await source.get_game(game_id)
    if head is None:
        raise GameNotFoundError(game_id)
    logger.info(f"Last version is {head.save_id}")

    written = 0
    save_id: Optional[str] = head.save_id
    while save_id is not None:
        snapshot = await source.get_game_version(game_id, save_id)
        if snapshot is None:
            # Pruned games only keep their root and head
            logger.warning(f"Version {save_id} of game {game_id} is missing, stopping")
            break
        logger.info(f"Storing version {save_id}")
        await target.save_serialized_game(snapshot.body, save_start=snapshot.is_root)
        written += 1
        save_id = snapshot.parent_save_id

    # Save the head again so it is the "current" game
    await target.save_serialized_game(head.body, save_start=False)
    return written


async def _run(game_id: str, out_dir: Optional[str]) -> int:
    source = create_backend(settings)
    target = FileTreeBackend(out_dir)
    try:
        return await export_game(game_id, source, target)
    finally:
        await source.close()


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="export_game", description="Export a game's save history to files")
    p.add_argument("game_id", help="id of the game to export")
    p.add_argument("--out", default=None, help="file tree root (default: DATA_DIR/db/files)")
    return p.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = _parse_args(argv)

    if settings.use_local_fs:
        logger.error("Do not run export_game on the local filesystem. Just access the files themselves")
        return 2

    try:
        written = asyncio.run(_run(args.game_id, args.out))
    except GameNotFoundError as e:
        logger.error(e.message)
        return 1
    logger.info(f"Exported {written} versions of {args.game_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
