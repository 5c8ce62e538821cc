"""Relational schema for save chains.

Shared by the SQLite and PostgreSQL backends.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text

from gamesaves.schemas.enums import GameRecordStatus

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameRow(Base):
    """One row per game: chain endpoints and lifecycle status.

    first_save_id and current_save_id carry no foreign key to saves:
    saves are deleted independently of the game row.
    """
    __tablename__ = "games"

    game_id = Column(String, primary_key=True)
    players = Column(Integer, nullable=True)
    first_save_id = Column(String, nullable=True)  # root of the chain
    current_save_id = Column(String, nullable=True)  # head of the chain
    status = Column(String(16), default=GameRecordStatus.RUNNING.value, nullable=False)
    created_time = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)


class SaveRow(Base):
    """One immutable snapshot of a game."""
    __tablename__ = "saves"

    save_id = Column(String, primary_key=True)
    game_id = Column(String, ForeignKey("games.game_id"), nullable=False, index=True)
    game = Column(Text, nullable=False)  # serialized body, opaque to the store
    created_time = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class GameResultRow(Base):
    """Write-once summary of a completed game."""
    __tablename__ = "game_results"

    game_id = Column(String, primary_key=True)
    seed_game_id = Column(String, nullable=True)  # game this one was cloned from
    players = Column(Integer, nullable=False)
    generations = Column(Integer, nullable=False)
    game_options = Column(JSON, nullable=False)
    scores = Column(JSON, nullable=False)  # [{"player": ..., "score": ...}]
