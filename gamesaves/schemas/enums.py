"""Save store enums definition."""
from enum import Enum


class GameRecordStatus(str, Enum):
    """Lifecycle of a game's save chain."""
    RUNNING = "running"
    FINISHED = "finished"
