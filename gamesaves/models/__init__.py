# Models package
from .base import Base
from .game import Game, GameOptions, Player
from .save import GameRow, SaveRow, GameResultRow
