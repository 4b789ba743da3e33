# Players Module
#
# This file is part of the dgtplay project
#
# Players are entities that make moves in a chess game. Each game has two
# players (White and Black). A player can be:
# - Human: moves come from the physical board
# - Engine: moves come from one or more UCI engines, played on the board
#   by a human
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

from .base import Player, PlayerConfig, PlayerState, PlayerType, TurnResult
from .human import HumanPlayer, create_human_player
from .engine import EnginePlayer, EnginePlayerConfig, create_engine_player

__all__ = [
    # Base classes
    'Player',
    'PlayerConfig',
    'PlayerState',
    'PlayerType',
    'TurnResult',
    # Human player
    'HumanPlayer',
    'create_human_player',
    # Engine player
    'EnginePlayer',
    'EnginePlayerConfig',
    'create_engine_player',
]
