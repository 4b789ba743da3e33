"""Game manager package.

The game loop, its board synchronization protocol and interrupt handling,
plus the move and rules types it is built on.
"""

from .config import GameConfig
from .game_manager import ChessGame, GameResult
from .interrupt import InterruptKind, InterruptSignal, PendingState, SyncResult
from .move_record import MoveFlag, MoveInput, MoveRecord
from .rules import RulesEngine

__all__ = [
    'ChessGame',
    'GameConfig',
    'GameResult',
    'InterruptKind',
    'InterruptSignal',
    'PendingState',
    'SyncResult',
    'MoveFlag',
    'MoveInput',
    'MoveRecord',
    'RulesEngine',
]
