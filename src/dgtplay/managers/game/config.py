"""Game loop tuning, loaded from the [game] section of dgtplay.ini."""

from dataclasses import dataclass

from dgtplay.board.layout import DEFAULT_FEN
from dgtplay.board.settings import load_float, load_str

SECTION = "game"


@dataclass
class GameConfig:
    """Timing and defaults for the game loop.

    Attributes:
        start_fen: Position used when new_game() gets no FEN.
        sync_stall_delay: Seconds without a layout change before a
            board-not-sync-change notification fires.
        castle_extra_delay: Extra grace added for castling moves, which
            take two pieces to play on the board.
    """
    start_fen: str = DEFAULT_FEN
    sync_stall_delay: float = 1.25
    castle_extra_delay: float = 1.0

    @classmethod
    def from_settings(cls) -> "GameConfig":
        return cls(
            start_fen=load_str(SECTION, "start_fen", DEFAULT_FEN),
            sync_stall_delay=load_float(SECTION, "sync_stall_delay", 1.25),
            castle_extra_delay=load_float(SECTION, "castle_extra_delay", 1.0),
        )
