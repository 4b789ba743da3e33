"""Move descriptors shared by the game, the rules engine adapter and players.

``MoveInput`` is what a player hands to the game: a from/to square pair with
an optional promotion piece, whatever the source (physical board indices,
a UCI string from an agent, a python-chess move). ``MoveRecord`` is what the
rules engine hands back for an accepted move.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Union

import chess

from dgtplay.board.layout import square_name
from dgtplay.managers.events import PhysicalMove

MIN_UCI_MOVE_LENGTH = 4


class MoveFlag(Enum):
    """Move characteristics, as reported by the rules engine."""
    NORMAL = "n"
    CAPTURE = "c"
    BIG_PAWN = "b"
    EP_CAPTURE = "e"
    PROMOTION = "p"
    KSIDE_CASTLE = "k"
    QSIDE_CASTLE = "q"


@dataclass(frozen=True)
class MoveInput:
    from_square: str
    to_square: str
    promotion: Optional[str] = None

    @classmethod
    def from_uci(cls, uci: str) -> MoveInput:
        if len(uci) < MIN_UCI_MOVE_LENGTH:
            raise ValueError(f"Not a UCI move: {uci!r}")
        return cls(uci[0:2], uci[2:4], uci[4:5] or None)

    @classmethod
    def from_chess_move(cls, move: chess.Move) -> MoveInput:
        promotion = chess.piece_symbol(move.promotion) if move.promotion else None
        return cls(chess.square_name(move.from_square), chess.square_name(move.to_square), promotion)

    @classmethod
    def from_physical(cls, move: PhysicalMove) -> MoveInput:
        return cls(square_name(move.from_index), square_name(move.to_index), move.promotion)

    @classmethod
    def parse(cls, value: Union[MoveInput, PhysicalMove, chess.Move, str]) -> MoveInput:
        """Resolve any supported move source into a MoveInput."""
        if isinstance(value, MoveInput):
            return value
        if isinstance(value, PhysicalMove):
            return cls.from_physical(value)
        if isinstance(value, chess.Move):
            return cls.from_chess_move(value)
        if isinstance(value, str):
            return cls.from_uci(value)
        raise TypeError(f"Cannot make a move out of {value!r}")

    @property
    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    def __str__(self) -> str:
        return self.uci


@dataclass(frozen=True)
class MoveRecord:
    """An accepted move.

    ``ep_index``/``ep_square`` locate the pawn captured en passant (layout
    index and square name); the board sync needs them to confirm that
    square was cleared.
    """
    from_square: str
    to_square: str
    color: str
    flags: FrozenSet[MoveFlag] = frozenset({MoveFlag.NORMAL})
    promotion: Optional[str] = None
    san: Optional[str] = None
    ep_index: Optional[int] = None
    ep_square: Optional[str] = None

    @property
    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    @property
    def is_castle(self) -> bool:
        return MoveFlag.KSIDE_CASTLE in self.flags or MoveFlag.QSIDE_CASTLE in self.flags

    @property
    def is_en_passant(self) -> bool:
        return MoveFlag.EP_CAPTURE in self.flags

    def with_en_passant(self, ep_index: int, ep_square: str) -> MoveRecord:
        return dataclasses.replace(self, ep_index=ep_index, ep_square=ep_square)

    def __str__(self) -> str:
        return self.san or self.uci
