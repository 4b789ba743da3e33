# Physical Board Interface
#
# This file is part of the dgtplay project
#
# The physical board senses which squares are occupied and by which piece.
# It never knows the rules; it only reports layouts, remembers the layout
# the game last committed, and turns differences between the two into
# per-color move notifications.
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from dgtplay.board.layout import (
    BLACK,
    BOARD_SIZE,
    DEFAULT_RAW,
    EMPTY,
    WHITE,
    belongs_to,
    filter_by_color,
    raw_to_ascii,
    square_index,
    square_name,
)
from dgtplay.board.logging import log
from dgtplay.managers.events import (
    EVENT_BOARD_CHANGED,
    EventBus,
    LayoutChanged,
    PhysicalMove,
    move_event,
)

KING_LETTERS = ("K", "k")
PAWN_LETTERS = ("P", "p")


class PhysicalBoard:
    """Sensor board state: the sensed layout plus the last committed layout.

    Drivers call ``_sensed()`` with every new layout they read from the
    hardware. Each call emits ``changed`` and then runs move detection, which
    emits ``white-move`` / ``black-move`` when one color's pieces differ from
    the committed layout by exactly one move.

    The committed layout is what the game last accepted as synchronized. It
    is updated by ``commit()``, ``reset()`` and ``reset_to()``.
    """

    def __init__(self, raw: str = DEFAULT_RAW):
        self.events = EventBus("board")
        self._layout: List[str] = self._check(raw)
        self._committed: List[str] = list(self._layout)
        self._last_detected: Dict[str, Optional[PhysicalMove]] = {WHITE: None, BLACK: None}

    @staticmethod
    def _check(raw: Sequence[str]) -> List[str]:
        layout = list(raw)
        if len(layout) != BOARD_SIZE:
            raise ValueError(f"Board layout must have {BOARD_SIZE} squares, got {len(layout)}")
        return layout

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def to_string(self) -> str:
        """The sensed layout as a 64 character string."""
        return "".join(self._layout)

    def __str__(self) -> str:
        return self.to_string()

    def string_by_color(self, color: str) -> str:
        """The sensed layout restricted to one color's pieces."""
        return filter_by_color(self._layout, color)

    def piece_by_index(self, index: int) -> str:
        return self._layout[index]

    def ascii(self) -> List[str]:
        return raw_to_ascii(self._layout)

    @property
    def committed(self) -> str:
        return "".join(self._committed)

    # -------------------------------------------------------------------------
    # Commands from the game
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """Accept the sensed layout as the committed layout."""
        log.debug("[PhysicalBoard] reset")
        self._committed = list(self._layout)
        self._clear_detected()

    def reset_to(self, raw: str) -> None:
        """Make ``raw`` the committed layout, whatever the sensors show."""
        log.debug(f"[PhysicalBoard] reset to {raw}")
        self._committed = self._check(raw)
        self._clear_detected()

    def commit(self, color: str, raw: str, affected_indices: Iterable[Optional[int]] = ()) -> None:
        """Record the expected layout for one color after a synchronized move.

        ``raw`` is the color projection of the logical position. Squares of
        that color are taken from it; ``affected_indices`` (e.g. the square of
        a pawn captured en passant) are cleared as well.
        """
        committed = self._committed
        for ix in range(BOARD_SIZE):
            if belongs_to(raw[ix], color):
                committed[ix] = raw[ix]
            elif belongs_to(committed[ix], color):
                committed[ix] = EMPTY
        for ix in affected_indices:
            if ix is not None:
                committed[ix] = EMPTY
        self._clear_detected()
        log.debug(f"[PhysicalBoard] commit {color}: {self.committed}")

    def emit_changed(self) -> None:
        """Re-notify listeners with the current layout even if nothing moved."""
        self.events.emit(EVENT_BOARD_CHANGED, LayoutChanged(self.to_string()))

    def detect_moves(self) -> None:
        """Run move detection again, re-reporting moves already reported."""
        self._clear_detected()
        self._detect()

    # -------------------------------------------------------------------------
    # Sensor input
    # -------------------------------------------------------------------------

    def _sensed(self, raw: Sequence[str]) -> None:
        layout = self._check(raw)
        if layout == self._layout:
            return
        self._layout = layout
        self.emit_changed()
        self._detect()

    def _clear_detected(self) -> None:
        self._last_detected = {WHITE: None, BLACK: None}

    def _detect(self) -> None:
        for color in (WHITE, BLACK):
            move = self._detect_color(color)
            if move is None or move == self._last_detected[color]:
                continue
            self._last_detected[color] = move
            log.info(f"[PhysicalBoard] {color} move {square_name(move.from_index)}{square_name(move.to_index)}")
            self.events.emit(move_event(color), move)

    def _detect_color(self, color: str) -> Optional[PhysicalMove]:
        before = filter_by_color(self._committed, color)
        after = self.string_by_color(color)
        vanished = [ix for ix in range(BOARD_SIZE) if before[ix] != EMPTY and after[ix] != before[ix]]
        appeared = [ix for ix in range(BOARD_SIZE) if after[ix] != EMPTY and after[ix] != before[ix]]

        if len(vanished) == 1 and len(appeared) == 1:
            from_ix, to_ix = vanished[0], appeared[0]
        elif len(vanished) == 2 and len(appeared) == 2:
            # Castling: report the king's move
            pair = self._king_pair(before, after, vanished, appeared)
            if pair is None:
                return None
            from_ix, to_ix = pair
        else:
            return None

        promotion = None
        if before[from_ix] in PAWN_LETTERS and after[to_ix] not in PAWN_LETTERS:
            promotion = after[to_ix].lower()
        return PhysicalMove(color, from_ix, to_ix, promotion)

    @staticmethod
    def _king_pair(before: str, after: str, vanished: List[int], appeared: List[int]) -> Optional[Tuple[int, int]]:
        from_ix = next((ix for ix in vanished if before[ix] in KING_LETTERS), None)
        to_ix = next((ix for ix in appeared if after[ix] in KING_LETTERS), None)
        if from_ix is None or to_ix is None:
            return None
        return from_ix, to_ix


class SimulatedBoard(PhysicalBoard):
    """A PhysicalBoard whose sensors are driven from code.

    Used for tests and for playing without hardware: every mutation is
    reported exactly like a sensor read.
    """

    def set_layout(self, raw: Sequence[str]) -> None:
        self._sensed(raw)

    def move_piece(self, from_square: str, to_square: str, promotion: Optional[str] = None) -> None:
        """Lift the piece on ``from_square`` and put it down on ``to_square``.

        ``promotion`` replaces the placed piece (given in either case; the
        color of the moving piece wins).
        """
        layout = list(self._layout)
        from_ix = square_index(from_square)
        piece = layout[from_ix]
        if piece == EMPTY:
            raise ValueError(f"No piece on {from_square}")
        if promotion:
            piece = promotion.upper() if piece.isupper() else promotion.lower()
        layout[from_ix] = EMPTY
        layout[square_index(to_square)] = piece
        self._sensed(layout)

    def remove_piece(self, square: str) -> None:
        layout = list(self._layout)
        layout[square_index(square)] = EMPTY
        self._sensed(layout)

    def place_piece(self, square: str, piece: str) -> None:
        layout = list(self._layout)
        layout[square_index(square)] = piece
        self._sensed(layout)
