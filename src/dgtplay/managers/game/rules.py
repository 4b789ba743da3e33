"""Rules engine adapter.

Wraps a python-chess ``chess.Board`` behind the small surface the game
needs: load/reset, apply and undo moves, serializations of the position,
and end-of-game predicates. The game owns the only instance.
"""

from typing import List, Optional, Union

import chess

from dgtplay.board.layout import BLACK, DEFAULT_FEN, EMPTY, WHITE, raw_to_ascii
from .move_record import MoveFlag, MoveInput, MoveRecord


def color_name(color: chess.Color) -> str:
    return WHITE if color == chess.WHITE else BLACK


class RulesEngine:
    """Logical game state.

    The layout serializations use rank 8 first, file a first, matching
    the physical board's layout strings.
    """

    def __init__(self, fen: str = DEFAULT_FEN):
        self._board = chess.Board(fen)

    @property
    def board(self) -> chess.Board:
        """The underlying chess.Board. Read-only use only."""
        return self._board

    def reset(self) -> None:
        self._board.reset()

    def load(self, fen: Optional[str]) -> None:
        self._board.set_fen(fen or DEFAULT_FEN)

    # -------------------------------------------------------------------------
    # Moves
    # -------------------------------------------------------------------------

    def move(self, move: Union[MoveInput, str]) -> Optional[MoveRecord]:
        """Play a move if it is legal.

        Accepts a MoveInput, a UCI string or SAN. A pawn reaching the last
        rank without a promotion piece promotes to a queen.

        Returns:
            The MoveRecord of the played move, or None if it is illegal.
        """
        chess_move = self._to_chess_move(move)
        if chess_move is None or chess_move not in self._board.legal_moves:
            return None
        record = self._record(chess_move)
        self._board.push(chess_move)
        return record

    def undo(self) -> Optional[MoveRecord]:
        """Take back the last half-move; None when there is nothing to undo."""
        if not self._board.move_stack:
            return None
        chess_move = self._board.pop()
        return self._record(chess_move)

    def last_move(self) -> Optional[MoveRecord]:
        if not self._board.move_stack:
            return None
        before = self._board.copy()
        chess_move = before.pop()
        return self._record(chess_move, before)

    @property
    def history_length(self) -> int:
        return len(self._board.move_stack)

    def _to_chess_move(self, move: Union[MoveInput, str]) -> Optional[chess.Move]:
        if isinstance(move, str):
            try:
                return self._board.parse_uci(move)
            except ValueError:
                pass
            try:
                return self._board.parse_san(move)
            except ValueError:
                return None

        try:
            from_sq = chess.parse_square(move.from_square)
            to_sq = chess.parse_square(move.to_square)
        except ValueError:
            return None
        promotion = None
        if move.promotion:
            if move.promotion.lower() not in chess.PIECE_SYMBOLS[1:]:
                return None
            promotion = chess.PIECE_SYMBOLS.index(move.promotion.lower())
        elif self._board.piece_type_at(from_sq) == chess.PAWN and chess.square_rank(to_sq) in (0, 7):
            promotion = chess.QUEEN
        return chess.Move(from_sq, to_sq, promotion=promotion)

    def _record(self, chess_move: chess.Move, board: Optional[chess.Board] = None) -> MoveRecord:
        """Describe a move against the position it is played from."""
        board = board or self._board
        flags = set()
        if board.is_en_passant(chess_move):
            flags.add(MoveFlag.EP_CAPTURE)
        elif board.is_capture(chess_move):
            flags.add(MoveFlag.CAPTURE)
        if board.is_kingside_castling(chess_move):
            flags.add(MoveFlag.KSIDE_CASTLE)
        elif board.is_queenside_castling(chess_move):
            flags.add(MoveFlag.QSIDE_CASTLE)
        if chess_move.promotion:
            flags.add(MoveFlag.PROMOTION)
        if (board.piece_type_at(chess_move.from_square) == chess.PAWN
                and abs(chess_move.to_square - chess_move.from_square) == 16):
            flags.add(MoveFlag.BIG_PAWN)
        if not flags:
            flags.add(MoveFlag.NORMAL)
        return MoveRecord(
            from_square=chess.square_name(chess_move.from_square),
            to_square=chess.square_name(chess_move.to_square),
            color=color_name(board.turn),
            flags=frozenset(flags),
            promotion=chess.piece_symbol(chess_move.promotion) if chess_move.promotion else None,
            san=board.san(chess_move),
        )

    # -------------------------------------------------------------------------
    # Serializations
    # -------------------------------------------------------------------------

    def turn_color(self) -> str:
        return color_name(self._board.turn)

    def fen(self) -> str:
        return self._board.fen()

    def board_matrix(self) -> List[List[Optional[chess.Piece]]]:
        """8x8 rows of pieces (None for empty), rank 8 first."""
        return [
            [self._board.piece_at(chess.square(file, rank)) for file in range(8)]
            for rank in range(7, -1, -1)
        ]

    def raw(self) -> str:
        return "".join(
            piece.symbol() if piece else EMPTY
            for row in self.board_matrix()
            for piece in row
        )

    def ascii(self) -> str:
        return "\n".join(raw_to_ascii(self.raw()))

    # -------------------------------------------------------------------------
    # End of game
    # -------------------------------------------------------------------------

    def is_draw(self) -> bool:
        board = self._board
        return (board.halfmove_clock >= 100
                or board.is_stalemate()
                or board.is_insufficient_material()
                or board.is_repetition(3))

    def is_stalemate(self) -> bool:
        return self._board.is_stalemate()

    def is_threefold_repetition(self) -> bool:
        return self._board.is_repetition(3)

    def is_checkmate(self) -> bool:
        return self._board.is_checkmate()
