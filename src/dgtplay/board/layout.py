# Board Layout Helpers
#
# This file is part of the dgtplay project
#
# A layout ("raw") is a 64 character string describing square contents,
# rank 8 first and file a first, the same order as a FEN placement field.
# '.' marks an empty square, upper case letters are white pieces and
# lower case letters are black pieces.
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

from typing import List, Optional, Sequence, Union

BOARD_SIZE = 64
EMPTY = "."

DEFAULT_RAW = "rnbqkbnrpppppppp................................PPPPPPPPRNBQKBNR"
DEFAULT_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

# Square names in layout order: a8, b8, ... h8, a7, ... h1
FIELDS: List[str] = [f"{f}{r}" for r in "87654321" for f in "abcdefgh"]

# Console colors for visual move diffs
GREEN = '\033[32m'
MAGENTA = '\033[35m'
RESET = '\033[0m'

WHITE = "white"
BLACK = "black"


def is_empty(letter: Optional[str]) -> bool:
    return letter == EMPTY


def is_white(letter: str) -> bool:
    return not is_empty(letter) and letter.upper() == letter


def is_black(letter: str) -> bool:
    return not is_empty(letter) and letter.lower() == letter


def belongs_to(letter: str, color: str) -> bool:
    """Whether a layout letter is a piece of the given color ("white"/"black")."""
    return is_white(letter) if color == WHITE else is_black(letter)


def other_color(color: str) -> str:
    return BLACK if color == WHITE else WHITE


def square_name(index: int) -> str:
    """Layout index (0 = a8) to algebraic square name."""
    return FIELDS[index]


def square_index(name: str) -> int:
    """Algebraic square name to layout index (a8 = 0, h1 = 63)."""
    return FIELDS.index(name)


def filter_by_color(raw: Sequence[str], color: str) -> str:
    """Project a layout onto one color; the other color's pieces read as empty."""
    return "".join(p if belongs_to(p, color) else EMPTY for p in raw)


def fen_to_raw(fen: str) -> List[str]:
    """Expand the placement field of a FEN into a 64 entry layout list.

    Anything after the placement field (side to move, castling...) is ignored.
    """
    raw: List[str] = []
    for p in fen:
        if len(raw) >= BOARD_SIZE:
            break
        if "1" <= p <= "8":
            raw.extend(EMPTY * int(p))
        elif p == " ":
            break
        elif p != "/":
            raw.append(p)
    return raw


def raw_to_fen(raw: Sequence[str]) -> str:
    """Compress a 64 entry layout into a FEN placement field."""
    ranks = []
    for r in range(8):
        rank = ""
        dots = 0
        for p in raw[r * 8:r * 8 + 8]:
            if p == EMPTY:
                dots += 1
                continue
            if dots:
                rank += str(dots)
                dots = 0
            rank += p
        if dots:
            rank += str(dots)
        ranks.append(rank)
    return "/".join(ranks)


def raw_to_ascii(data: Union[str, Sequence[str]]) -> List[str]:
    """Render a layout as the lines of a text diagram."""
    data = list(data)
    out = ["   +------------------------+"]
    for i in range(8):
        row = "  ".join(data[i * 8:i * 8 + 8])
        out.append(f" {8 - i} | {row} |")
    out.append("   +------------------------+")
    out.append("     a  b  c  d  e  f  g  h")
    return out


def is_start_pos(fen: str) -> bool:
    return fen == DEFAULT_FEN


def make_visual_move_ascii(before_ascii, after_ascii) -> str:
    """Overlay two diagrams, highlighting what must change on the board.

    Squares that gain a piece are shown in green with the wanted piece,
    squares that must be cleared are shown in magenta with the current piece.
    Both arguments may be a newline-joined string or a list of lines.
    """
    before = before_ascii if isinstance(before_ascii, list) else before_ascii.split("\n")
    after = after_ascii if isinstance(after_ascii, list) else after_ascii.split("\n")
    visual = ""
    for br, ar in zip(before, after):
        for bc, ac in zip(br, ar):
            if bc != ac:
                if not is_empty(ac):
                    visual += f"{GREEN}{ac}{RESET}"
                else:
                    visual += f"{MAGENTA}{bc}{RESET}"
            else:
                visual += ac
        visual += "\n"
    return visual
