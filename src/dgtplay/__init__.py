"""dgtplay - play chess on a sensor board against people or engines.

The game keeps the logical position, the physical board and both players
in step; see ``dgtplay.managers.game.ChessGame``.
"""

__version__ = "0.1.0"
