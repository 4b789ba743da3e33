# Player Base Class
#
# This file is part of the dgtplay project
#
# Abstract base class for all players. A player is an entity that makes
# moves in a chess game. Each game has two players (White and Black).
#
# Every player listens to the physical board for moves of its own color:
# - HumanPlayer: the physical move is the move
# - EnginePlayer: agents choose the move; physical moves of its color only
#   matter as take-back gestures while the engine is not in turn
#
# The game validates all moves the same way.
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Deque, Optional, Union

from dgtplay.board.logging import log
from dgtplay.board.settings import load_float
from dgtplay.managers.events import PhysicalMove, move_event
from dgtplay.managers.game.interrupt import InterruptKind
from dgtplay.managers.game.move_record import MoveInput


class PlayerType(Enum):
    """Type of player - determines how moves are sourced.

    HUMAN: Moves come from physical board interactions.
           The game waits for the human to move pieces.

    ENGINE: Moves come from one or more move-generation agents.
            The agent computes moves, a human executes them on the board.
    """
    HUMAN = auto()
    ENGINE = auto()


@dataclass
class PlayerConfig:
    """Base configuration for players.

    Attributes:
        first_name: Given name for display/logging.
        last_name: Family name for display/logging.
        rating: Rating shown alongside the name.
        total_time: Time budget for the game, in seconds.
    """
    first_name: str = "player"
    last_name: str = ""
    rating: int = 0
    total_time: float = 1800.0

    @classmethod
    def from_settings(cls, **kwargs) -> PlayerConfig:
        kwargs.setdefault("total_time", load_float("player", "total_time", 1800.0))
        return cls(**kwargs)


@dataclass
class PlayerState:
    """Turn bookkeeping for one color.

    Attributes:
        color: "white" or "black".
        pending_moves: Physical moves received while not waiting for one.
        in_turn: True between start_turn() and end_turn().
        total_time: Time budget for the game, in seconds.
        remaining_time: Budget left after the turns played so far.
        turn_start: Monotonic timestamp of the current/last turn start.
    """
    color: str
    total_time: float
    remaining_time: float
    pending_moves: Deque[PhysicalMove] = field(default_factory=deque)
    in_turn: bool = False
    turn_start: float = 0.0


@dataclass
class TurnResult:
    """What a player produced for its turn.

    ``move`` is an InterruptKind when the wait was interrupted or the player
    was reset instead of producing a move.
    """
    move: Union[MoveInput, InterruptKind]
    agent: Any = None
    agent_result: Any = None

    @property
    def interrupted(self) -> bool:
        return isinstance(self.move, InterruptKind)


class Player(ABC):
    """Abstract base class for chess players.

    Key Methods:
    - your_turn(): Called by the game when it's this player's turn
    - wait_move(): Suspend until a physical move of this color arrives
    - interrupt(): Break out of wait_move() (take-back, reset)
    - pause()/resume(): Ignore physical input while the game rewinds

    Physical input handling:
    - paused: ignored
    - not in turn: checked for a take-back gesture (if allowed) and queued
    - in turn: resolves the outstanding wait_move(), or is queued
    """

    def __init__(self, color: str, game, config: Optional[PlayerConfig] = None):
        """Initialize the player and subscribe to its color's board moves.

        Args:
            color: "white" or "black".
            game: The ChessGame this player belongs to.
            config: Configuration for this player. If None, uses defaults.
        """
        self._config = config or PlayerConfig()
        self._color = color
        self._game = game
        self._board = game.board
        self._state = PlayerState(
            color=color,
            total_time=self._config.total_time,
            remaining_time=self._config.total_time,
        )
        self._await_move: Optional[asyncio.Future] = None
        self._pause = False
        self._interrupt: Optional[InterruptKind] = None
        self._subscription = self._board.events.subscribe(move_event(color), self._on_physical_move)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def color(self) -> str:
        return self._color

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    @abstractmethod
    def player_type(self) -> PlayerType:
        """The type of this player (HUMAN, ENGINE)."""

    @property
    def name(self) -> str:
        full = " ".join(x for x in (self.first_name, self.last_name) if x)
        return full or "player"

    @property
    def first_name(self) -> str:
        return self._config.first_name or ""

    @property
    def last_name(self) -> str:
        return self._config.last_name or ""

    @property
    def min_time(self) -> float:
        """Minimum seconds a turn takes."""
        return 0.0

    @property
    def is_paused(self) -> bool:
        return self._pause

    @property
    def remaining_time(self) -> float:
        return self._state.remaining_time

    def allow_takeback(self) -> bool:
        """Whether reversing this color's last move on the board asks for a take-back."""
        return False

    # =========================================================================
    # Physical input
    # =========================================================================

    def _on_physical_move(self, move: PhysicalMove) -> None:
        if self._pause:
            return

        if not self._state.in_turn:
            if self.allow_takeback():
                self._game.check_takeback(self._color, move)
            self._state.pending_moves.append(move)
        elif self._await_move is not None and not self._await_move.done():
            self._await_move.set_result(move)
            self._await_move = None
        else:
            self._state.pending_moves.append(move)

    # =========================================================================
    # Interrupt handling
    # =========================================================================

    def resume(self) -> None:
        self._pause = False
        self._interrupt = None

    def pause(self) -> None:
        self._pause = True

    def reset(self) -> None:
        """Stop acting on input and release any wait with the RESET sentinel."""
        self._pause = True
        self._interrupt = None
        self._state.pending_moves.clear()
        self._release_wait(InterruptKind.RESET)

    def interrupt(self, kind: InterruptKind) -> None:
        """Break the current wait_move(), or make the next one return at once."""
        if not self._release_wait(kind):
            self._interrupt = kind

    def take_back(self) -> None:
        """Notification that this player's last move was taken back."""
        log.debug(f"[Player] {self.name} ({self._color}) move taken back")
        self._state.pending_moves.clear()

    def detach(self) -> None:
        """Unsubscribe from the board; the player is done for good."""
        self._subscription.close()

    def _release_wait(self, value) -> bool:
        waiting = self._await_move
        self._await_move = None
        if waiting is not None and not waiting.done():
            waiting.set_result(value)
            return True
        return False

    # =========================================================================
    # Turn protocol
    # =========================================================================

    async def wait_move(self) -> Union[PhysicalMove, InterruptKind]:
        """Wait for the next physical move of this color (or an interrupt)."""
        if self._interrupt:
            return self._interrupt

        if self._state.pending_moves:
            # Moves were made before the wait started; let the board
            # re-detect them against the committed layout.
            self._state.pending_moves.clear()
            asyncio.get_running_loop().call_soon(self._board.detect_moves)

        self._await_move = asyncio.get_running_loop().create_future()
        return await self._await_move

    async def your_turn(self, try_again: bool = False) -> TurnResult:
        try:
            await self.start_turn()
            move = await self.wait_move()
            self._interrupt = None
            if isinstance(move, InterruptKind):
                return TurnResult(move=move)
            return TurnResult(move=MoveInput.parse(move))
        finally:
            await self.end_turn()

    async def start_turn(self) -> None:
        self._state.in_turn = True
        self._state.turn_start = time.monotonic()

    async def end_turn(self) -> None:
        self._state.in_turn = False
        self._state.remaining_time -= time.monotonic() - self._state.turn_start

    def turn_running_time(self) -> float:
        return time.monotonic() - self._state.turn_start

    def get_info(self) -> dict:
        """Get information about this player for display."""
        return {
            'name': self.name,
            'color': self._color,
            'type': self.player_type.name,
            'rating': self._config.rating,
            'remaining_time': self._state.remaining_time,
        }
