"""Interrupt slot and pending-state markers for the game loop.

The game has exactly one interrupt slot. Raising an interrupt arms it and
hands back a completion future; the game loop polls the slot at every
re-entry point, and the first poll that sees the armed kind resolves the
future on the next loop iteration, after the pending wait has unwound.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

from dgtplay.board.layout import WHITE


class InterruptKind(Enum):
    TAKE_BACK = "take-back"
    RESET = "reset"


class PendingState(Enum):
    """What the game loop is currently blocked on."""
    NONE = "none"
    WAIT_BOARD_READY = "wait-board-ready"
    WAIT_BOARD_SYNC = "wait-board-sync"
    WAIT_PLAYER_WHITE = "wait-player-white"
    WAIT_PLAYER_BLACK = "wait-player-black"

    @classmethod
    def wait_player(cls, color: str) -> PendingState:
        return cls.WAIT_PLAYER_WHITE if color == WHITE else cls.WAIT_PLAYER_BLACK


class SyncResult(Enum):
    SYNCED = "synced"
    INTERRUPTED = "interrupted"


class InterruptSignal:
    """Single-slot cancellation token."""

    def __init__(self):
        self.kind: Optional[InterruptKind] = None
        self.pause = False
        self._completion: Optional[asyncio.Future] = None
        self._delivered = False

    @property
    def armed(self) -> bool:
        return self.kind is not None

    @property
    def delivered(self) -> bool:
        return self._delivered

    def arm(self, kind: InterruptKind, pause: bool = False) -> asyncio.Future:
        """Load the slot. The caller must check ``armed`` first."""
        if self.armed:
            raise RuntimeError(f"Interrupt {self.kind.value} already pending")
        self.kind = kind
        self.pause = pause
        self._delivered = False
        self._completion = asyncio.get_running_loop().create_future()
        return self._completion

    def deliver(self) -> Optional[InterruptKind]:
        """Report the armed kind; the first call schedules the completion."""
        if not self.armed:
            return None
        if not self._delivered:
            self._delivered = True
            completion = self._completion
            if completion is not None:
                completion.get_loop().call_soon(_resolve, completion, self.kind)
        return self.kind

    def clear(self) -> None:
        # An interrupt dropped before any wait saw it still releases its caller
        if self._completion is not None and not self._delivered:
            _resolve(self._completion, self.kind)
        self.kind = None
        self.pause = False
        self._completion = None
        self._delivered = False


def _resolve(completion: asyncio.Future, kind: InterruptKind) -> None:
    if not completion.done():
        completion.set_result(kind)
