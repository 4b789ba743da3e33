# Event Constants and Event Bus
#
# This file is part of the dgtplay project
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

"""
Event names, payloads and the per-component event bus.

Each stateful component (the game, the physical board) owns an EventBus.
Waits that listen for notifications subscribe through
``EventBus.subscribed()`` so the handler is released on every exit path.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from dgtplay.board.logging import log

# Game events
EVENT_NEW_GAME_READY = "new-game-ready"
EVENT_BOARD_READY = "board-ready"
EVENT_WAITING_FOR_BOARD_READY = "waiting-for-board-ready"
EVENT_WAITING_BOARD_SYNC = "waiting-board-sync"
EVENT_BOARD_SYNCED = "board-synced"
EVENT_BOARD_NOT_SYNC_CHANGE = "board-not-sync-change"
EVENT_ILLEGAL_MOVE = "illegal-move"
EVENT_PLAYER_MOVED = "player-moved"
EVENT_TAKE_BACK = "take-back"
EVENT_GAME_OVER = "game-over"

# Physical board events
EVENT_BOARD_CHANGED = "changed"
EVENT_WHITE_MOVE = "white-move"
EVENT_BLACK_MOVE = "black-move"

# Reasons carried by EVENT_WAITING_FOR_BOARD_READY
READY_REASON_NEW_GAME = "new-game"
READY_REASON_TAKE_BACK = "take-back"


def move_event(color: str) -> str:
    """Name of the physical move notification for one color."""
    return EVENT_WHITE_MOVE if color == "white" else EVENT_BLACK_MOVE


# -------------------------------------------------------------------------
# Payloads
# -------------------------------------------------------------------------

@dataclass(frozen=True)
class LayoutChanged:
    layout: str


@dataclass(frozen=True)
class PhysicalMove:
    """A move detected on the physical board, in layout indices."""
    color: str
    from_index: int
    to_index: int
    promotion: Optional[str] = None


@dataclass(frozen=True)
class NewGameReady:
    game_id: int
    start_fen: str


@dataclass(frozen=True)
class BoardReady:
    board_raw: str


@dataclass(frozen=True)
class WaitingForBoardReady:
    board_raw: str
    want_raw: str
    reason: str


@dataclass(frozen=True)
class WaitingBoardSync:
    move: Any
    before_raw: str


@dataclass(frozen=True)
class BoardSynced:
    move: Any


@dataclass(frozen=True)
class BoardNotSyncChange:
    board: str
    before_raw: str


@dataclass(frozen=True)
class IllegalMove:
    player: Any
    color: str
    move: Any


@dataclass(frozen=True)
class PlayerMoved:
    player: Any
    move: Any
    interrupted: bool = False


@dataclass(frozen=True)
class TakeBack:
    moves: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class GameOver:
    result: str
    winner: Optional[str] = None


# -------------------------------------------------------------------------
# Bus
# -------------------------------------------------------------------------

Handler = Callable[[Any], None]


class Subscription:
    """Handle returned by EventBus.subscribe(). close() is idempotent."""

    def __init__(self, bus: EventBus, event: str, handler: Handler):
        self._bus = bus
        self.event = event
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        if self._active:
            self._active = False
            self._bus._remove(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class EventBus:
    """Synchronous publish/subscribe channel.

    Handlers run in subscription order on the emitter's call stack, against a
    snapshot of the subscriber list, so a handler may unsubscribe itself (or
    others) while an event is being delivered.
    """

    def __init__(self, name: str = "bus"):
        self._name = name
        self._subscribers: Dict[str, List[Subscription]] = {}

    def subscribe(self, event: str, handler: Handler) -> Subscription:
        sub = Subscription(self, event, handler)
        self._subscribers.setdefault(event, []).append(sub)
        return sub

    @contextmanager
    def subscribed(self, event: str, handler: Handler) -> Iterator[Subscription]:
        """Subscribe for the duration of a with-block."""
        sub = self.subscribe(event, handler)
        try:
            yield sub
        finally:
            sub.close()

    def emit(self, event: str, payload: Any = None) -> None:
        for sub in list(self._subscribers.get(event, ())):
            if sub.active:
                sub.handler(payload)

    def listener_count(self, event: str) -> int:
        return len(self._subscribers.get(event, ()))

    def _remove(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.event)
        if subs and sub in subs:
            subs.remove(sub)
            if not subs:
                del self._subscribers[sub.event]
        log.debug(f"[EventBus] {self._name}: released {sub.event} listener")


__all__ = [
    'EVENT_NEW_GAME_READY',
    'EVENT_BOARD_READY',
    'EVENT_WAITING_FOR_BOARD_READY',
    'EVENT_WAITING_BOARD_SYNC',
    'EVENT_BOARD_SYNCED',
    'EVENT_BOARD_NOT_SYNC_CHANGE',
    'EVENT_ILLEGAL_MOVE',
    'EVENT_PLAYER_MOVED',
    'EVENT_TAKE_BACK',
    'EVENT_GAME_OVER',
    'EVENT_BOARD_CHANGED',
    'EVENT_WHITE_MOVE',
    'EVENT_BLACK_MOVE',
    'READY_REASON_NEW_GAME',
    'READY_REASON_TAKE_BACK',
    'move_event',
    'EventBus',
    'Subscription',
    'LayoutChanged',
    'PhysicalMove',
    'NewGameReady',
    'BoardReady',
    'WaitingForBoardReady',
    'WaitingBoardSync',
    'BoardSynced',
    'BoardNotSyncChange',
    'IllegalMove',
    'PlayerMoved',
    'TakeBack',
    'GameOver',
]
