# Test Helpers
#
# This file is part of the dgtplay project
#
# Fakes and small async utilities shared by the game and player tests.
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

import asyncio
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

import chess

from dgtplay.managers.engine_manager import AgentResult
from dgtplay.managers.events import (
    EVENT_BOARD_NOT_SYNC_CHANGE,
    EVENT_BOARD_READY,
    EVENT_BOARD_SYNCED,
    EVENT_GAME_OVER,
    EVENT_ILLEGAL_MOVE,
    EVENT_NEW_GAME_READY,
    EVENT_PLAYER_MOVED,
    EVENT_TAKE_BACK,
    EVENT_WAITING_BOARD_SYNC,
    EVENT_WAITING_FOR_BOARD_READY,
)
from dgtplay.players import EnginePlayer, EnginePlayerConfig, HumanPlayer


async def settle(ticks: int = 20) -> None:
    """Let scheduled callbacks and woken tasks run."""
    for _ in range(ticks):
        await asyncio.sleep(0)


async def stop_task(task: Optional[asyncio.Future]) -> None:
    """Cancel a game loop task left running by a test."""
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


class EventRecorder:
    """Records payloads emitted on a bus for the given event names."""

    def __init__(self, bus, *names: str):
        self.records: Dict[str, List] = defaultdict(list)
        self.order: List[str] = []
        self._subs = [bus.subscribe(name, self._handler(name)) for name in names]

    def _handler(self, name):
        def record(payload):
            self.records[name].append(payload)
            self.order.append(name)
        return record

    def count(self, name: str) -> int:
        return len(self.records[name])

    def last(self, name: str):
        return self.records[name][-1]

    async def wait_for(self, name: str, count: int = 1, timeout: float = 2.0):
        """Wait until ``name`` was emitted ``count`` times, return that payload."""
        async def poll():
            while len(self.records[name]) < count:
                await asyncio.sleep(0.001)
            return self.records[name][count - 1]
        return await asyncio.wait_for(poll(), timeout)

    def close(self) -> None:
        for sub in self._subs:
            sub.close()


class FakeAgent:
    """Move-generation agent with canned answers.

    Plays ``moves`` in order, then the first legal move of the position.
    """

    def __init__(self, name: str = "fake", moves: Sequence[str] = (), pick: Optional[str] = None):
        self.name = name
        self._moves = list(moves)
        self.pick = pick
        self.positions: List[str] = []
        self.go_calls = 0

    async def position(self, fen: str) -> None:
        self.positions.append(fen)

    async def go(self, options, context=None) -> AgentResult:
        self.go_calls += 1
        if self._moves:
            bestmove = chess.Move.from_uci(self._moves.pop(0))
        else:
            bestmove = next(iter(chess.Board(self.positions[-1]).legal_moves))
        pickmove = chess.Move.from_uci(self.pick) if self.pick else None
        return AgentResult(bestmove=bestmove, pickmove=pickmove)


GAME_EVENTS = (
    EVENT_NEW_GAME_READY,
    EVENT_BOARD_READY,
    EVENT_WAITING_FOR_BOARD_READY,
    EVENT_WAITING_BOARD_SYNC,
    EVENT_BOARD_SYNCED,
    EVENT_BOARD_NOT_SYNC_CHANGE,
    EVENT_ILLEGAL_MOVE,
    EVENT_PLAYER_MOVED,
    EVENT_TAKE_BACK,
    EVENT_GAME_OVER,
)


def make_players(white: Optional[Sequence] = None, black: Optional[Sequence] = None):
    """Player factory for ChessGame.new_game().

    A color given a list of agents gets an EnginePlayer with no minimum
    think time, otherwise a HumanPlayer.
    """
    def init_player(color, game):
        agents = white if color == "white" else black
        if agents:
            return EnginePlayer(color, game, agents, EnginePlayerConfig(min_think_time=0.0))
        return HumanPlayer(color, game)
    return init_player


async def play_physical(board, rec: EventRecorder, moves) -> None:
    """Play (from, to) moves on the board, each after the previous was accepted."""
    done = rec.count(EVENT_PLAYER_MOVED)
    for from_square, to_square in moves:
        board.move_piece(from_square, to_square)
        done += 1
        await rec.wait_for(EVENT_PLAYER_MOVED, done)
        await settle()
