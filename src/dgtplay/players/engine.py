# Engine Player
#
# This file is part of the dgtplay project
#
# A player whose moves come from one or more move-generation agents
# (UCI engines). With several agents the player rotates through them,
# one agent per move. A human still has to play the chosen move on the
# physical board; the game waits for that separately.
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

import asyncio
import random
from dataclasses import dataclass
from typing import Optional, Sequence

from dgtplay.board.logging import log
from dgtplay.board.settings import load_float, load_int
from dgtplay.managers.engine_manager import SearchOptions
from dgtplay.managers.game.move_record import MoveInput
from .base import Player, PlayerConfig, PlayerType, TurnResult


@dataclass
class EnginePlayerConfig(PlayerConfig):
    """Configuration for engine players.

    Attributes:
        depth: Search depth per move request.
        multipv: Number of lines the agent reports.
        min_think_time: Minimum seconds a turn takes, so instant answers
            do not look instant.
    """
    first_name: str = "engine"
    depth: int = 1
    multipv: int = 10
    min_think_time: float = 1.0

    @classmethod
    def from_settings(cls, **kwargs) -> "EnginePlayerConfig":
        kwargs.setdefault("depth", load_int("engine", "depth", 1))
        kwargs.setdefault("multipv", load_int("engine", "multipv", 10))
        kwargs.setdefault("min_think_time", load_float("engine", "min_think_time", 1.0))
        return super().from_settings(**kwargs)


class EnginePlayer(Player):
    """A player that asks an ensemble of agents for its moves.

    Rotation:
    - The ensemble is shuffled once so the first agent is random.
    - After each successful move the next agent takes over, unless the
      game asked again after an illegal move (the same agent retries).
    - take_back() rewinds to the agent that played the undone move.
    """

    def __init__(self, color: str, game, engines: Sequence, config: Optional[EnginePlayerConfig] = None):
        """
        Args:
            color: "white" or "black".
            game: The ChessGame this player belongs to.
            engines: Agents with position(fen) and go(options, context).
            config: Configuration. If None, uses defaults.
        """
        super().__init__(color, game, config or EnginePlayerConfig())
        self._engines = list(engines)
        if not self._engines:
            raise ValueError("EnginePlayer needs at least one engine")
        if len(self._engines) > 1:
            random.shuffle(self._engines)
        self._engine_ix = self._last_engine_ix = 0
        self._engine = self._engines[0]
        self._result = None

    @property
    def player_type(self) -> PlayerType:
        return PlayerType.ENGINE

    @property
    def name(self) -> str:
        engines = ",".join(getattr(e, "name", "engine") for e in self._engines)
        return f"{super().name} ({engines})"

    @property
    def engines(self) -> list:
        return list(self._engines)

    @property
    def engine_index(self) -> int:
        """Index of the agent that will answer the next request."""
        return self._engine_ix

    @property
    def min_time(self) -> float:
        return self._config.min_think_time

    @property
    def search_options(self) -> SearchOptions:
        return SearchOptions(depth=self._config.depth, multipv=self._config.multipv)

    def allow_takeback(self) -> bool:
        return True

    async def your_turn(self, try_again: bool = False) -> TurnResult:
        try:
            await self.start_turn()
            fen = self._game.fen()
            # Every agent follows the game, even those not playing this move
            updates = [asyncio.ensure_future(eng.position(fen)) for eng in self._engines]
            for update in updates:
                await update

            engine = self._engine = self._engines[self._engine_ix]
            result = await engine.go(self.search_options, self._game)
            self._result = result

            self._last_engine_ix = self._engine_ix
            if not try_again and len(self._engines) > 1:
                self._engine_ix = (self._engine_ix + 1) % len(self._engines)

            move = MoveInput.parse(result.pickmove or result.bestmove)
            log.info(f"[EnginePlayer] {getattr(engine, 'name', 'engine')} ({self._color}) chose {move}")
            return TurnResult(move=move, agent=engine, agent_result=result)
        finally:
            remaining = self.min_time - self.turn_running_time()
            if remaining > 0:
                await asyncio.sleep(remaining)
            await self.end_turn()

    def take_back(self) -> None:
        self._engine_ix = self._last_engine_ix
        super().take_back()

    def get_info(self) -> dict:
        info = super().get_info()
        info.update({
            'engines': [getattr(e, "name", "engine") for e in self._engines],
            'engine_index': self._engine_ix,
        })
        return info


def create_engine_player(color: str, game, engines: Sequence, **config) -> EnginePlayer:
    """Factory function to create an engine player with defaults from settings."""
    return EnginePlayer(color, game, engines, EnginePlayerConfig.from_settings(**config))
