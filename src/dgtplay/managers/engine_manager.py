# Engine Manager
#
# This file is part of the dgtplay project
#
# Known UCI engines and the move-generation agents built on them. Each
# engine binary is started once per id and shared by every player that
# asks for it. Engines talk UCI through python-chess's asyncio protocol.
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

from __future__ import annotations

import os
import pathlib
import shutil
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import chess
import chess.engine

from dgtplay.board.logging import log
from dgtplay.board.settings import Settings, load_str


class EngineError(Exception):
    """Raised when an engine cannot be set up."""


class UnknownEngineError(EngineError):
    """Raised for an engine name missing from the engine table."""


@dataclass
class SearchOptions:
    """Search budget for a single move request."""
    depth: Optional[int] = 1
    multipv: int = 10
    time: Optional[float] = None

    def limit(self) -> chess.engine.Limit:
        return chess.engine.Limit(depth=self.depth, time=self.time)


@dataclass
class AgentResult:
    """Answer to a move request.

    Attributes:
        bestmove: The agent's top choice.
        pickmove: A move chosen by an injected picker, preferred over
            bestmove when present (e.g. to simulate weaker play).
        infos: The per-line analysis the choice was made from.
    """
    bestmove: chess.Move
    pickmove: Optional[chess.Move] = None
    infos: List[chess.engine.InfoDict] = field(default_factory=list)


# picker(infos, context) -> move or None
Picker = Callable[[List[chess.engine.InfoDict], Any], Optional[chess.Move]]


class UciAgent:
    """Move-generation agent backed by a UCI engine process."""

    def __init__(self, name: str, protocol: chess.engine.UciProtocol, transport=None, picker: Optional[Picker] = None):
        self.name = name
        self._protocol = protocol
        self._transport = transport
        self._board = chess.Board()
        self._game_key = object()
        self.picker = picker

    async def position(self, fen: str) -> None:
        """Set the position for the next go() and wait for the engine."""
        self._board = chess.Board(fen)
        await self._protocol.ping()

    async def go(self, options: SearchOptions, context=None) -> AgentResult:
        """Search the current position.

        Args:
            options: Search budget.
            context: Handed to the picker (the game, usually).
        """
        infos = await self._protocol.analyse(
            self._board,
            options.limit(),
            multipv=max(1, options.multipv),
            game=self._game_key,
        )
        lines = [info for info in infos if info.get("pv")]
        if not lines:
            raise EngineError(f"{self.name} returned no move for {self._board.fen()}")
        bestmove = lines[0]["pv"][0]
        pickmove = self.picker(lines, context) if self.picker else None
        log.debug(f"[UciAgent] {self.name} bestmove {bestmove.uci()} pick {pickmove.uci() if pickmove else None}")
        return AgentResult(bestmove=bestmove, pickmove=pickmove, infos=lines)

    async def configure(self, options: Dict[str, Any]) -> None:
        if options:
            await self._protocol.configure(options)

    async def new_game(self) -> None:
        """Make the next search start with ucinewgame."""
        self._game_key = object()
        await self._protocol.ping()

    async def quit(self) -> None:
        await self._protocol.quit()


@dataclass
class EngineSpec:
    """How a player wants its agent set up.

    Attributes:
        id: Cache key; players sharing an id share the process.
        name: Engine table entry; defaults to id.
        init_options: UCI options applied after start.
        init: Optional coroutine function called with the agent last.
    """
    id: str
    name: Optional[str] = None
    init_options: Dict[str, Any] = field(default_factory=dict)
    init: Optional[Callable[[UciAgent], Awaitable[None]]] = None


class EnginesManager:
    """Registry of known engines and the agents started from them.

    Usage:
        manager = EnginesManager.from_settings()
        agent = await manager.init_engine(EngineSpec("sf1", "stockfish"))
        ...
        await manager.shutdown()
    """

    def __init__(self, engines_db: Dict[str, str], engine_dir: str = "."):
        """
        Args:
            engines_db: Engine name -> executable, relative to engine_dir
                or found on PATH.
            engine_dir: Directory holding the engine binaries.
        """
        self._engines_db = dict(engines_db)
        self._engine_dir = engine_dir
        self._agents: Dict[str, UciAgent] = {}

    @classmethod
    def from_settings(cls) -> EnginesManager:
        return cls(Settings.read_section("engines"), load_str("engine", "directory", "."))

    @property
    def known_engines(self) -> List[str]:
        return sorted(self._engines_db)

    def resolve_path(self, name: str) -> str:
        """Find the executable of a known engine."""
        exe = self._engines_db[name]
        path = pathlib.Path(self._engine_dir, exe)
        if path.exists():
            return os.path.realpath(str(path))
        which_path = shutil.which(exe) or shutil.which(pathlib.Path(exe).name)
        if which_path:
            return os.path.realpath(which_path)
        return str(path.resolve())

    async def get(self, id: str, name: Optional[str] = None) -> UciAgent:
        """Get the agent for ``id``, starting the engine on first use.

        Raises:
            UnknownEngineError: ``name`` is not in the engine table.
            EngineError: The engine process could not be started.
        """
        name = name or id
        if name not in self._engines_db:
            raise UnknownEngineError(f"Engine {name} is unknown")

        if id not in self._agents:
            path = self.resolve_path(name)
            log.info(f"[EnginesManager] creating new engine {name} {path}")
            try:
                transport, protocol = await chess.engine.popen_uci(path)
            except (OSError, chess.engine.EngineError) as e:
                raise EngineError(f"Failed to start engine {name} at {path}: {e}") from e
            self._agents[id] = UciAgent(name, protocol, transport)

        return self._agents[id]

    async def init_engine(self, spec: EngineSpec) -> UciAgent:
        agent = await self.get(spec.id, spec.name)
        await agent.new_game()
        if spec.init_options:
            await agent.configure(spec.init_options)
        if spec.init:
            await spec.init(agent)
        return agent

    async def shutdown(self) -> None:
        for id, agent in list(self._agents.items()):
            log.info(f"[EnginesManager] closing engine {id}")
            try:
                await agent.quit()
            except chess.engine.EngineError as e:
                log.debug(f"[EnginesManager] error closing {id}: {e}")
        self._agents.clear()


__all__ = [
    "AgentResult",
    "EngineError",
    "EngineSpec",
    "EnginesManager",
    "SearchOptions",
    "UciAgent",
    "UnknownEngineError",
]
