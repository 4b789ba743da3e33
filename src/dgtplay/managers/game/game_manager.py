# Game Manager
#
# This file is part of the dgtplay project
#
# Runs a chess game between two players on a physical sensor board.
# The game maintains
# - a rules engine to validate and apply moves
# - two players, asked in turn for a move
# - the physical board, which must be brought in line with every accepted
#   move before play continues (an engine's move is also played by a human)
# - a single interrupt slot used to take moves back or abandon the game
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

import chess

from dgtplay.board.layout import (
    BLACK,
    WHITE,
    filter_by_color,
    is_empty,
    make_visual_move_ascii,
    other_color,
    raw_to_ascii,
    raw_to_fen,
    square_index,
    square_name,
)
from dgtplay.board.logging import log
from dgtplay.managers.events import (
    EVENT_BOARD_CHANGED,
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
    READY_REASON_NEW_GAME,
    READY_REASON_TAKE_BACK,
    BoardNotSyncChange,
    BoardReady,
    BoardSynced,
    EventBus,
    GameOver,
    IllegalMove,
    NewGameReady,
    PhysicalMove,
    PlayerMoved,
    TakeBack,
    WaitingBoardSync,
    WaitingForBoardReady,
)
from .config import GameConfig
from .interrupt import InterruptKind, InterruptSignal, PendingState, SyncResult
from .move_record import MoveInput, MoveRecord
from .rules import RulesEngine

# Layout index offset from the en passant destination to the captured pawn
EP_OFFSET = 8

UNDO_DIRECTIVE = "undo"


@dataclass(frozen=True)
class GameResult:
    result: str
    winner: Optional[str] = None


# init_player(color, game) -> Player, or an awaitable of one
PlayerFactory = Callable[[str, "ChessGame"], object]


class ChessGame:
    """Turn loop, board synchronization and interrupts for one board.

    The rules engine is the authority for the game. After every accepted
    move the physical board must show the mover's pieces where the rules
    engine has them before the other player is asked to move.

    Only the color that moved is compared: the opponent's pieces are not
    affected by the move, so a disturbed opponent piece goes unnoticed here.
    """

    def __init__(self, board, config: Optional[GameConfig] = None, rules: Optional[RulesEngine] = None):
        """
        Args:
            board: The PhysicalBoard to play on.
            config: Loop timing; GameConfig() defaults if None.
            rules: Rules engine adapter; a fresh one if None.
        """
        self._board = board
        self._config = config or GameConfig()
        self._rules = rules or RulesEngine()
        self.events = EventBus("game")
        self._players: Dict[str, object] = {}
        self._init_player: Optional[PlayerFactory] = None
        self._pending_state = PendingState.NONE
        self._interrupt = InterruptSignal()
        self._game_id = 0
        self._start_fen = ""
        self._play_task: Optional[asyncio.Task] = None

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def board(self):
        return self._board

    @property
    def rules(self) -> RulesEngine:
        return self._rules

    @property
    def config(self) -> GameConfig:
        return self._config

    @property
    def game_id(self) -> int:
        return self._game_id

    @property
    def pending_state(self) -> PendingState:
        return self._pending_state

    @property
    def start_fen(self) -> str:
        """Placement field of the position the game started from."""
        return self._start_fen

    @property
    def play_task(self) -> Optional[asyncio.Task]:
        return self._play_task

    @property
    def turn_color(self) -> str:
        return self._rules.turn_color()

    def get_player(self, color: str):
        return self._players.get(color)

    def get_board_raw(self) -> str:
        return self._board.to_string()

    def get_game_raw(self) -> str:
        return self._rules.raw()

    def fen(self) -> str:
        return self._rules.fen()

    # -------------------------------------------------------------------------
    # New game
    # -------------------------------------------------------------------------

    async def new_game(self, init_player: PlayerFactory, init_fen: Optional[str] = None,
                       moves: Union[str, Iterable[str], None] = None) -> Optional[asyncio.Task]:
        """Set up a game and start its turn loop.

        Args:
            init_player: Called as init_player(color, game) for black, then
                white, once the board shows the start position.
            init_fen: Start position; the configured start FEN if None.
            moves: Moves to replay from init_fen, as a list or a space
                separated string. "undo_N" takes back N half-moves.

        Returns:
            The turn loop task, or None if setup was interrupted.
        """
        self._game_id += 1
        self._stop_previous_game()
        self._init_player = init_player
        init_fen = init_fen or self._config.start_fen

        self._board.reset()
        self._rules.reset()
        self._rules.load(init_fen)
        self._replay(moves)

        start_raw = self._rules.raw()
        self._start_fen = raw_to_fen(start_raw)
        log.info(f"[ChessGame] new game {self._game_id} from {self._rules.fen()}")
        self.clear_interrupt()

        if not await self.wait_for_board_ready(start_raw, READY_REASON_NEW_GAME):
            log.info("[ChessGame] new game setup interrupted")
            return None
        return await self._ready_for_new_game()

    def _replay(self, moves: Union[str, Iterable[str], None]) -> None:
        if not moves:
            return
        if isinstance(moves, str):
            moves = moves.split()
        for m in moves:
            if m.startswith(UNDO_DIRECTIVE):
                count = int(m.split("_")[1])
                for _ in range(count):
                    self._rules.undo()
            elif self._rules.move(m) is None:
                raise ValueError(f"Illegal move in replay: {m} at {self._rules.fen()}")

    def _stop_previous_game(self) -> None:
        for player in self._players.values():
            player.reset()
            player.detach()
        self._players = {}
        if self._play_task is not None and not self._play_task.done():
            self._play_task.cancel()
        self._play_task = None

    async def _ready_for_new_game(self) -> asyncio.Task:
        self._board.reset()
        black = await self._make_player(BLACK)
        white = await self._make_player(WHITE)
        self._players = {BLACK: black, WHITE: white}
        self._play_task = asyncio.ensure_future(self.play())
        self.events.emit(EVENT_NEW_GAME_READY, NewGameReady(self._game_id, self._start_fen))
        return self._play_task

    async def _make_player(self, color: str):
        player = self._init_player(color, self)
        if inspect.isawaitable(player):
            player = await player
        return player

    # -------------------------------------------------------------------------
    # Board waits
    # -------------------------------------------------------------------------

    async def wait_for_board_ready(self, want_raw: str, reason: str) -> bool:
        """Wait until the whole physical layout equals ``want_raw``.

        Returns:
            True once the board matches, False if interrupted first.
        """
        loop = asyncio.get_running_loop()
        waiting = loop.create_future()
        want_ascii = "\n".join(raw_to_ascii(want_raw))

        def wait_ready(_payload=None) -> None:
            if waiting.done():
                return
            if self.check_interrupt():
                waiting.set_result(False)
                return

            board_raw = self._board.to_string()
            if board_raw == want_raw:
                log.info("[ChessGame] board ready")
                self._pending_state = PendingState.NONE
                self.events.emit(EVENT_BOARD_READY, BoardReady(board_raw))
                waiting.set_result(True)
            else:
                self.events.emit(EVENT_WAITING_FOR_BOARD_READY, WaitingForBoardReady(board_raw, want_raw, reason))
                log.info(f"[ChessGame] waiting board ready for {reason} {board_raw} {want_raw}")
                board_ascii = "\n".join(raw_to_ascii(board_raw))
                log.debug("\n" + make_visual_move_ascii(board_ascii, want_ascii))

        wait_ready()
        if waiting.done():
            return waiting.result()

        self._pending_state = PendingState.WAIT_BOARD_READY
        with self._board.events.subscribed(EVENT_BOARD_CHANGED, wait_ready):
            return await waiting

    def expected_layout(self, color: str) -> str:
        """The mover's pieces as the rules engine has them, nothing else."""
        return filter_by_color(self._rules.raw(), color)

    def is_board_in_sync(self, color: str, move: MoveRecord) -> bool:
        """Agreement test for a move: the mover's pieces match, and a pawn
        captured en passant is gone from the board."""
        return (self._board.string_by_color(color) == self.expected_layout(color)
                and (move.ep_index is None or is_empty(self._board.piece_by_index(move.ep_index))))

    async def sync_board(self, color: str, move: MoveRecord, before_board: str, before_raw: str) -> SyncResult:
        """Wait for the physical board to show ``move``.

        Args:
            color: The color that moved.
            move: The accepted move.
            before_board: Diagram of the position before the move.
            before_raw: Layout of the position before the move.
        """
        log.info(f"[ChessGame] fen {self._rules.fen()}")
        raw = self.expected_layout(color)

        def commit_board() -> None:
            self._board.commit(color, raw, [move.ep_index])

        if self.is_board_in_sync(color, move):
            commit_board()
            return SyncResult.SYNCED

        loop = asyncio.get_running_loop()
        waiting = loop.create_future()
        extra_delay = self._config.castle_extra_delay if move.is_castle else 0.0
        stall_delay = self._config.sync_stall_delay + extra_delay
        not_sync_notifier: Optional[asyncio.TimerHandle] = None
        visual_move = ""
        count = 0

        def show_visual_move() -> None:
            nonlocal visual_move, count
            player = self._players.get(color)
            log.info(f"[ChessGame] {player.name if player else color} moved {move.san} "
                     f"{move.from_square} -> {move.to_square}, waiting for correct board update {count}")
            count += 1
            if not visual_move:
                visual_move = make_visual_move_ascii(before_board, self._rules.ascii())
            log.debug("\n" + visual_move)

        def notify_not_sync() -> None:
            board2 = self._board.to_string()
            if board2 != before_raw:
                log.info(f"[ChessGame] board change not sync - extra delay {extra_delay}")
                show_visual_move()
                self.events.emit(EVENT_BOARD_NOT_SYNC_CHANGE, BoardNotSyncChange(board2, before_raw))

        def check_sync(_payload=None) -> None:
            nonlocal not_sync_notifier
            if waiting.done():
                return
            if self.check_interrupt():
                log.info("[ChessGame] wait board sync interrupted")
                waiting.set_result(SyncResult.INTERRUPTED)
                return

            if self.is_board_in_sync(color, move):
                self._pending_state = PendingState.NONE
                commit_board()
                self.events.emit(EVENT_BOARD_SYNCED, BoardSynced(move))
                waiting.set_result(SyncResult.SYNCED)
            else:
                if not_sync_notifier is not None:
                    not_sync_notifier.cancel()
                not_sync_notifier = loop.call_later(stall_delay, notify_not_sync)

        self.events.emit(EVENT_WAITING_BOARD_SYNC, WaitingBoardSync(move, before_raw))
        self._pending_state = PendingState.WAIT_BOARD_SYNC
        show_visual_move()
        try:
            with self._board.events.subscribed(EVENT_BOARD_CHANGED, check_sync):
                return await waiting
        finally:
            if not_sync_notifier is not None:
                not_sync_notifier.cancel()

    # -------------------------------------------------------------------------
    # Turns
    # -------------------------------------------------------------------------

    def move(self, m: Union[MoveInput, PhysicalMove, chess.Move, str]) -> Tuple[Optional[MoveRecord], MoveInput]:
        """Apply a move to the rules engine.

        Returns:
            (record, move): record is None when the move is illegal.
        """
        chess_move = MoveInput.parse(m)
        return self._rules.move(chess_move), chess_move

    async def wait_player_turn(self, color: str) -> Union[MoveRecord, InterruptKind]:
        """Ask ``color`` for moves until one is legal or an interrupt arrives."""
        player = self._players[color]
        try_again = False
        while True:
            log.info(f"[ChessGame] {color}'s turn")
            act = await player.your_turn(try_again)

            interrupt = self.check_interrupt()
            if interrupt:
                return interrupt
            if act.interrupted:
                return act.move

            legal, move = self.move(act.move)
            if legal is not None:
                break

            log.warning(f"[ChessGame] {player.name} made an illegal move, try again please. {move}")
            self.events.emit(EVENT_ILLEGAL_MOVE, IllegalMove(player, color, move))
            try_again = True

        log.debug("\n" + self._rules.ascii())

        if legal.is_en_passant:
            # The captured pawn sits behind the destination square
            ep_index = square_index(legal.to_square) + (EP_OFFSET if color == WHITE else -EP_OFFSET)
            legal = legal.with_en_passant(ep_index, square_name(ep_index))

        return legal

    def check_end_game(self) -> Optional[GameResult]:
        if self._rules.is_draw():
            return GameResult("draw")
        if self._rules.is_stalemate():
            return GameResult("stalemate")
        if self._rules.is_threefold_repetition():
            return GameResult("threefold repetition")
        if self._rules.is_checkmate():
            return GameResult("checkmate", winner=other_color(self.turn_color))
        return None

    async def play(self) -> Optional[GameResult]:
        """The turn loop. Returns the result, or None if the game was abandoned."""
        game_id = self._game_id
        while game_id == self._game_id:
            interrupt = self.check_interrupt()
            if interrupt is InterruptKind.TAKE_BACK:
                self.clear_interrupt()
                await self.wait_for_take_back()
                continue
            if interrupt is InterruptKind.RESET:
                self.clear_interrupt()
                log.info("[ChessGame] reset")
                return None

            color = self.turn_color
            player = self._players[color]
            before_board = self._rules.ascii()
            before_raw = self._rules.raw()

            self._pending_state = PendingState.wait_player(color)
            act = await self.wait_player_turn(color)
            self._pending_state = PendingState.NONE

            if isinstance(act, InterruptKind) or self.check_interrupt():
                continue

            synced = await self.sync_board(color, act, before_board, before_raw)
            if synced is SyncResult.INTERRUPTED:
                log.info("[ChessGame] handle move sync board interrupted")
                self.events.emit(EVENT_PLAYER_MOVED, PlayerMoved(player, act, interrupted=True))
                continue

            self.events.emit(EVENT_PLAYER_MOVED, PlayerMoved(player, act))

            result = self.check_end_game()
            if result is not None:
                log.info(f"[ChessGame] game over: {result.result} winner {result.winner}")
                self.events.emit(EVENT_GAME_OVER, GameOver(result.result, result.winner))
                return result

        log.debug(f"[ChessGame] game {game_id} replaced, loop stopped")
        return None

    # -------------------------------------------------------------------------
    # Take-back
    # -------------------------------------------------------------------------

    async def wait_for_take_back(self) -> None:
        """Undo the last move of each player and wait for the board to follow."""
        log.info("[ChessGame] waiting for takeback")
        moves: List[MoveRecord] = [m for m in (self._rules.undo(), self._rules.undo()) if m]

        if moves:
            for m in moves:
                player = self._players.get(m.color)
                if player is not None:
                    player.take_back()

            after_board = self._rules.ascii()
            self.events.emit(EVENT_TAKE_BACK, TakeBack(moves))

            def show_takeback_positions(payload) -> None:
                if payload.reason != READY_REASON_TAKE_BACK:
                    return
                visual_move = make_visual_move_ascii(self._board.ascii(), after_board.split("\n"))
                log.info("[ChessGame] waiting for takeback")
                log.debug("\n" + visual_move)

            with self.events.subscribed(EVENT_WAITING_FOR_BOARD_READY, show_takeback_positions):
                ready = await self.wait_for_board_ready(self._rules.raw(), READY_REASON_TAKE_BACK)
            if not ready:
                return

        self._board.reset_to(self._rules.raw())
        for player in self._players.values():
            player.resume()

    def check_takeback(self, color: str, move: PhysicalMove) -> None:
        """Treat a physical move that reverses ``color``'s last move as a take-back request."""
        last = self._rules.last_move()
        if last is None:
            return
        log.debug(f"[ChessGame] check take back move {move} last {last.uci}")
        from_square = square_name(move.from_index)
        to_square = square_name(move.to_index)
        if last.from_square == to_square and last.to_square == from_square and last.color == color:
            log.info(f"[ChessGame] trying to takeback move {last}")
            self.take_back()

    def take_back(self) -> Optional[asyncio.Future]:
        """Request a take-back.

        Dropped while waiting for the board to be ready (game setup and the
        take-back's own wait): the request is not queued.
        """
        if self._pending_state is PendingState.WAIT_BOARD_READY:
            log.warning("[ChessGame] take back ignored while waiting for board ready")
            return None
        return asyncio.ensure_future(self.interrupt(InterruptKind.TAKE_BACK, True))

    # -------------------------------------------------------------------------
    # Interrupts
    # -------------------------------------------------------------------------

    def interrupt_players(self, kind: InterruptKind, pause: bool) -> None:
        for player in self._players.values():
            if pause:
                player.pause()
            player.interrupt(kind)

    def clear_interrupt(self) -> None:
        log.debug("[ChessGame] clear interrupt")
        self._interrupt.clear()

    def check_interrupt(self) -> Optional[InterruptKind]:
        """Report the pending interrupt, if any.

        The first call that sees an interrupt also schedules the release of
        whoever raised it.
        """
        if self._interrupt.armed and not self._interrupt.delivered:
            self._pending_state = PendingState.NONE
        return self._interrupt.deliver()

    async def interrupt(self, kind: InterruptKind = InterruptKind.RESET, pause: bool = False) -> None:
        """Interrupt whatever the game is waiting on and wait until it has unwound."""
        if self._interrupt.armed:
            log.warning(f"[ChessGame] interrupt {kind.value} rejected, {self._interrupt.kind.value} pending")
            return
        done = self._interrupt.arm(kind, pause)

        if self._pending_state is PendingState.NONE:
            asyncio.get_running_loop().call_soon(self.check_interrupt)

        # Get out of any pending wait
        self.interrupt_players(kind, pause)
        self._board.emit_changed()

        await done

    async def reset(self) -> None:
        await self.interrupt(InterruptKind.RESET)
