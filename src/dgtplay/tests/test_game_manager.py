# Game Manager Tests
#
# This file is part of the dgtplay project
#
# Tests for ChessGame driven end to end through a SimulatedBoard:
# - new game setup and the board-ready wait
# - turn handling, illegal moves and game end
# - board synchronization after each move (normal, en passant, castling)
# - interrupts while waiting on players or on the board
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

import asyncio
from unittest.mock import patch

import pytest

from dgtplay.board.board import SimulatedBoard
from dgtplay.board.layout import DEFAULT_RAW, fen_to_raw
from dgtplay.managers.events import (
    EVENT_BOARD_NOT_SYNC_CHANGE,
    EVENT_BOARD_READY,
    EVENT_BOARD_SYNCED,
    EVENT_GAME_OVER,
    EVENT_ILLEGAL_MOVE,
    EVENT_NEW_GAME_READY,
    EVENT_PLAYER_MOVED,
    EVENT_WAITING_BOARD_SYNC,
    EVENT_WAITING_FOR_BOARD_READY,
    EVENT_WHITE_MOVE,
    READY_REASON_NEW_GAME,
)
from dgtplay.managers.game import (
    ChessGame,
    GameConfig,
    GameResult,
    InterruptKind,
    MoveInput,
    PendingState,
    RulesEngine,
)
from dgtplay.players import EnginePlayer, HumanPlayer
from dgtplay.tests.helpers import (
    GAME_EVENTS,
    EventRecorder,
    FakeAgent,
    make_players,
    play_physical,
    settle,
    stop_task,
)

EP_FEN = "rnbqkbnr/ppp1p1pp/8/3pPp2/8/8/PPPP1PPP/RNBQKBNR w KQkq f6 0 3"
CASTLE_FEN = "r3k2r/pppppppp/8/8/8/8/PPPPPPPP/R3K2R w KQkq - 0 1"


@pytest.fixture
def board():
    return SimulatedBoard()


@pytest.fixture
def game(board):
    return ChessGame(board, GameConfig(sync_stall_delay=0.02, castle_extra_delay=0.5))


@pytest.fixture
def rec(game):
    return EventRecorder(game.events, *GAME_EVENTS)


class TestNewGame:
    """Game setup."""

    async def test_start_position_is_ready_at_once(self, game, rec):
        """Expected: board-ready, new-game-ready, then white is asked."""
        task = await game.new_game(make_players())
        await settle()

        assert task is game.play_task
        assert rec.order[:2] == [EVENT_BOARD_READY, EVENT_NEW_GAME_READY]
        ready = rec.last(EVENT_NEW_GAME_READY)
        assert ready.game_id == 1
        assert ready.start_fen == "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR"
        assert isinstance(game.get_player("white"), HumanPlayer)
        assert game.pending_state is PendingState.WAIT_PLAYER_WHITE

        await stop_task(task)

    async def test_waits_for_the_board(self, game, board, rec):
        """A piece missing from the board holds the game back.

        Expected: waiting-for-board-ready with reason new-game until the
        piece is put back, and no players before that.
        """
        board.remove_piece("a2")
        setup = asyncio.ensure_future(game.new_game(make_players()))

        waiting = await rec.wait_for(EVENT_WAITING_FOR_BOARD_READY)
        assert waiting.reason == READY_REASON_NEW_GAME
        assert waiting.want_raw == DEFAULT_RAW
        assert game.pending_state is PendingState.WAIT_BOARD_READY
        assert game.get_player("white") is None

        board.place_piece("a2", "P")
        task = await asyncio.wait_for(setup, 1)

        assert task is not None
        assert rec.count(EVENT_NEW_GAME_READY) == 1
        await stop_task(task)

    async def test_seed_moves_with_undo(self, game, board):
        """Expected: "e2e4 e7e5 undo_1 d7d5" equals playing e4 d5."""
        expected = RulesEngine()
        expected.move("e2e4")
        expected.move("d7d5")
        board.set_layout(expected.raw())

        task = await game.new_game(make_players(), moves="e2e4 e7e5 undo_1 d7d5")

        assert task is not None
        assert game.fen() == expected.fen()
        assert game.turn_color == "white"
        await stop_task(task)

    async def test_illegal_seed_move_raises(self, game):
        with pytest.raises(ValueError):
            await game.new_game(make_players(), moves=["e2e5"])

    async def test_custom_start_position(self, game, board):
        board.set_layout(fen_to_raw(EP_FEN))
        task = await game.new_game(make_players(), EP_FEN)

        assert game.fen() == EP_FEN
        assert game.start_fen == EP_FEN.split()[0]
        await stop_task(task)

    async def test_async_player_factory(self, game):
        async def init_player(color, g):
            await asyncio.sleep(0)
            return HumanPlayer(color, g)

        task = await game.new_game(init_player)

        assert isinstance(game.get_player("black"), HumanPlayer)
        await stop_task(task)

    async def test_reset_during_setup_returns_none(self, game, board, rec):
        board.remove_piece("a2")
        setup = asyncio.ensure_future(game.new_game(make_players()))
        await rec.wait_for(EVENT_WAITING_FOR_BOARD_READY)

        await asyncio.wait_for(game.reset(), 1)

        assert await asyncio.wait_for(setup, 1) is None
        assert rec.count(EVENT_NEW_GAME_READY) == 0

    async def test_new_game_replaces_running_game(self, game, board):
        """Expected: the old loop is cancelled and its players stop listening."""
        first = await game.new_game(make_players())
        await settle()

        second = await game.new_game(make_players())
        await settle()

        assert first.cancelled()
        assert game.game_id == 2
        assert board.events.listener_count(EVENT_WHITE_MOVE) == 1
        await stop_task(second)


class TestBoardSync:
    """The board has to follow every accepted move."""

    async def test_engine_move_waits_for_the_board(self, game, board, rec):
        """Engine e2e4 is only done once the pawn stands on e4.

        Expected: waiting-board-sync, nothing else until the piece moves,
        then board-synced, player-moved and black's turn.
        """
        task = await game.new_game(make_players(white=[FakeAgent(moves=["e2e4"])]))

        waiting = await rec.wait_for(EVENT_WAITING_BOARD_SYNC)
        assert waiting.move.uci == "e2e4"
        assert waiting.before_raw == DEFAULT_RAW
        assert game.pending_state is PendingState.WAIT_BOARD_SYNC
        await settle()
        assert rec.count(EVENT_BOARD_SYNCED) == 0
        assert rec.count(EVENT_PLAYER_MOVED) == 0

        board.move_piece("e2", "e4")
        synced = await rec.wait_for(EVENT_BOARD_SYNCED)
        moved = await rec.wait_for(EVENT_PLAYER_MOVED)
        await settle()

        assert synced.move.uci == "e2e4"
        assert isinstance(moved.player, EnginePlayer)
        assert not moved.interrupted
        assert game.turn_color == "black"
        assert game.pending_state is PendingState.WAIT_PLAYER_BLACK
        assert board.committed == board.to_string()
        await stop_task(task)

    async def test_human_move_is_already_in_sync(self, game, board, rec):
        task = await game.new_game(make_players())
        await settle()

        await play_physical(board, rec, [("e2", "e4")])

        assert rec.count(EVENT_WAITING_BOARD_SYNC) == 0
        assert rec.count(EVENT_BOARD_SYNCED) == 0
        assert game.is_board_in_sync("white", rec.last(EVENT_PLAYER_MOVED).move)
        await stop_task(task)

    async def test_synced_move_is_in_sync_afterwards(self, game, board, rec):
        task = await game.new_game(make_players(black=[FakeAgent(moves=["g8f6"])]))
        await settle()
        board.move_piece("e2", "e4")
        await rec.wait_for(EVENT_WAITING_BOARD_SYNC)

        board.move_piece("g8", "f6")
        synced = await rec.wait_for(EVENT_BOARD_SYNCED)

        assert game.is_board_in_sync("black", synced.move)
        await stop_task(task)

    async def test_en_passant_needs_the_captured_pawn_removed(self, game, board, rec):
        """exf6 e.p. leaves the f5 pawn on the board.

        Expected: the white pieces already match but the game waits until
        f5 is cleared.
        """
        board.set_layout(fen_to_raw(EP_FEN))
        task = await game.new_game(make_players(), EP_FEN)
        await settle()

        board.move_piece("e5", "f6")
        waiting = await rec.wait_for(EVENT_WAITING_BOARD_SYNC)
        assert waiting.move.is_en_passant
        assert waiting.move.ep_square == "f5"
        await settle()
        assert rec.count(EVENT_BOARD_SYNCED) == 0

        board.remove_piece("f5")
        synced = await rec.wait_for(EVENT_BOARD_SYNCED)
        await rec.wait_for(EVENT_PLAYER_MOVED)
        await settle()

        assert game.is_board_in_sync("white", synced.move)
        assert board.committed[synced.move.ep_index] == "."
        assert game.pending_state is PendingState.WAIT_PLAYER_BLACK
        await stop_task(task)

    async def test_castling_syncs_after_both_pieces(self, game, board, rec):
        """Expected: the king alone is not enough; the rook completes it."""
        board.set_layout(fen_to_raw(CASTLE_FEN))
        task = await game.new_game(make_players(white=[FakeAgent(moves=["e1g1"])]), CASTLE_FEN)

        waiting = await rec.wait_for(EVENT_WAITING_BOARD_SYNC)
        assert waiting.move.is_castle

        board.move_piece("e1", "g1")
        await settle()
        assert rec.count(EVENT_BOARD_SYNCED) == 0

        board.move_piece("h1", "f1")
        await rec.wait_for(EVENT_BOARD_SYNCED)

        assert rec.count(EVENT_BOARD_NOT_SYNC_CHANGE) == 0
        await stop_task(task)

    async def test_wrong_move_on_board_is_reported(self, game, board, rec):
        """Playing d2d4 for an engine's e2e4.

        Expected: board-not-sync-change after the stall delay, the wait goes
        on, and putting things right still syncs.
        """
        task = await game.new_game(make_players(white=[FakeAgent(moves=["e2e4"])]))
        await rec.wait_for(EVENT_WAITING_BOARD_SYNC)

        board.move_piece("d2", "d4")
        stalled = await rec.wait_for(EVENT_BOARD_NOT_SYNC_CHANGE, timeout=1)

        assert stalled.before_raw == DEFAULT_RAW
        assert stalled.board == board.to_string()
        assert game.pending_state is PendingState.WAIT_BOARD_SYNC

        board.move_piece("d4", "d2")
        board.move_piece("e2", "e4")
        await rec.wait_for(EVENT_BOARD_SYNCED)
        await asyncio.sleep(0.05)

        assert rec.count(EVENT_BOARD_NOT_SYNC_CHANGE) == 1
        await stop_task(task)


class TestTurns:
    """Turn order, illegal moves and game end."""

    async def test_illegal_move_asks_again(self, game, board, rec):
        task = await game.new_game(make_players())
        await settle()

        board.move_piece("e2", "e5")
        illegal = await rec.wait_for(EVENT_ILLEGAL_MOVE)
        await settle()

        assert illegal.color == "white"
        assert illegal.move == MoveInput("e2", "e5")
        assert game.turn_color == "white"
        assert game.pending_state is PendingState.WAIT_PLAYER_WHITE

        board.move_piece("e5", "e4")
        moved = await rec.wait_for(EVENT_PLAYER_MOVED)

        assert moved.move.uci == "e2e4"
        assert game.turn_color == "black"
        await stop_task(task)

    async def test_players_alternate(self, game, board, rec):
        task = await game.new_game(make_players())
        await settle()

        await play_physical(board, rec, [("e2", "e4"), ("e7", "e5"), ("g1", "f3")])

        colors = [p.move.color for p in rec.records[EVENT_PLAYER_MOVED]]
        assert colors == ["white", "black", "white"]
        assert game.pending_state is PendingState.WAIT_PLAYER_BLACK
        await stop_task(task)

    async def test_checkmate_ends_the_game(self, game, board, rec):
        """Fool's mate.

        Expected: game-over with black as winner, and the loop returns it.
        """
        task = await game.new_game(make_players())
        await settle()

        await play_physical(board, rec, [("f2", "f3"), ("e7", "e5"), ("g2", "g4"), ("d8", "h4")])
        result = await asyncio.wait_for(task, 1)

        assert result == GameResult("checkmate", "black")
        over = rec.last(EVENT_GAME_OVER)
        assert (over.result, over.winner) == ("checkmate", "black")

    def test_check_end_game_on_running_game(self, game):
        assert game.check_end_game() is None

    def test_check_end_game_draw(self, game):
        game.rules.load("8/8/8/4k3/8/8/8/4K3 w - - 0 1")
        assert game.check_end_game() == GameResult("draw")


class TestInterrupts:
    """Reset and interrupt of a running game."""

    async def test_reset_while_waiting_for_player(self, game, rec):
        task = await game.new_game(make_players())
        await settle()

        await asyncio.wait_for(game.reset(), 1)

        assert await asyncio.wait_for(task, 1) is None
        assert game.pending_state is PendingState.NONE

    async def test_reset_during_sync_does_not_commit(self, game, board, rec):
        """Reset while the board has not followed an engine move.

        Expected: the wait ends as interrupted, nothing is committed,
        player-moved carries interrupted=True and black is never asked.
        """
        task = await game.new_game(make_players(white=[FakeAgent(moves=["e2e4"])]))
        await rec.wait_for(EVENT_WAITING_BOARD_SYNC)

        with patch.object(board, "commit", wraps=board.commit) as commit:
            await asyncio.wait_for(game.reset(), 1)
            result = await asyncio.wait_for(task, 1)

        assert result is None
        commit.assert_not_called()
        assert rec.count(EVENT_BOARD_SYNCED) == 0
        assert rec.last(EVENT_PLAYER_MOVED).interrupted
        assert game.get_player("black").state.turn_start == 0.0

    async def test_second_interrupt_is_rejected(self, game, rec):
        """Expected: while a take-back is pending a reset is dropped."""
        task = await game.new_game(make_players())
        await settle()

        first = asyncio.ensure_future(game.interrupt(InterruptKind.TAKE_BACK, True))
        second = asyncio.ensure_future(game.interrupt(InterruptKind.RESET))
        await asyncio.wait_for(asyncio.gather(first, second), 1)
        await settle()

        assert not task.done()
        assert game.pending_state is PendingState.WAIT_PLAYER_WHITE
        await stop_task(task)
