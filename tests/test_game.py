"""Unit tests for board rules and the GameSession state machine."""

import random

import pytest

from tictactoe.errors import ConflictError, NotFoundError, ValidationError
from tictactoe.game import (
    EMPTY,
    WINNING_LINES,
    GameSession,
    GameStatus,
    check_winner,
    empty_cells,
    validate_display_name,
)


def _two_player_game():
    session = GameSession(session_id="g1")
    session.join("alice", "Alice")
    session.join("bob", "Bob")
    return session


def _play(session, moves):
    ids = {"X": "alice", "O": "bob"}
    for position in moves:
        session.move(ids[session.current_turn], position)


def test_check_winner_detects_every_line():
    for line in WINNING_LINES:
        cells = [EMPTY] * 9
        for i in line:
            cells[i] = "O"
        assert check_winner(cells) == ("O", line)


def test_check_winner_ignores_empty_and_mixed_lines():
    assert check_winner([EMPTY] * 9) is None
    assert check_winner(list("XOXXOOOXX")) is None


@pytest.mark.parametrize("name", ["Al", "Alice Smith", "x_y-z", "123456789012345"])
def test_valid_names(name):
    assert validate_display_name(f"  {name} ") == name


@pytest.mark.parametrize("name", ["", "A", "a" * 16, "Bob!", "<script>", None])
def test_invalid_names(name):
    with pytest.raises(ValidationError) as exc:
        validate_display_name(name)
    assert exc.value.code == "invalid_name"


def test_join_assigns_x_then_o_and_starts_game():
    session = GameSession(session_id="g1")
    first = session.join("alice", "Alice")
    assert first.symbol == "X"
    assert session.status is GameStatus.WAITING

    second = session.join("bob", "Bob")
    assert second.symbol == "O"
    assert session.status is GameStatus.PLAYING


def test_third_player_is_rejected():
    session = _two_player_game()
    with pytest.raises(ValidationError) as exc:
        session.join("carol", "Carol")
    assert exc.value.code == "full"


def test_move_errors_leave_board_untouched():
    session = GameSession(session_id="g1")
    session.join("alice", "Alice")
    with pytest.raises(ConflictError) as exc:
        session.move("alice", 0)
    assert exc.value.code == "not_playing"

    session.join("bob", "Bob")
    session.move("alice", 4)
    before = list(session.cells)

    cases = [
        ("bob", 9, ValidationError, "out_of_range"),
        ("bob", -1, ValidationError, "out_of_range"),
        ("bob", 4, ConflictError, "occupied"),
        ("mallory", 0, NotFoundError, "unknown_player"),
        ("alice", 0, ConflictError, "wrong_turn"),
    ]
    for player_id, position, error, code in cases:
        with pytest.raises(error) as exc:
            session.move(player_id, position)
        assert exc.value.code == code
        assert session.cells == before
        assert session.current_turn == "O"


def test_row_win_sets_winner_and_line():
    session = _two_player_game()
    _play(session, [0, 3, 1, 4, 2])
    assert session.status is GameStatus.WON
    assert session.winner == "X"
    assert session.winning_line == (0, 1, 2)


def test_win_on_last_cell_is_not_a_draw():
    session = _two_player_game()
    _play(session, [0, 1, 2, 3, 4, 5, 7, 6, 8])
    assert not empty_cells(session.cells)
    assert session.status is GameStatus.WON
    assert session.winner == "X"
    assert session.winning_line == (0, 4, 8)


def test_full_board_without_line_is_draw():
    session = _two_player_game()
    _play(session, [0, 1, 2, 4, 3, 5, 7, 6, 8])
    assert session.status is GameStatus.DRAW
    assert session.winner is None
    assert session.winning_line is None


def test_no_moves_after_game_end():
    session = _two_player_game()
    _play(session, [0, 3, 1, 4, 2])
    with pytest.raises(ConflictError) as exc:
        session.move("bob", 5)
    assert exc.value.code == "not_playing"


def test_random_games_alternate_turns_and_never_have_two_winners():
    rng = random.Random(1234)
    for _ in range(200):
        session = _two_player_game()
        written = []
        while session.status is GameStatus.PLAYING:
            position = rng.choice(empty_cells(session.cells))
            symbol = session.current_turn
            _play(session, [position])
            written.append(session.cells[position])
            assert session.cells[position] == symbol
        assert written == ["XO"[i % 2] for i in range(len(written))]
        x_count = session.cells.count("X")
        o_count = session.cells.count("O")
        assert x_count in (o_count, o_count + 1)

        winners = {
            session.cells[a]
            for a, b, c in WINNING_LINES
            if session.cells[a] != EMPTY
            and session.cells[a] == session.cells[b] == session.cells[c]
        }
        assert len(winners) <= 1


def test_leave_pauses_and_rejoin_resumes_with_free_symbol():
    session = _two_player_game()
    session.move("alice", 0)
    assert session.leave("alice") is True
    assert session.status is GameStatus.PAUSED
    assert session.pause_cause == "alice"
    assert session.players["bob"].symbol == "O"

    seat = session.join("carol", "Carol")
    assert seat.symbol == "X"
    assert session.status is GameStatus.PLAYING
    assert session.pause_cause is None
    assert session.players["bob"].symbol == "O"
    assert session.cells[0] == "X"
    assert session.current_turn == "O"


def test_leave_unknown_player_is_noop():
    session = _two_player_game()
    assert session.leave("nobody") is False
    assert session.status is GameStatus.PLAYING


def test_rematch_rejected_while_playing():
    session = _two_player_game()
    with pytest.raises(ConflictError) as exc:
        session.request_rematch("alice")
    assert exc.value.code == "in_progress"


def test_rematch_requires_both_votes_then_resets():
    session = _two_player_game()
    _play(session, [0, 3, 1, 4, 2])

    assert session.request_rematch("alice") == (False, 1)
    assert session.snapshot("alice").your_rematch_vote is True
    assert session.status is GameStatus.WON

    assert session.request_rematch("bob") == (True, 0)
    assert session.cells == [EMPTY] * 9
    assert session.status is GameStatus.PLAYING
    assert session.current_turn == "X"
    assert session.winner is None
    assert session.winning_line is None
    assert session.rematch_votes == set()


def test_rematch_with_one_seat_left_returns_to_waiting():
    session = _two_player_game()
    _play(session, [0, 3, 1, 4, 2])
    session.leave("bob")
    assert session.status is GameStatus.WON

    assert session.request_rematch("alice") == (True, 0)
    assert session.status is GameStatus.WAITING


def test_rematch_with_synthetic_seat_needs_only_human_vote():
    session = GameSession(session_id="g1", difficulty="easy")
    session.seat_player("ai", "AI (easy)", is_synthetic=True, symbol="O")
    session.join("alice", "Alice")
    assert session.status is GameStatus.PLAYING
    session.cells = list("XX OO    ")
    session.move("alice", 2)
    assert session.status is GameStatus.WON

    assert session.request_rematch("alice") == (True, 0)
    assert session.status is GameStatus.PLAYING


def test_snapshot_is_stable_and_scoped():
    session = _two_player_game()
    session.move("alice", 4)

    assert session.snapshot() == session.snapshot()
    plain = session.snapshot()
    assert plain.your_symbol is None
    assert plain.board[4] == "X"
    assert plain.board[0] is None
    assert [p.name for p in plain.players] == ["Alice", "Bob"]

    bob = session.snapshot("bob")
    assert bob.your_symbol == "O"
    assert bob.your_turn is True
    assert bob.your_rematch_vote is False
    assert session.snapshot("alice").your_turn is False

    with pytest.raises(NotFoundError):
        session.snapshot("mallory")


def test_needs_ai_move_only_on_synthetic_turn():
    session = GameSession(session_id="g1", difficulty="hard")
    session.seat_player("ai", "AI (hard)", is_synthetic=True, symbol="O")
    session.join("alice", "Alice")
    assert session.needs_ai_move() is False
    session.move("alice", 0)
    assert session.needs_ai_move() is True


@pytest.mark.parametrize("position", [True, False, 4.0, "4"])
def test_non_integer_positions_are_out_of_range(position):
    session = _two_player_game()
    with pytest.raises(ValidationError) as exc:
        session.move("alice", position)
    assert exc.value.code == "out_of_range"
    assert session.cells == [EMPTY] * 9
