import pytest

from gridplay.game import (
    Char,
    Game,
    MoveError,
    Pos,
    WinKind,
    create_empty_board,
    opponent_char,
    random_char,
    winner_at,
)
from gridplay.invariants import InvariantError, set_writer


@pytest.fixture(autouse=True)
def quiet_reports(tmp_path):
    with open(tmp_path / "assert.txt", "w") as report:
        set_writer(report)
        yield
        set_writer(None)


def test_game_end():
    game = Game()
    for pos in [Pos(0, 0), Pos(1, 0), Pos(1, 1), Pos(2, 1), Pos(2, 2)]:
        game.move(pos)

    state = game.win_state()
    assert state.kind == WinKind.WIN
    assert state.player.id == 0
    assert state.player.char == int(game.player_with_id(0).char)

    with pytest.raises(MoveError):
        game.move(Pos(1, 2))


def test_game_draw():
    game = Game()
    moves = [
        Pos(0, 0), Pos(2, 0), Pos(1, 0), Pos(0, 1), Pos(2, 1),
        Pos(1, 1), Pos(0, 2), Pos(1, 2), Pos(2, 2),
    ]
    for pos in moves:
        game.move(pos)

    assert game.win_state().kind == WinKind.DRAW
    assert game.win_state().player is None
    with pytest.raises(MoveError):
        game.move(Pos(1, 2))


@pytest.mark.parametrize("i", range(3))
def test_win_checker_horizontal(i):
    board = create_empty_board()
    board[0][i] = Char.X
    board[1][i] = Char.X
    board[2][i] = Char.X
    assert winner_at(board, Pos(2, i)) == Char.X


@pytest.mark.parametrize("i", range(3))
def test_win_checker_vertical(i):
    board = create_empty_board()
    board[i][0] = Char.X
    board[i][1] = Char.X
    board[i][2] = Char.X
    assert winner_at(board, Pos(i, 2)) == Char.X


def test_win_checker_diagonal():
    board = create_empty_board()
    board[0][0] = Char.X
    board[1][1] = Char.X
    board[2][2] = Char.X
    assert winner_at(board, Pos(2, 2)) == Char.X


def test_win_checker_anti_diagonal():
    board = create_empty_board()
    board[0][2] = Char.X
    board[1][1] = Char.X
    board[2][0] = Char.X
    assert winner_at(board, Pos(2, 0)) == Char.X


def test_win_checker_empty_board():
    assert winner_at(create_empty_board(), Pos(1, 1)) == Char.E


def test_opponent_char():
    assert opponent_char(Char.X) == Char.O
    assert opponent_char(Char.O) == Char.X


def test_opponent_of_empty_fails():
    with pytest.raises(InvariantError):
        opponent_char(Char.E)


def test_char_to_rune():
    assert Char.E.rune() == " "
    assert Char.X.rune() == "x"
    assert Char.O.rune() == "o"


def test_random_char():
    for _ in range(16):
        value = random_char()
        assert Char.E < value <= Char.O


def test_players_have_opposite_chars():
    game = Game()
    first = game.player_with_id(0)
    second = game.player_with_id(1)
    assert second.char == opponent_char(first.char)
    assert (first.id, second.id) == (0, 1)


def test_first_char_can_be_chosen():
    game = Game(first_char=Char.O)
    assert game.player_with_id(0).char == Char.O
    assert game.player_with_id(1).char == Char.X


def test_turns_alternate():
    game = Game()
    assert game.current_round_player().id == 0
    game.move(Pos(0, 0))
    assert game.current_round_player().id == 1
    game.move(Pos(1, 1))
    assert game.current_round_player().id == 0


def test_occupied_cell_is_rejected():
    game = Game()
    game.move(Pos(0, 0))
    with pytest.raises(MoveError, match="cell is not empty"):
        game.move(Pos(0, 0))
    assert game.current_round_player().id == 1
    assert game.win_state().kind == WinKind.NONE


@pytest.mark.parametrize("pos", [Pos(-1, 0), Pos(0, 3), Pos(3, 3)])
def test_out_of_range_move_fails(pos):
    game = Game()
    with pytest.raises(InvariantError):
        game.move(pos)


def test_bad_player_id_fails():
    with pytest.raises(InvariantError):
        Game().player_with_id(2)