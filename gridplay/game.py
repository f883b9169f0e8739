"""Tic-tac-toe rules: board, players, moves and the result of a game."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum, IntEnum

from gridplay import invariants

BOARD_SIZE = 3


class Char(IntEnum):
    """Content of a board cell."""

    E = 0
    X = 1
    O = 2

    def rune(self) -> str:
        """The character shown for this cell content."""
        return _RUNES[self]


_RUNES = {Char.E: " ", Char.X: "x", Char.O: "o"}


def random_char() -> Char:
    """Pick X or O at random."""
    return random.choice((Char.X, Char.O))


def opponent_char(c: Char) -> Char:
    """The mark played by the other player."""
    if c == Char.X:
        return Char.O
    if c == Char.O:
        return Char.X
    if c == Char.E:
        invariants.never("cannot get e opponent")
    invariants.never("unknown char type", "char", c)
    raise AssertionError("unreachable")


@dataclass(frozen=True)
class Player:
    char: Char
    id: int


@dataclass(frozen=True)
class Pos:
    x: int
    y: int


class WinKind(Enum):
    NONE = "none"
    DRAW = "draw"
    WIN = "win"


@dataclass(frozen=True)
class WinPlayer:
    char: int
    id: int


@dataclass(frozen=True)
class WinState:
    """How the game stands; ``player`` is set only for a win."""

    kind: WinKind = WinKind.NONE
    player: WinPlayer | None = None


class MoveError(Exception):
    """A move that the rules do not allow."""


def create_empty_board() -> list[list[Char]]:
    return [[Char.E] * BOARD_SIZE for _ in range(BOARD_SIZE)]


def _same(a: Char, b: Char, c: Char) -> bool:
    return a == b == c


def winner_at(board: list[list[Char]], pos: Pos) -> Char:
    """Winner of a line through ``pos`` or a diagonal, else ``Char.E``."""
    winner = Char.E
    row = board[pos.x]
    if _same(row[0], row[1], row[2]) and row[0] != Char.E:
        winner = row[0]
    column = [board[i][pos.y] for i in range(BOARD_SIZE)]
    if _same(*column) and column[0] != Char.E:
        winner = column[0]
    if _same(board[0][0], board[1][1], board[2][2]) and board[0][0] != Char.E:
        winner = board[0][0]
    if _same(board[2][0], board[1][1], board[0][2]) and board[2][0] != Char.E:
        winner = board[2][0]
    return Char(winner)


def _check_pos(pos: Pos) -> None:
    if not (0 <= pos.x < BOARD_SIZE and 0 <= pos.y < BOARD_SIZE):
        invariants.never("position is out of range", "pos", (pos.x, pos.y))


@dataclass(frozen=True)
class _Move:
    pos: Pos
    player_id: int


class Game:
    """One game between player 0, who moves first, and player 1."""

    def __init__(self, first_char: Char | None = None) -> None:
        char = random_char() if first_char is None else Char(first_char)
        self._players = (Player(char, 0), Player(opponent_char(char), 1))
        self._board = create_empty_board()
        self._win_state = WinState()
        self._history: list[_Move] = []

    def move(self, pos: Pos) -> None:
        """Place the current player's mark at ``pos``."""
        _check_pos(pos)
        if self._win_state.kind != WinKind.NONE:
            raise MoveError("cannot move after game ended")

        player = self.current_round_player()
        if self._board[pos.x][pos.y] != Char.E:
            raise MoveError("cell is not empty")
        self._board[pos.x][pos.y] = player.char
        self._history.append(_Move(pos, player.id))

        if winner_at(self._board, pos) != Char.E:
            self._win_state = WinState(
                WinKind.WIN, WinPlayer(char=int(player.char), id=player.id)
            )
        elif len(self._history) == BOARD_SIZE**2:
            self._win_state = WinState(WinKind.DRAW)

    def win_state(self) -> WinState:
        return self._win_state

    def current_round_player(self) -> Player:
        if not self._history:
            return self._players[0]
        return self._players[1 - self._history[-1].player_id]

    def player_with_id(self, player_id: int) -> Player:
        if player_id not in (0, 1):
            invariants.never("player id must be 0 or 1", "player id", player_id)
        return self._players[player_id]