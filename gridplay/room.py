"""A room: two players sharing one game, driven by events from their connections."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from gridplay import invariants
from gridplay.events import (
    DisconnectEvent,
    Event,
    Handler,
    MoveEvent,
    RemoveRoomEvent,
    SendMessageEvent,
)
from gridplay.game import Game, MoveError, Pos, WinKind, opponent_char
from gridplay.handlers import Player, PlayerConnection, Synchronizer
from gridplay.message import (
    MatchStarted,
    MoveResponse,
    OpponentMove,
    ServerMsgType,
    WinMessage,
    make_message,
)

log = logging.getLogger(__name__)

NOT_YOUR_ROUND = "not your round, dummy"


class Room:
    """Hosts one game; events from its players are held until ``update``."""

    def __init__(
        self,
        next_handler: Handler,
        player_connections: Iterable[PlayerConnection],
        room_id: uuid.UUID,
        game: Game | None = None,
    ) -> None:
        invariants.ensure_not_none(next_handler, "next handler was nil")
        connections = tuple(player_connections)
        invariants.ensure(
            len(connections) == 2, "room needs two player connections", len(connections)
        )
        for player_connection in connections:
            invariants.ensure_not_none(player_connection, "player connection was nil")

        self._next = next_handler
        self.room_id = room_id
        self._active = False
        self._sync = Synchronizer(self)
        self._players: list[Player | None] = [
            self._create_player(player_connection, player_id)
            for player_id, player_connection in enumerate(connections)
        ]
        self._game = game if game is not None else Game()

        self._start_game()
        invariants.ensure(self._active, "gameActive must be true")

    @property
    def game(self) -> Game:
        return self._game

    @property
    def game_active(self) -> bool:
        return self._active

    @property
    def players(self) -> tuple[Player | None, ...]:
        return tuple(self._players)

    def _create_player(self, player_connection: PlayerConnection, player_id: int) -> Player:
        invariants.ensure_not_none(player_connection, "player connection was nil")
        player = Player(self._sync, player_connection.connection_id, player_id)
        player_connection.set_next_handler(player)
        return player

    def _start_game(self) -> None:
        invariants.ensure(not self._active, "game already started")
        for player in self._players:
            self._send_match_started(player)
        self._active = True

    def _send_match_started(self, player: Player | None) -> None:
        invariants.ensure_not_none(player, "player was nil")
        char = self._game.player_with_id(player.player_id).char
        payload = MatchStarted(char=char.rune(), opponent_char=opponent_char(char).rune())
        self._send(player.connection_id, make_message(ServerMsgType.MATCH_STARTED, payload))

    def update(self) -> None:
        """Process every event the players sent since the last update."""
        self._sync.transfer_all()

    def handle(self, event: Event) -> None:
        log.debug("event in room type=%s event=%r", event.type, event)
        if isinstance(event, MoveEvent):
            self._handle_move(event)
        elif isinstance(event, DisconnectEvent):
            self._handle_disconnect(event)
        else:
            self._forward(event)

    def _handle_disconnect(self, event: DisconnectEvent) -> None:
        invariants.ensure_not_none(event.player, "event disconnect player was nil")
        self._forward(event)

        player_id = event.player.player_id
        opponent_id = self.opponent_id(player_id)
        if self._active:
            self._disconnect_first_player(player_id, opponent_id)
        else:
            self._disconnect_last_player(player_id, opponent_id)

    def _disconnect_first_player(self, player_id: int, opponent_id: int) -> None:
        invariants.ensure(self._active, "game should be active")
        opponent = self._players[opponent_id]
        # The opponent is still in the room, since this player left first.
        invariants.ensure_not_none(opponent, "opponent should not be nil")

        if not self._game_has_ended():
            self._send_result(opponent.connection_id, "win")

        self._players[player_id] = None
        self._active = False

    def _disconnect_last_player(self, player_id: int, opponent_id: int) -> None:
        invariants.ensure(not self._active, "game should not be active")
        invariants.ensure(self._players[opponent_id] is None, "opponent should be nil")

        self._players[player_id] = None
        self._forward(RemoveRoomEvent(room_id=self.room_id))

    def _handle_move(self, event: MoveEvent) -> None:
        player = event.player
        invariants.ensure_not_none(player, "event move player was nil")

        try:
            self._move_player(event)
        except MoveError as err:
            log.info(
                "cannot handle move for player uuid=%s game id=%d: %s",
                player.connection_id,
                player.player_id,
                err,
            )
            response = MoveResponse(approved=False, reason=str(err))
            self._send(player.connection_id, make_message(ServerMsgType.MOVE_ANS, response))
            return

        invariants.ensure(self._active, "game should be active")
        self._send(
            player.connection_id,
            make_message(ServerMsgType.MOVE_ANS, MoveResponse(approved=True)),
        )

        opponent = self.opponent(player.player_id)
        self._send(
            opponent.connection_id,
            make_message(ServerMsgType.OPPONENT_MOVE, OpponentMove(x=event.x, y=event.y)),
        )

        self._check_game_end(player)

    def _move_player(self, event: MoveEvent) -> None:
        current = self._game.current_round_player()
        mover = self._game.player_with_id(event.player.player_id)
        if current != mover:
            raise MoveError(NOT_YOUR_ROUND)
        self._game.move(Pos(event.x, event.y))

    def _check_game_end(self, player: Player) -> None:
        invariants.ensure(self._active, "game should be active")
        kind = self._game.win_state().kind
        opponent = self.opponent(player.player_id)

        if kind == WinKind.WIN:
            log.debug("game win room=%s winner=%s", self.room_id, player.connection_id)
            self._send_result(player.connection_id, "win")
            self._send_result(opponent.connection_id, "lose")
        elif kind == WinKind.DRAW:
            log.debug("game draw room=%s", self.room_id)
            self._send_result(player.connection_id, "draw")
            self._send_result(opponent.connection_id, "draw")

    def opponent_id(self, player_id: int) -> int:
        if player_id == 0:
            return 1
        if player_id == 1:
            return 0
        invariants.never("player id was out of range", player_id)
        raise AssertionError("unreachable")

    def opponent(self, player_id: int) -> Player:
        invariants.ensure(self._active, "game should be active")
        opponent = self._players[self.opponent_id(player_id)]
        # While the game is active both players are present.
        invariants.ensure_not_none(opponent, "opponent was nil")
        return opponent

    def _send_result(self, connection_id: uuid.UUID, status: str) -> None:
        message = make_message(ServerMsgType.WIN_EVENT, WinMessage(status=status, cause=""))
        self._send(connection_id, message)

    def _send(self, connection_id: uuid.UUID, message) -> None:
        self._forward(SendMessageEvent(connection_id=connection_id, msg=message))

    def _forward(self, event: Event) -> None:
        invariants.ensure_not_none(self._next, "room next handler was nil")
        self._next.handle(event)

    def _game_has_ended(self) -> bool:
        return self._game.win_state().kind != WinKind.NONE