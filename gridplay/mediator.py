"""The server mediator: ties connections, matchmaking and rooms together."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from gridplay import invariants
from gridplay.connection import Connection
from gridplay.events import (
    DisconnectEvent,
    Event,
    MediatorEvent,
    PlayersMatchedEvent,
    RemoveRoomEvent,
    SendMessageEvent,
    Sender,
)
from gridplay.handlers import PlayerConnection, ServerHandler
from gridplay.matchmaker import Matchmaker
from gridplay.message import Message
from gridplay.room import Room
from gridplay.server_data import ServerData

log = logging.getLogger(__name__)


class ServerMediator:
    """Routes events between the server handler, the matchmaker and the registry."""

    def __init__(self) -> None:
        self._handler = ServerHandler(self)
        self._matchmaker = Matchmaker(self)
        self._data = ServerData()

    @property
    def handler(self) -> ServerHandler:
        return self._handler

    @property
    def matchmaker(self) -> Matchmaker:
        return self._matchmaker

    @property
    def server_data(self) -> ServerData:
        return self._data

    def start_loop(self) -> None:
        invariants.ensure_not_none(self._matchmaker, "matchmaker was nil")
        self._matchmaker.start_loop()

    def stop_loop(self) -> None:
        invariants.ensure_not_none(self._matchmaker, "matchmaker was nil")
        self._matchmaker.end_loop()

    def notify(self, event: MediatorEvent) -> None:
        handled = False
        if event.sender == Sender.SERVER_HANDLER:
            handled = self.from_server_handler(event.event)
        elif event.sender == Sender.MATCHMAKER:
            handled = self.from_matchmaker(event.event)

        if not handled:
            log.error(
                "server event not handled sender=%s type=%s",
                Sender(event.sender).name,
                event.event.type,
            )

    def from_server_handler(self, event: Event) -> bool:
        """Act on an event from the server handler; False if it is not one of its kinds."""
        log.debug("event in server mediator type=%s event=%r", event.type, event)

        if isinstance(event, SendMessageEvent):
            try:
                self.send_message(event.connection_id, event.msg)
            except (KeyError, ConnectionError) as err:
                log.warning(
                    "cannot send message to connection id=%s: %s", event.connection_id, err
                )
        elif isinstance(event, DisconnectEvent):
            self.delete_connection(event.connection_id)
        elif isinstance(event, RemoveRoomEvent):
            self.remove_room(event.room_id)
        else:
            return False
        return True

    def from_matchmaker(self, event: Event) -> bool:
        """Open a room for a matched pair, or put the one still alive back in line."""
        if not isinstance(event, PlayersMatchedEvent):
            return False
        invariants.ensure_not_none(self._matchmaker, "matchmaker was nil")
        invariants.ensure_not_none(self._data, "serverData was nil")

        log.debug("players matched id1=%s id2=%s", event.ids[0], event.ids[1])
        confirmed = [self._confirm(conn_id) for conn_id in event.ids]

        if all(player_connection is not None for player_connection in confirmed):
            room = self.create_room(confirmed)
            self._data.add_room(room)
        else:
            for conn_id, player_connection in zip(event.ids, confirmed):
                if player_connection is not None:
                    self._matchmaker.add(conn_id)
        return True

    def _confirm(self, conn_id: uuid.UUID) -> PlayerConnection | None:
        try:
            player_connection = self._data.get_connection(conn_id)
            player_connection.connection.send_ping()
        except (KeyError, ConnectionError):
            return None
        return player_connection

    def create_room(self, player_connections: Iterable[PlayerConnection]) -> Room:
        invariants.ensure_not_none(self._handler, "server handler was nil")
        room_id = self.generate_uuid()
        room = Room(self._handler.sync, player_connections, room_id)
        log.info("created room uuid=%s", room_id)
        return room

    def remove_room(self, room_id: uuid.UUID) -> None:
        invariants.ensure_not_none(self._data, "serverData was nil")
        try:
            self._data.get_room(room_id)
        except KeyError as err:
            invariants.ensure_no_error(err, "room does not exist")
        log.info("removing room uuid=%s", room_id)
        self._data.remove_room(room_id)

    def send_message(self, conn_id: uuid.UUID, msg: Message) -> None:
        """Send ``msg`` to a connection.

        Raises KeyError for an unknown connection and ConnectionError when
        the connection has failed.
        """
        invariants.ensure_not_none(self._data, "server data was nil")
        invariants.ensure_not_none(msg, "message was nil")

        try:
            player_connection = self._data.get_connection(conn_id)
        except KeyError:
            log.debug("sending message ip=unaccessible type=%s data=%r", msg.type, msg.data)
            raise

        conn = player_connection.connection
        log.debug(
            "sending message ip=%s type=%s data=%r", conn.remote_ip(), msg.type, msg.data
        )
        conn.send_message(msg)
        err = conn.last_error()
        if err is not None:
            raise ConnectionError("cannot send message") from err

    def generate_uuid(self) -> uuid.UUID:
        return uuid.uuid1()

    def add_connection(self, conn: Connection) -> uuid.UUID:
        """Register a new client connection, start it and queue it for a match."""
        invariants.ensure_not_none(self._data, "server data was nil")
        invariants.ensure_not_none(self._handler, "server handler was nil")
        invariants.ensure_not_none(self._matchmaker, "matchmaker was nil")
        invariants.ensure_not_none(conn, "connection was nil")

        conn_id = self.generate_uuid()
        player_connection = PlayerConnection(self._handler.sync, conn_id, conn)
        self._data.add_player_connection(conn_id, player_connection)

        player_connection.start_loop()
        self._matchmaker.add(conn_id)

        log.info("connected to ip=%s uuid=%s", conn.remote_ip(), conn_id)
        return conn_id

    def delete_connection(self, conn_id: uuid.UUID) -> None:
        invariants.ensure_not_none(self._data, "server data was nil")
        try:
            player_connection = self._data.get_connection(conn_id)
        except KeyError as err:
            invariants.ensure_no_error(err, "player connection does not exist")
            raise

        log.debug("removing connection ip=%s", player_connection.connection.remote_ip())
        player_connection.end_loop()
        self._data.remove_connection(conn_id)

    def add_connection_to_matchmaker(self, conn_id: uuid.UUID) -> None:
        try:
            self._data.get_connection(conn_id)
        except KeyError as err:
            invariants.ensure_no_error(err, "connection does not exist")
            raise

        log.debug("adding player to matchmaker uuid=%s", conn_id)
        self._matchmaker.add(conn_id)

    def update(self) -> None:
        """Let every room process its events, then deliver the server's events."""
        invariants.ensure_not_none(self._handler, "server handler was nil")
        for room in self._data.rooms():
            room.update()
        self._handler.sync.transfer_all()