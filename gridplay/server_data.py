"""Thread-safe registry of the server's player connections and rooms."""

from __future__ import annotations

import threading
import uuid
from typing import TYPE_CHECKING

from gridplay import invariants

if TYPE_CHECKING:
    from gridplay.handlers import PlayerConnection
    from gridplay.room import Room


class ServerData:
    """Connections and rooms keyed by their ids."""

    def __init__(self) -> None:
        self._connections: dict[uuid.UUID, PlayerConnection] = {}
        self._rooms: dict[uuid.UUID, Room] = {}
        self._lock = threading.Lock()

    def add_room(self, room: Room) -> None:
        invariants.ensure_not_none(room, "room was nil")
        with self._lock:
            self._rooms[room.room_id] = room

    def remove_room(self, room_id: uuid.UUID) -> None:
        with self._lock:
            self._rooms.pop(room_id, None)

    def get_room(self, room_id: uuid.UUID) -> Room:
        """The room with ``room_id``; raises KeyError if there is none."""
        with self._lock:
            try:
                return self._rooms[room_id]
            except KeyError:
                raise KeyError("room does not exist") from None

    def rooms(self) -> list[Room]:
        """A snapshot of all rooms."""
        with self._lock:
            return list(self._rooms.values())

    def add_player_connection(
        self, conn_id: uuid.UUID, player_connection: PlayerConnection
    ) -> None:
        invariants.ensure_not_none(player_connection, "player connection was nil")
        with self._lock:
            self._connections[conn_id] = player_connection

    def remove_connection(self, conn_id: uuid.UUID) -> None:
        with self._lock:
            self._connections.pop(conn_id, None)

    def get_connection(self, conn_id: uuid.UUID) -> PlayerConnection:
        """The connection with ``conn_id``; raises KeyError if there is none."""
        with self._lock:
            try:
                return self._connections[conn_id]
            except KeyError:
                raise KeyError("connection does not exist") from None