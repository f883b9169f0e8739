"""Events passed along the handler chain, and the interfaces that carry them."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, ClassVar, Protocol

from gridplay import invariants
from gridplay.message import ClientMove, ClientMsgType, Message, MessageError, concrete_message

if TYPE_CHECKING:
    from gridplay.handlers import Player


class EventType(IntEnum):
    NONE = 0
    DISCONNECT = 1
    REMOVE_ROOM = 2
    MOVE = 3
    SEND_MESSAGE = 4
    PLAYERS_MATCHED = 5

    def __str__(self) -> str:
        return _EVENT_NAMES[self]


_EVENT_NAMES = {
    EventType.NONE: "None",
    EventType.DISCONNECT: "Disconnect",
    EventType.REMOVE_ROOM: "RemoveRoom",
    EventType.MOVE: "Move",
    EventType.SEND_MESSAGE: "SendMessage",
    EventType.PLAYERS_MATCHED: "PlayersMatched",
}


class Event:
    """Base of every event; ``type`` tells the kind of event."""

    type: ClassVar[EventType] = EventType.NONE


@dataclass(frozen=True)
class EmptyEvent(Event):
    type: ClassVar[EventType] = EventType.NONE


@dataclass(frozen=True)
class DisconnectEvent(Event):
    type: ClassVar[EventType] = EventType.DISCONNECT

    connection_id: uuid.UUID
    player: Player | None = None


@dataclass(frozen=True)
class RemoveRoomEvent(Event):
    type: ClassVar[EventType] = EventType.REMOVE_ROOM

    room_id: uuid.UUID


@dataclass(frozen=True)
class MoveEvent(Event):
    type: ClassVar[EventType] = EventType.MOVE

    x: int
    y: int
    player: Player | None = None


@dataclass(frozen=True)
class SendMessageEvent(Event):
    type: ClassVar[EventType] = EventType.SEND_MESSAGE

    connection_id: uuid.UUID
    msg: Message


@dataclass(frozen=True)
class PlayersMatchedEvent(Event):
    type: ClassVar[EventType] = EventType.PLAYERS_MATCHED

    ids: tuple[uuid.UUID, uuid.UUID]


class Sender(IntEnum):
    SERVER_HANDLER = 0
    MATCHMAKER = 1


@dataclass(frozen=True)
class MediatorEvent:
    sender: Sender
    event: Event


class Handler(Protocol):
    def handle(self, event: Event) -> None: ...


class Mediator(Protocol):
    def notify(self, event: MediatorEvent) -> None: ...


def event_from_client_message(msg: Message) -> Event:
    """Turn a client message into an event; raises MessageError if none fits."""
    invariants.ensure_not_none(msg, "message was nil")

    if msg.type == ClientMsgType.MOVE:
        move = concrete_message(msg, ClientMove)
        return MoveEvent(x=move.x, y=move.y)
    raise MessageError("this message has no corresponding event")