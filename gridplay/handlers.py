"""Handlers of the event chain: players, their connections and the server side."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import queue
import uuid

from gridplay import invariants
from gridplay.connection import Connection
from gridplay.events import (
    DisconnectEvent,
    Event,
    Handler,
    Mediator,
    MediatorEvent,
    MoveEvent,
    Sender,
    event_from_client_message,
)
from gridplay.message import Message, MessageError, NotAllowedError, ServerMsgType, make_message

log = logging.getLogger(__name__)

SYNC_CAPACITY = 256
NOT_RUNNING_REASON = "cannot do this while game is not running"


class Synchronizer:
    """Holds events until ``transfer_all`` passes them on in arrival order."""

    def __init__(self, next_handler: Handler, capacity: int = SYNC_CAPACITY) -> None:
        invariants.ensure_not_none(next_handler, "next handler was nil")
        self._next = next_handler
        self._queue: queue.Queue[Event] = queue.Queue(maxsize=capacity)

    def handle(self, event: Event) -> None:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            invariants.never("sync channel is full", self._queue.maxsize)

    def transfer_all(self) -> None:
        """Pass every held event, including ones added meanwhile, to the next handler."""
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                invariants.ensure(self._queue.empty(), "transfer_all should clear the sync queue")
                return
            self._next.handle(event)


class Player:
    """A seat in a room; stamps itself on the moves and disconnects it forwards."""

    def __init__(self, next_handler: Handler, connection_id: uuid.UUID, player_id: int) -> None:
        invariants.ensure_not_none(next_handler, "nextHandler was nil")
        if player_id not in (0, 1):
            invariants.never("player id was out of range")
        self._next = next_handler
        self.connection_id = connection_id
        self.player_id = player_id

    def handle(self, event: Event) -> None:
        log.debug("event in player type=%s event=%r", event.type, event)
        if isinstance(event, (MoveEvent, DisconnectEvent)):
            event = dataclasses.replace(event, player=self)
        invariants.ensure_not_none(self._next, "player next handler was nil")
        self._next.handle(event)


class PlayerConnection:
    """Turns a connection's messages into events for the player or the server."""

    def __init__(
        self, server_handler: Handler, connection_id: uuid.UUID, connection: Connection
    ) -> None:
        invariants.ensure_not_none(server_handler, "server handler was nil")
        invariants.ensure_not_none(connection, "connection was nil")
        self._next: Handler | None = None
        self._server = server_handler
        self.connection_id = connection_id
        self.connection = connection
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_loop_running(self) -> bool:
        return self._running

    def start_loop(self) -> None:
        invariants.ensure(not self._running, "loop was already running")
        invariants.ensure_not_none(self.connection, "connection was nil")
        self._task = asyncio.get_running_loop().create_task(self._loop())
        self._running = True
        self.connection.start_receiving()

    def end_loop(self) -> None:
        invariants.ensure(self._running, "loop wasn't running")
        invariants.ensure_not_none(self.connection, "connection was nil")
        self.connection.stop_receiving()
        if self._task is not None:
            self._task.cancel()
        self._running = False

    def set_next_handler(self, next_handler: Handler) -> None:
        invariants.ensure_not_none(next_handler, "next handler was nil")
        self._next = next_handler

    def handle(self, event: Event) -> None:
        if self._next is not None:
            self._next.handle(event)
            return
        log.info(NOT_RUNNING_REASON)
        msg: Message = make_message(
            ServerMsgType.NOT_ALLOWED_ERR, NotAllowedError(reason=NOT_RUNNING_REASON)
        )
        self.connection.send_message(msg)

    def _on_message(self, msg: Message, remote_ip: str) -> None:
        log.debug("received message from ip=%s type=%s data=%r", remote_ip, msg.type, msg.data)
        try:
            event = event_from_client_message(msg)
        except MessageError as err:
            log.warning("unknown type of message: %s", err)
            return
        log.debug("created event type=%s event=%r", event.type, event)
        self.handle(event)

    def _on_disconnect(self) -> None:
        event = DisconnectEvent(connection_id=self.connection_id)
        if self._next is not None:
            self._next.handle(event)
        else:
            invariants.ensure_not_none(self._server, "server handler was nil")
            self._server.handle(event)

    async def _loop(self) -> None:
        conn = self.connection
        remote_ip = conn.remote_ip()
        next_msg = asyncio.ensure_future(conn.next_message())
        closed: asyncio.Future[None] | None = asyncio.ensure_future(conn.wait_closed())
        try:
            while True:
                waiting = {next_msg} if closed is None else {next_msg, closed}
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                if next_msg in done:
                    self._on_message(next_msg.result(), remote_ip)
                    next_msg = asyncio.ensure_future(conn.next_message())
                if closed is not None and closed in done:
                    closed = None
                    self._on_disconnect()
        finally:
            next_msg.cancel()
            if closed is not None:
                closed.cancel()


class ServerHandler:
    """Entry point of events for the server; forwards them to the mediator."""

    def __init__(self, mediator: Mediator) -> None:
        invariants.ensure_not_none(mediator, "mediator was nil")
        self._mediator = mediator
        self._sync = Synchronizer(self)

    def handle(self, event: Event) -> None:
        self._mediator.notify(MediatorEvent(sender=Sender.SERVER_HANDLER, event=event))

    @property
    def sync(self) -> Synchronizer:
        invariants.ensure_not_none(self._sync, "server handler synchronizer was nil")
        return self._sync