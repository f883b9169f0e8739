"""A client's websocket: a background reader and an ordered writer."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from gridplay import invariants
from gridplay.message import Message, MessageError, unmarshal_message

log = logging.getLogger(__name__)

CLOSE_NORMAL = 1000
CLOSE_REASON = "Connection closed by server."
PING_PAYLOAD = b"ping"


class _Frame(Enum):
    TEXT = "text"
    PING = "ping"
    CLOSE = "close"


class Connection:
    """Wraps a websocket; reading and writing run as tasks on the event loop."""

    def __init__(self, socket: Any) -> None:
        invariants.ensure_not_none(socket, "websocket was nil")
        self._socket = socket
        self._messages: asyncio.Queue[Message] = asyncio.Queue()
        self._outgoing: asyncio.Queue[tuple[_Frame, Any]] = asyncio.Queue()
        self._closed = asyncio.Event()
        self._receiving = False
        self._reader: asyncio.Task[None] | None = None
        self._writer: asyncio.Task[None] | None = None
        self._error: BaseException | None = None

    @property
    def receiving(self) -> bool:
        return self._receiving

    def start_receiving(self) -> None:
        """Start reading client messages in the background."""
        invariants.ensure(not self._receiving, "connection was already receiving")
        self._reader = asyncio.get_running_loop().create_task(self._receive_messages())
        self._receiving = True

    def stop_receiving(self) -> None:
        """Ask the client to close; the reader ends when the socket closes."""
        if self._receiving:
            self._enqueue(_Frame.CLOSE, (CLOSE_NORMAL, CLOSE_REASON))

    async def _receive_messages(self) -> None:
        try:
            while self._error is None:
                try:
                    data = await self._socket.recv()
                except Exception as err:
                    log.info("connection closed with ip=%s", self.remote_ip())
                    self._error = err
                    break
                try:
                    msg = unmarshal_message(data)
                except MessageError:
                    log.warning("cannot unmarshal message, received from ip=%s", self.remote_ip())
                    continue
                await self._messages.put(msg)
        finally:
            try:
                await self._socket.close()
            except Exception as err:
                log.debug("error while closing socket: %s", err)
            if self._writer is not None:
                self._writer.cancel()
            # Everything read must be consumed before the close is announced.
            await self._messages.join()
            self._closed.set()
            self._receiving = False

    def _enqueue(self, frame: _Frame, payload: Any) -> None:
        if self._writer is None:
            self._writer = asyncio.get_running_loop().create_task(self._write_loop())
        self._outgoing.put_nowait((frame, payload))

    async def _write_loop(self) -> None:
        while True:
            frame, payload = await self._outgoing.get()
            try:
                if frame is _Frame.TEXT:
                    await self._socket.send(payload)
                elif frame is _Frame.PING:
                    await self._socket.ping(payload)
                else:
                    await self._socket.close(*payload)
            except Exception as err:
                if frame is _Frame.TEXT:
                    self._error = err
                else:
                    log.debug("cannot write %s frame: %s", frame.value, err)

    def send_message(self, msg: Message) -> bool:
        """Queue ``msg`` for sending; False if the connection has already failed."""
        invariants.ensure_not_none(msg, "msg was nil")
        if self._error is not None:
            return False
        self._enqueue(_Frame.TEXT, msg.marshal().decode("utf-8"))
        return True

    def send_ping(self) -> None:
        """Queue a ping; raises ConnectionError if the connection has failed."""
        if self._error is not None:
            raise ConnectionError("connection has failed") from self._error
        self._enqueue(_Frame.PING, PING_PAYLOAD)

    def remote_ip(self) -> str:
        """The peer address as ``host:port``."""
        address = getattr(self._socket, "remote_address", None)
        if not address:
            return "unknown"
        if isinstance(address, str):
            return address
        host, port = address[0], address[1]
        if ":" in str(host):
            return f"[{host}]:{port}"
        return f"{host}:{port}"

    async def next_message(self) -> Message:
        """Wait for the next message read from the client."""
        msg = await self._messages.get()
        self._messages.task_done()
        return msg

    async def wait_closed(self) -> None:
        """Wait until the reader has stopped and all its messages were taken."""
        await self._closed.wait()

    def last_error(self) -> BaseException | None:
        return self._error