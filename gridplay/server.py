"""The game server: accepts websocket clients and drives the game loop."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
from typing import Any
from urllib.parse import urlsplit

import websockets

from gridplay import invariants
from gridplay.connection import Connection
from gridplay.mediator import ServerMediator

log = logging.getLogger(__name__)

PORT = 4000
WS_PATH = "/ws"
TICK_SECONDS = 0.05
ASSERT_FILE = "assert.txt"
CLOSE_POLICY_VIOLATION = 1008


class GameServer:
    """Owns the mediator and hands it every new client connection."""

    def __init__(self) -> None:
        self._mediator = ServerMediator()

    @property
    def mediator(self) -> ServerMediator:
        return self._mediator

    async def handle_connection(self, websocket: Any) -> None:
        """Serve one client until its connection is closed."""
        invariants.ensure_not_none(self._mediator, "mediator was nil")
        log.debug("adding socket as connection")
        conn = Connection(websocket)
        self._mediator.add_connection(conn)
        await conn.wait_closed()

    def start_loop(self) -> None:
        invariants.ensure_not_none(self._mediator, "mediator was nil")
        self._mediator.start_loop()

    def stop_loop(self) -> None:
        invariants.ensure_not_none(self._mediator, "mediator was nil")
        self._mediator.stop_loop()

    def update(self) -> None:
        invariants.ensure_not_none(self._mediator, "mediator was nil")
        self._mediator.update()


def _request_path(websocket: Any) -> str:
    request = getattr(websocket, "request", None)
    path = getattr(request, "path", None) or getattr(websocket, "path", None) or ""
    return urlsplit(path).path


async def _update_loop(server: GameServer, tick: float) -> None:
    while True:
        await asyncio.sleep(tick)
        server.update()


async def serve(host: str | None = None, port: int = PORT) -> None:
    """Run the server until the task running it is cancelled."""
    server = GameServer()

    async def route(websocket: Any) -> None:
        if _request_path(websocket) != WS_PATH:
            await websocket.close(CLOSE_POLICY_VIOLATION, "unknown path")
            return
        await server.handle_connection(websocket)

    server.start_loop()
    ticker = asyncio.get_running_loop().create_task(_update_loop(server, TICK_SECONDS))
    try:
        async with websockets.serve(route, host, port):
            log.info("listening on %s:%d%s", host or "*", port, WS_PATH)
            await asyncio.Future()
    finally:
        ticker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await ticker
        server.stop_loop()


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point; returns the exit status."""
    parser = argparse.ArgumentParser(
        prog="gridplay", description="Tic-tac-toe game server over websockets."
    )
    parser.add_argument("--host", default=None, help="address to listen on (default: all)")
    parser.add_argument("--port", type=int, default=PORT, help="port to listen on")
    parser.add_argument(
        "--assert-file", default=ASSERT_FILE, help="file that receives invariant reports"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        datefmt="%I:%M%p",
    )

    with open(args.assert_file, "w", encoding="utf-8") as assert_file:
        invariants.set_writer(assert_file)
        try:
            asyncio.run(serve(args.host, args.port))
        except KeyboardInterrupt:
            pass
        except OSError as err:
            log.error("cannot listen: %s", err)
            return 1
        finally:
            invariants.set_writer(None)
    return 0