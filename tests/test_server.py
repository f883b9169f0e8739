import asyncio
import json
import socket

import pytest
import websockets

from gridplay.invariants import InvariantError
from gridplay.message import ServerMsgType
from gridplay.server import GameServer, main, serve


class FakeSocket:
    def __init__(self, port):
        self.remote_address = ("127.0.0.1", port)
        self.incoming = asyncio.Queue()
        self.sent = []
        self.pings = []
        self.closed = False

    async def recv(self):
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, data):
        self.sent.append(data)

    async def ping(self, data=b""):
        self.pings.append(data)

    async def close(self, code=1000, reason=""):
        self.closed = True


async def settle(rounds=30):
    for _ in range(rounds):
        await asyncio.sleep(0)


async def shutdown():
    tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.wait(tasks, timeout=1)


async def stop_serving(task):
    task.cancel()
    await asyncio.wait([task], timeout=10)


async def wait_for_port(host, port, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        try:
            _, writer = await asyncio.open_connection(host, port)
        except OSError:
            if loop.time() > deadline:
                raise
            await asyncio.sleep(0.05)
            continue
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return


def free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.asyncio
async def test_handle_connection_runs_until_client_leaves():
    try:
        server = GameServer()
        server.start_loop()
        a, b = FakeSocket(6001), FakeSocket(6002)
        task_a = asyncio.create_task(server.handle_connection(a))
        task_b = asyncio.create_task(server.handle_connection(b))
        await settle()
        server.update()
        await settle()

        assert len(server.mediator.server_data.rooms()) == 1
        assert json.loads(a.sent[0])["type"] == ServerMsgType.MATCH_STARTED
        assert json.loads(b.sent[0])["type"] == ServerMsgType.MATCH_STARTED
        assert not task_a.done()

        a.incoming.put_nowait(ConnectionError("gone"))
        b.incoming.put_nowait(ConnectionError("gone"))
        await asyncio.wait_for(asyncio.gather(task_a, task_b), 1)
        await settle()
        server.update()

        assert server.mediator.server_data.rooms() == []
        assert a.closed and b.closed
    finally:
        await shutdown()


@pytest.mark.asyncio
async def test_stop_loop_without_start_fails():
    server = GameServer()
    with pytest.raises(InvariantError):
        server.stop_loop()
    server.start_loop()
    assert server.mediator.matchmaker.is_loop_running is True
    server.stop_loop()
    assert server.mediator.matchmaker.is_loop_running is False


@pytest.mark.asyncio
async def test_serve_matches_two_clients():
    port = free_port()
    task = asyncio.create_task(serve("127.0.0.1", port))
    try:
        await wait_for_port("127.0.0.1", port)
        url = f"ws://127.0.0.1:{port}/ws"
        async with websockets.connect(url) as first:
            async with websockets.connect(url) as second:
                msg_first = json.loads(await asyncio.wait_for(first.recv(), 5))
                msg_second = json.loads(await asyncio.wait_for(second.recv(), 5))
    finally:
        await stop_serving(task)
        await shutdown()

    assert msg_first["type"] == ServerMsgType.MATCH_STARTED
    assert msg_second["type"] == ServerMsgType.MATCH_STARTED
    assert msg_first["data"]["char"] == msg_second["data"]["opponentChar"]
    assert {msg_first["data"]["char"], msg_second["data"]["char"]} == {ord("x"), ord("o")}


@pytest.mark.asyncio
async def test_serve_closes_other_paths():
    port = free_port()
    task = asyncio.create_task(serve("127.0.0.1", port))
    try:
        await wait_for_port("127.0.0.1", port)
        async with websockets.connect(f"ws://127.0.0.1:{port}/other") as client:
            with pytest.raises(websockets.exceptions.ConnectionClosed):
                await asyncio.wait_for(client.recv(), 5)
    finally:
        await stop_serving(task)
        await shutdown()


def test_main_reports_busy_port(tmp_path):
    assert_file = tmp_path / "report.txt"
    with socket.socket() as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = blocker.getsockname()[1]
        status = main(
            ["--host", "127.0.0.1", "--port", str(port), "--assert-file", str(assert_file)]
        )
    assert status == 1
    assert assert_file.exists()


def test_main_rejects_bad_port():
    with pytest.raises(SystemExit) as excinfo:
        main(["--port", "not-a-number"])
    assert excinfo.value.code == 2