import asyncio

import pytest

from gridplay.connection import CLOSE_NORMAL, Connection
from gridplay.invariants import InvariantError
from gridplay.message import Message, unmarshal_message


class FakeSocket:
    def __init__(self, remote_address=("127.0.0.1", 5000)):
        self.incoming = asyncio.Queue()
        self.sent = asyncio.Queue()
        self.pings = []
        self.closes = []
        self.remote_address = remote_address
        self.fail_send = False

    async def recv(self):
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, data):
        if self.fail_send:
            raise ConnectionError("broken pipe")
        await self.sent.put(data)

    async def ping(self, data):
        self.pings.append(data)

    async def close(self, code=1000, reason=""):
        self.closes.append((code, reason))
        self.incoming.put_nowait(ConnectionError("closed"))


async def _eventually(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            return False
        await asyncio.sleep(0.005)
    return True


def test_none_socket_is_rejected():
    with pytest.raises(InvariantError):
        Connection(None)


def test_remote_ip_ipv4():
    conn = Connection(FakeSocket(("127.0.0.1", 5000)))
    assert conn.remote_ip() == "127.0.0.1:5000"


def test_remote_ip_ipv6():
    conn = Connection(FakeSocket(("::1", 80, 0, 0)))
    assert conn.remote_ip() == "[::1]:80"


@pytest.mark.asyncio
async def test_receives_messages():
    sock = FakeSocket()
    conn = Connection(sock)
    conn.start_receiving()
    sock.incoming.put_nowait('{"type":0,"data":{"x":1,"y":2}}')
    msg = await asyncio.wait_for(conn.next_message(), 1)
    assert msg == Message(0, {"x": 1, "y": 2})
    assert conn.receiving


@pytest.mark.asyncio
async def test_malformed_messages_are_skipped():
    sock = FakeSocket()
    conn = Connection(sock)
    conn.start_receiving()
    sock.incoming.put_nowait("not json")
    sock.incoming.put_nowait('{"type":3,"data":null}')
    msg = await asyncio.wait_for(conn.next_message(), 1)
    assert msg == Message(3, None)


@pytest.mark.asyncio
async def test_start_receiving_twice_fails():
    conn = Connection(FakeSocket())
    conn.start_receiving()
    with pytest.raises(InvariantError):
        conn.start_receiving()


@pytest.mark.asyncio
async def test_read_error_closes_connection():
    sock = FakeSocket()
    conn = Connection(sock)
    conn.start_receiving()
    failure = ConnectionError("gone")
    sock.incoming.put_nowait(failure)
    await asyncio.wait_for(conn.wait_closed(), 1)
    assert conn.last_error() is failure
    assert not conn.receiving
    assert len(sock.closes) == 1


@pytest.mark.asyncio
async def test_close_waits_for_pending_messages():
    sock = FakeSocket()
    conn = Connection(sock)
    conn.start_receiving()
    sock.incoming.put_nowait('{"type":0,"data":null}')
    sock.incoming.put_nowait(ConnectionError("gone"))
    closed = asyncio.ensure_future(conn.wait_closed())
    await asyncio.sleep(0.05)
    assert not closed.done()
    msg = await asyncio.wait_for(conn.next_message(), 1)
    await asyncio.wait_for(closed, 1)
    assert msg == Message(0, None)


@pytest.mark.asyncio
async def test_send_message_round_trip():
    sock = FakeSocket()
    conn = Connection(sock)
    msg = Message(1, {"k": "v"})
    assert conn.send_message(msg) is True
    sent = await asyncio.wait_for(sock.sent.get(), 1)
    assert isinstance(sent, str)
    assert unmarshal_message(sent) == msg


@pytest.mark.asyncio
async def test_messages_keep_their_order():
    sock = FakeSocket()
    conn = Connection(sock)
    for n in range(5):
        conn.send_message(Message(n, None))
    received = [unmarshal_message(await asyncio.wait_for(sock.sent.get(), 1)).type for _ in range(5)]
    assert received == list(range(5))


@pytest.mark.asyncio
async def test_send_after_failure_returns_false():
    sock = FakeSocket()
    sock.fail_send = True
    conn = Connection(sock)
    assert conn.send_message(Message(0, None)) is True
    assert await _eventually(lambda: conn.last_error() is not None)
    assert isinstance(conn.last_error(), ConnectionError)
    assert conn.send_message(Message(0, None)) is False


@pytest.mark.asyncio
async def test_ping_is_sent():
    sock = FakeSocket()
    conn = Connection(sock)
    conn.send_ping()
    assert await _eventually(lambda: sock.pings == [b"ping"])
    assert conn.last_error() is None
    assert conn.send_message(Message(2, None)) is True
    sent = await asyncio.wait_for(sock.sent.get(), 1)
    assert unmarshal_message(sent) == Message(2, None)


@pytest.mark.asyncio
async def test_ping_after_failure_raises():
    sock = FakeSocket()
    sock.fail_send = True
    conn = Connection(sock)
    conn.send_message(Message(0, None))
    assert await _eventually(lambda: conn.last_error() is not None)
    with pytest.raises(ConnectionError):
        conn.send_ping()


@pytest.mark.asyncio
async def test_stop_receiving_sends_close_frame():
    sock = FakeSocket()
    conn = Connection(sock)
    conn.start_receiving()
    conn.stop_receiving()
    assert await _eventually(lambda: len(sock.closes) >= 1)
    assert sock.closes[0] == (CLOSE_NORMAL, "Connection closed by server.")
    await asyncio.wait_for(conn.wait_closed(), 1)
    assert not conn.receiving


@pytest.mark.asyncio
async def test_stop_receiving_without_reader_does_nothing():
    sock = FakeSocket()
    conn = Connection(sock)
    conn.stop_receiving()
    await asyncio.sleep(0.02)
    assert sock.closes == []