"""JSON messages exchanged with clients and their typed payloads."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from gridplay import invariants


class MessageError(ValueError):
    """A message or its payload cannot be decoded."""


@dataclass(frozen=True)
class MessageHeader:
    type: int


@dataclass(frozen=True)
class Message:
    """A typed envelope: ``{"type": <int>, "data": <payload>}``."""

    type: int
    data: Any = None

    @property
    def header(self) -> MessageHeader:
        return MessageHeader(self.type)

    def marshal(self) -> bytes:
        """Encode the message as compact JSON bytes."""
        try:
            text = json.dumps(
                {"type": int(self.type), "data": _to_jsonable(self.data)},
                separators=(",", ":"),
            )
        except (TypeError, ValueError) as err:
            invariants.ensure_no_error(err, "cannot marshal message")
            raise
        return text.encode("utf-8")


class ClientMsgType(IntEnum):
    MOVE = 0

    def __str__(self) -> str:
        return "move"


class ServerMsgType(IntEnum):
    MATCH_STARTED = 0
    MOVE_ANS = 1
    OPPONENT_MOVE = 2
    WIN_EVENT = 3
    NOT_ALLOWED_ERR = 4

    def __str__(self) -> str:
        return _SERVER_NAMES[self]


_SERVER_NAMES = {
    ServerMsgType.MATCH_STARTED: "match_started",
    ServerMsgType.MOVE_ANS: "move_answer",
    ServerMsgType.OPPONENT_MOVE: "opponent_move",
    ServerMsgType.WIN_EVENT: "win_event",
    ServerMsgType.NOT_ALLOWED_ERR: "not_allowed_error",
}


def _wire(name: str, kind: Any, default: Any) -> Any:
    return field(default=default, metadata={"json": name, "kind": kind})


_RUNE = "rune"


@dataclass(frozen=True)
class ClientMove:
    x: int = _wire("x", int, 0)
    y: int = _wire("y", int, 0)


@dataclass(frozen=True)
class MatchStarted:
    """Marks of the receiving player and of the opponent, sent as code points."""

    char: str = _wire("char", _RUNE, "\0")
    opponent_char: str = _wire("opponentChar", _RUNE, "\0")

    def __str__(self) -> str:
        return f"Char: {self.char} OpponentChar: {self.opponent_char}"


@dataclass(frozen=True)
class MoveResponse:
    approved: bool = _wire("approved", bool, False)
    reason: str = _wire("reason", str, "")


@dataclass(frozen=True)
class OpponentMove:
    x: int = _wire("x", int, 0)
    y: int = _wire("y", int, 0)


@dataclass(frozen=True)
class WinMessage:
    status: str = _wire("status", str, "")
    cause: str = _wire("cause", str, "")


@dataclass(frozen=True)
class NotAllowedError:
    reason: str = _wire("reason", str, "")


def create_header(msg_type: int) -> MessageHeader:
    return MessageHeader(int(msg_type))


def wrap_message(header: MessageHeader, data: Any) -> Message:
    return Message(header.type, data)


def make_message(msg_type: int, data: Any) -> Message:
    return wrap_message(create_header(msg_type), data)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def unmarshal_message(data: bytes | str) -> Message:
    """Decode a message; raises MessageError on malformed input."""
    try:
        obj = json.loads(data)
    except (TypeError, ValueError, UnicodeDecodeError) as err:
        raise MessageError("can't unmarshal message") from err
    if not isinstance(obj, dict):
        raise MessageError("can't unmarshal message")
    msg_type = obj.get("type")
    if msg_type is None:
        msg_type = 0
    if not _is_int(msg_type):
        raise MessageError("can't unmarshal message")
    return Message(msg_type, obj.get("data"))


def _to_jsonable(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        result = {}
        for f in dataclasses.fields(obj):
            value = getattr(obj, f.name)
            if f.metadata.get("kind") == _RUNE:
                value = ord(value)
            result[f.metadata.get("json", f.name)] = _to_jsonable(value)
        return result
    if isinstance(obj, dict):
        return {str(key): _to_jsonable(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(item) for item in obj]
    return obj


_TYPE_CHECKS = {
    dict: lambda v: isinstance(v, dict),
    list: lambda v: isinstance(v, list),
    str: lambda v: isinstance(v, str),
    bool: lambda v: isinstance(v, bool),
    int: _is_int,
    float: lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
}


def _concrete_error() -> MessageError:
    return MessageError("failed to unmarshal message data into concrete type")


def _decode_field(kind: Any, value: Any) -> Any:
    if kind == _RUNE:
        if not _is_int(value):
            raise _concrete_error()
        try:
            return chr(value)
        except (ValueError, OverflowError) as err:
            raise _concrete_error() from err
    if kind is None:
        return value
    if not _TYPE_CHECKS[kind](value):
        raise _concrete_error()
    return float(value) if kind is float else value


def _decode(target: type, raw: Any) -> Any:
    if raw is None:
        return target()
    if dataclasses.is_dataclass(target):
        if not isinstance(raw, dict):
            raise _concrete_error()
        values = {}
        for f in dataclasses.fields(target):
            name = f.metadata.get("json", f.name)
            if raw.get(name) is not None:
                values[f.name] = _decode_field(f.metadata.get("kind"), raw[name])
        return target(**values)
    check = _TYPE_CHECKS.get(target)
    if check is None:
        raise MessageError(f"unsupported concrete type {target!r}")
    if not check(raw):
        raise _concrete_error()
    return float(raw) if target is float else raw


def concrete_message(message: Message, target: type) -> Any:
    """Read the message payload as ``target`` (a payload class or a JSON type)."""
    try:
        raw = json.loads(json.dumps(_to_jsonable(message.data)))
    except (TypeError, ValueError) as err:
        raise MessageError("failed to marshal message data") from err
    return _decode(target, raw)