"""Runtime invariant checks that dump a diagnostic report before failing."""

from __future__ import annotations

import json
import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TextIO

_TIME_FORMAT = "%m-%d-%Y %H:%M:%S"


@dataclass
class _ReportState:
    context: dict[str, Any] = field(default_factory=dict)
    writer: TextIO | None = None

    def target(self) -> TextIO:
        return self.writer if self.writer is not None else sys.stderr


_state = _ReportState()


class InvariantError(AssertionError):
    """Raised when an internal invariant of the program does not hold."""

    def __init__(self, message: str, details: tuple[Any, ...] = ()) -> None:
        self.message = message
        self.details = details
        text = message
        if details:
            text += ": " + ", ".join(_stringify(item) for item in details)
        super().__init__(text)


def add_context(key: str, value: Any) -> None:
    """Attach a value that is reported with every invariant failure."""
    _state.context[key] = value


def remove_context(key: str) -> None:
    """Forget a value added with add_context; unknown keys are ignored."""
    _state.context.pop(key, None)


def set_writer(writer: TextIO | None) -> None:
    """Send failure reports to ``writer``; ``None`` sends them to stderr."""
    _state.writer = writer


def get_time() -> str:
    """Current local time as ``MM-DD-YYYY HH:MM:SS``."""
    return datetime.now().strftime(_TIME_FORMAT)


def _stringify(item: Any) -> str:
    if item is None:
        return "nil"
    if isinstance(item, str):
        return item
    if isinstance(item, (bytes, bytearray)):
        return bytes(item).decode("utf-8", errors="replace")
    if isinstance(item, int) and not isinstance(item, bool):
        return str(int(item))
    try:
        return json.dumps(item)
    except (TypeError, ValueError):
        return str(item)


def _fail(msg: str, args: tuple[Any, ...]) -> None:
    lines = [get_time(), ""]
    lines.extend(f"{key}={_stringify(value)}" for key, value in _state.context.items())
    lines.append(f"{msg}: " + "".join(f"{_stringify(item)}: " for item in args))
    stack = "".join(traceback.format_stack()[:-2])
    report = "\n".join(lines) + "\n" + stack

    target = _state.target()
    target.write(report)
    flush = getattr(target, "flush", None)
    if callable(flush):
        flush()

    raise InvariantError(msg, args)


def ensure(truth: bool, msg: str, *args: Any) -> None:
    """Fail with ``msg`` unless ``truth`` holds."""
    if not truth:
        _fail(msg, args)


def ensure_not_none(item: Any, msg: str) -> None:
    """Fail with ``msg`` when ``item`` is None."""
    if item is None:
        _fail(msg, ())


def never(msg: str, *args: Any) -> None:
    """Mark a code path that must not be reached."""
    _fail(msg, args)


def ensure_no_error(err: BaseException | None, msg: str, *args: Any) -> None:
    """Fail with ``msg`` when ``err`` is set."""
    if err is not None:
        _fail(msg, (*args, err))