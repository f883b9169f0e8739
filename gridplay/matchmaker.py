"""Pairs waiting connections and reports each pair to the mediator."""

from __future__ import annotations

import asyncio
import logging
import uuid

from gridplay import invariants
from gridplay.events import Event, Mediator, MediatorEvent, PlayersMatchedEvent, Sender

log = logging.getLogger(__name__)


class Matchmaker:
    """Matches connections two at a time, in the order they were added."""

    def __init__(self, mediator: Mediator) -> None:
        invariants.ensure_not_none(mediator, "mediator was nil")
        self._mediator = mediator
        self._waiting: asyncio.Queue[uuid.UUID] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_loop_running(self) -> bool:
        return self._running

    def start_loop(self) -> None:
        invariants.ensure(not self._running, "loop was already running")
        self._task = asyncio.get_running_loop().create_task(self._loop())
        self._running = True

    def end_loop(self) -> None:
        invariants.ensure(self._running, "loop wasn't running")
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._running = False

    def add(self, conn_id: uuid.UUID) -> None:
        """Put a connection in line for a match."""
        self._waiting.put_nowait(conn_id)

    async def _loop(self) -> None:
        ids: list[uuid.UUID] = []
        while True:
            conn_id = await self._waiting.get()
            invariants.ensure(len(ids) < 2, "wrong ids length")
            ids.append(conn_id)
            if len(ids) == 2:
                self._match(ids)
                ids = []

    def _match(self, ids: list[uuid.UUID]) -> None:
        invariants.ensure(len(ids) == 2, "wrong ids length")
        log.debug("matched %s and %s", ids[0], ids[1])
        self._notify(PlayersMatchedEvent(ids=(ids[0], ids[1])))

    def _notify(self, event: Event) -> None:
        invariants.ensure_not_none(self._mediator, "mediator was nil")
        self._mediator.notify(MediatorEvent(sender=Sender.MATCHMAKER, event=event))