"""Dispatcher: inbound event queue with per-user sequential workers.

The channel puts every inbound event on one queue. A consumer routes each
event to its sender's FIFO; one worker task per sender drains that FIFO,
so two messages from the same user are handled strictly one after the
other while different users proceed concurrently. A worker exits once its
FIFO is empty and is respawned by the next event for that user.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Optional

from offerbot.channels.base import InboundEvent

log = logging.getLogger("offerbot.dispatcher")

Handler = Callable[[InboundEvent], Awaitable[None]]


class Dispatcher:
    """Owns the inbound queue and the per-user worker tasks."""

    def __init__(self, handler: Handler) -> None:
        self._handler = handler
        self._queue: asyncio.Queue[InboundEvent] = asyncio.Queue()
        self._pending: dict[str, deque[InboundEvent]] = {}
        self._workers: dict[str, asyncio.Task] = {}
        self._consumer: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    @property
    def active_users(self) -> int:
        return len(self._workers)

    def start(self) -> None:
        if self.running:
            return
        self._consumer = asyncio.create_task(self._consume(), name="dispatcher")
        log.info("Dispatcher started")

    async def submit(self, event: InboundEvent) -> None:
        """Enqueue an event; returns as soon as it is queued."""
        await self._queue.put(event)

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._route(event)
            finally:
                self._queue.task_done()

    def _route(self, event: InboundEvent) -> None:
        user_id = event.sender_id
        self._pending.setdefault(user_id, deque()).append(event)
        if user_id not in self._workers:
            task = asyncio.create_task(self._drain(user_id), name=f"worker:{user_id}")
            self._workers[user_id] = task

    async def _drain(self, user_id: str) -> None:
        pending = self._pending[user_id]
        try:
            while pending:
                event = pending.popleft()
                try:
                    await self._handler(event)
                except asyncio.CancelledError:
                    raise
                except Exception:
                    log.exception("Handler failed for one event; worker continues")
        finally:
            self._workers.pop(user_id, None)
            if not pending:
                self._pending.pop(user_id, None)

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    async def stop(self) -> None:
        """Stop accepting work, then wait for in-flight workers to finish."""
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        if self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)
        log.info("Dispatcher stopped")
