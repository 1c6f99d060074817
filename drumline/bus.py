"""
drumline.bus
~~~~~~~~~~~~
Routes envelopes to whichever context currently owns a destination.
Contexts come and go (the panel closes, pages unload); a message for an
absent destination is dropped, mirroring "receiving end does not exist".
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from .logger import DrumlineLogger
from .protocol import Destination, Envelope

Handler = Callable[[Envelope], Awaitable[Any]]


class MessageBus:
    def __init__(self, logger: DrumlineLogger):
        self.logger = logger
        self._handlers: Dict[Destination, Handler] = {}
        self._pending: Set[asyncio.Task] = set()

    def register(self, destination: Destination, handler: Handler) -> None:
        self._handlers[destination] = handler

    def unregister(self, destination: Destination, handler: Optional[Handler] = None) -> None:
        if handler is None or self._handlers.get(destination) is handler:
            self._handlers.pop(destination, None)

    def is_attached(self, destination: Destination) -> bool:
        return destination in self._handlers

    async def deliver(self, envelope: Envelope) -> Any:
        """Run the destination's handler and propagate whatever it raises."""
        handler = self._handlers.get(envelope.destination)
        if handler is None:
            self.logger.undeliverable(envelope.destination.value, envelope.category)
            return None
        return await handler(envelope)

    async def request(self, envelope: Envelope) -> Any:
        return await self.deliver(envelope)

    def send(self, envelope: Envelope) -> asyncio.Task:
        """Fire-and-forget; failures are logged, never raised to the sender."""
        task = asyncio.get_running_loop().create_task(self.deliver(envelope))
        self._pending.add(task)
        task.add_done_callback(lambda t: self._finished(envelope, t))
        return task

    async def drain(self) -> None:
        """Wait for every in-flight send. Used at shutdown and in tests."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _finished(self, envelope: Envelope, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.send_fail(envelope.destination.value, envelope.category, repr(exc))
