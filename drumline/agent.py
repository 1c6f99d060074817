"""
drumline.agent
~~~~~~~~~~~~~~
Per-document enforcement.  One PageAgent lives for the lifetime of a
single document and blocks it on request.  Some hosts deliver the same
message twice, so directives carry an id and an immediate repeat is
dropped.
"""

from __future__ import annotations

from typing import Protocol

from .codec import BLOCKED_KEY, decode_blocked
from .errors import ProtocolError
from .logger import DrumlineLogger
from .protocol import Category, DuplicateFilter, Envelope
from .rules import normalize_hostname
from .storage import PersistenceAdapter


class PageInjector(Protocol):
    async def block_page(self) -> None:
        ...


class PageAgent:
    def __init__(self, injector: PageInjector, logger: DrumlineLogger):
        self.injector = injector
        self.logger = logger
        self.duplicates = DuplicateFilter()

    async def start(self, hostname: str, storage: PersistenceAdapter) -> bool:
        """Block straight away if the document's host is indefinitely blocked."""
        try:
            host = normalize_hostname(hostname)
        except ValueError as e:
            raise ProtocolError(f"Cannot parse document host {hostname!r}: {e}") from e
        blocked = decode_blocked(await storage.load(BLOCKED_KEY))
        if host and host in blocked:
            await self.injector.block_page()
            return True
        return False

    async def handle(self, envelope: Envelope) -> None:
        if self.duplicates.is_duplicate(envelope.id):
            self.logger.duplicate(envelope.category, envelope.id or "-")
            return

        if envelope.category == Category.BLOCK_CURRENT_DOMAIN:
            await self.injector.block_page()
        else:
            self.logger.protocol_error(f"Unknown message category: {envelope.category}")
            raise ProtocolError(f"Unknown message category: {envelope.category}")
