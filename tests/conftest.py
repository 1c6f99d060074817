"""Shared fakes for the host environment."""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest

from drumline.authority import AuthorityService
from drumline.bus import MessageBus
from drumline.codec import CATEGORIES
from drumline.effects import EffectDispatcher
from drumline.errors import StorageError
from drumline.logger import DrumlineLogger
from drumline.protocol import Destination, Envelope
from drumline.storage import CategoryWriter


class MemoryStorage:
    def __init__(self, values: Optional[Dict[str, str]] = None) -> None:
        self.values: Dict[str, str] = dict(values or {})
        self.saves: List[Tuple[str, str]] = []
        self.loads: List[str] = []
        self.failing: Set[str] = set()
        self.delay = 0.0

    async def load(self, key: str) -> Optional[str]:
        self.loads.append(key)
        if key in self.failing:
            raise StorageError(f"cannot read {key}")
        return self.values.get(key)

    async def save(self, key: str, value: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if key in self.failing:
            raise StorageError("quota exceeded")
        self.saves.append((key, value))
        self.values[key] = value


class RecordingNotifier:
    def __init__(self) -> None:
        self.shown: List[Tuple[str, str]] = []

    async def notify(self, title: str, message: str) -> None:
        self.shown.append((title, message))


class RecordingInjector:
    def __init__(self) -> None:
        self.blocks = 0

    async def block_page(self) -> None:
        self.blocks += 1


class FakeClock:
    def __init__(self, hour: int = 12, minute: int = 0) -> None:
        self.set(hour, minute)

    def set(self, hour: int, minute: int = 0) -> None:
        self.now = datetime(2025, 3, 14, hour, minute)

    def __call__(self) -> datetime:
        return self.now


class Harness:
    """An authority wired to in-memory collaborators."""

    def __init__(self, logger: DrumlineLogger, storage: Optional[MemoryStorage] = None) -> None:
        self.storage = storage or MemoryStorage()
        self.notifier = RecordingNotifier()
        self.clock = FakeClock()
        self.bus = MessageBus(logger)
        self.panel_inbox: List[Envelope] = []
        self.agent_inbox: List[Envelope] = []
        writers = {key: CategoryWriter(self.storage, key) for key in CATEGORIES}
        dispatcher = EffectDispatcher(self.bus, self.notifier, writers, logger)
        self.authority = AuthorityService(self.storage, dispatcher, logger, self.clock)
        self.bus.register(Destination.AUTHORITY, self.authority.handle)
        self.bus.register(Destination.PANEL, self._collect(self.panel_inbox))
        self.bus.register(Destination.PAGE_AGENT, self._collect(self.agent_inbox))

    @staticmethod
    def _collect(inbox: List[Envelope]):
        async def handler(envelope: Envelope) -> None:
            inbox.append(envelope)

        return handler

    async def send(self, category: str, **payload):
        response = await self.bus.deliver(Envelope(Destination.AUTHORITY, category, payload))
        await self.bus.drain()
        return response

    async def navigate(self, url: str):
        decision = await self.authority.on_navigation(url)
        await self.bus.drain()
        return decision


@pytest.fixture
def logger(tmp_path: Path) -> DrumlineLogger:
    return DrumlineLogger(tmp_path / "drumline.log")


@pytest.fixture
def harness(logger: DrumlineLogger) -> Harness:
    return Harness(logger)
