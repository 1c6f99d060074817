"""
drumline.effects
~~~~~~~~~~~~~~~~
Side effects requested by the authority's decision logic, and the thin
dispatcher that carries them out against the host environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Union

from .bus import MessageBus
from .errors import StorageError
from .logger import DrumlineLogger
from .protocol import Category, Destination, Envelope, directive
from .rules import Rule
from .storage import CategoryWriter


class Notifier(Protocol):
    async def notify(self, title: str, message: str) -> None:
        ...


class LogNotifier:
    """Stand-in used when no desktop notification surface is attached."""

    def __init__(self, logger: DrumlineLogger):
        self.logger = logger

    async def notify(self, title: str, message: str) -> None:
        self.logger.log.warning({"event": "notification", "title": title, "message": message})


@dataclass(frozen=True)
class BlockPage:
    hostname: str
    reason: str


@dataclass(frozen=True)
class PushToPanel:
    category: Category
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NotifyUser:
    title: str
    message: str


@dataclass(frozen=True)
class Persist:
    key: str
    value: str


Effect = Union[BlockPage, PushToPanel, NotifyUser, Persist]


@dataclass
class Decision:
    hostname: str
    blocked: bool
    rule: Optional[Rule]
    effects: List[Effect] = field(default_factory=list)


class EffectDispatcher:
    def __init__(
        self,
        bus: MessageBus,
        notifier: Notifier,
        writers: Mapping[str, CategoryWriter],
        logger: DrumlineLogger,
    ):
        self.bus = bus
        self.notifier = notifier
        self.writers = writers
        self.logger = logger

    async def dispatch(self, effects: Iterable[Effect]) -> None:
        for effect in effects:
            if isinstance(effect, BlockPage):
                envelope = directive(Category.BLOCK_CURRENT_DOMAIN)
                self.logger.block(effect.hostname, effect.reason, envelope.id or "-")
                self.bus.send(envelope)
            elif isinstance(effect, PushToPanel):
                self.bus.send(Envelope(Destination.PANEL, effect.category.value, effect.payload))
            elif isinstance(effect, NotifyUser):
                await self.notify(effect.title, effect.message)
            elif isinstance(effect, Persist):
                await self._persist(effect)
            else:
                raise TypeError(f"Unknown effect: {effect!r}")

    async def notify(self, title: str, message: str) -> None:
        try:
            await self.notifier.notify(title, message)
        except Exception as e:  # noqa: BLE001
            self.logger.notify_fail(title, repr(e))

    async def _persist(self, effect: Persist) -> None:
        try:
            await self.writers[effect.key].save(effect.value)
        except StorageError as e:
            self.logger.storage_fail(effect.key, e.msg)
            await self.notify("Storage warning", f"Could not save {effect.key}: {e.msg}")
