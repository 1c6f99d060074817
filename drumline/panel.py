"""
drumline.panel
~~~~~~~~~~~~~~
Control-panel state.  The panel is short-lived: it asks the authority once
when it opens, then follows pushed updates until it is closed.  Drawing
the controls is the host's business; this class only holds what they show.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from .bus import MessageBus
from .effects import Notifier
from .errors import ProtocolError, ValidationError
from .protocol import Category, Destination, Envelope
from .timewindows import parse_windows

BLOCK = "Block this site"
UNBLOCK = "Unblock this site"
REMOVE_DAILY = "Remove daily block"


class Mode(Enum):
    INDEFINITE = "indefinite"
    DAILY = "daily"


class Panel:
    def __init__(self, bus: MessageBus, notifier: Notifier):
        self.bus = bus
        self.notifier = notifier
        self.label = BLOCK
        self.mode = Mode.INDEFINITE
        self.daily_times = ""
        self.refresh_visible = False

    async def open(self) -> Dict[str, Any]:
        response = await self.bus.request(
            Envelope(Destination.AUTHORITY, Category.IS_HOSTNAME_BLOCKED.value)
        )
        if not response:
            raise ProtocolError(f"response: {response!r}")

        rule: Optional[Dict[str, Any]] = response.get("rule")
        if response.get("answer") == "yes":
            self.label = REMOVE_DAILY if rule and rule.get("dailyBlockTimes") else UNBLOCK
        else:
            self.label = BLOCK

        if rule and rule.get("dailyBlockTimes"):
            self.daily_times = rule["dailyBlockTimes"]
            self.mode = Mode.DAILY
        return response

    async def handle(self, envelope: Envelope) -> None:
        if envelope.category == Category.HOSTNAME_IS_BLOCKED:
            self.label = UNBLOCK
            if envelope.payload.get("dailyBlockTimes"):
                self.daily_times = envelope.payload["dailyBlockTimes"]
        elif envelope.category == Category.HOSTNAME_IS_NOT_BLOCKED:
            self.label = BLOCK
        else:
            raise ProtocolError(f"Unknown message category: {envelope.category}")

    async def click(self) -> Envelope:
        """Press the block button; returns the message sent to the authority."""
        if self.label == BLOCK:
            self.refresh_visible = False
            if self.mode is Mode.INDEFINITE:
                self.label = UNBLOCK
                envelope = self._to_authority(Category.BLOCK_INDEFINITELY)
            else:
                times = self.daily_times.replace(" ", "")
                try:
                    parse_windows(times)
                except ValidationError as e:
                    await self.notifier.notify("Input error", e.msg)
                    raise
                self.label = REMOVE_DAILY
                envelope = self._to_authority(Category.BLOCK_AT_DAILY_TIMES, times=times)
        elif self.label == UNBLOCK:
            self.refresh_visible = True
            self.label = BLOCK
            envelope = self._to_authority(Category.UNBLOCK)
        elif self.label == REMOVE_DAILY:
            self.label = BLOCK
            envelope = self._to_authority(Category.DELETE_DAILY_BLOCK_RULE)
        else:
            raise ProtocolError(f"Unknown block button text: {self.label}")

        self.bus.send(envelope)
        return envelope

    @staticmethod
    def _to_authority(category: Category, **payload: Any) -> Envelope:
        return Envelope(Destination.AUTHORITY, category.value, payload)
