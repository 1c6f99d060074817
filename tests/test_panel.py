"""Tests for the control panel's state machine."""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from drumline.bus import MessageBus
from drumline.errors import ProtocolError, ValidationError
from drumline.panel import BLOCK, REMOVE_DAILY, UNBLOCK, Mode, Panel
from drumline.protocol import Category, Destination, Envelope

from conftest import Harness, RecordingNotifier


def _panel(harness: Harness) -> Panel:
    panel = Panel(harness.bus, harness.notifier)
    harness.bus.register(Destination.PANEL, panel.handle)
    return panel


def test_open_on_unblocked_site(harness: Harness) -> None:
    panel = _panel(harness)

    async def scenario():
        await harness.navigate("https://example.com/")
        return await panel.open()

    assert asyncio.run(scenario()) == {"answer": "no", "rule": None}
    assert panel.label == BLOCK
    assert panel.mode is Mode.INDEFINITE


def test_open_on_daily_blocked_site(harness: Harness) -> None:
    panel = _panel(harness)

    async def scenario() -> None:
        await harness.authority.on_navigation("https://example.com/")
        await harness.send(Category.BLOCK_AT_DAILY_TIMES.value, times="9-17")
        await panel.open()

    asyncio.run(scenario())
    assert panel.label == REMOVE_DAILY
    assert panel.mode is Mode.DAILY
    assert panel.daily_times == "9-17"


def test_click_through_indefinite_block(harness: Harness) -> None:
    panel = _panel(harness)

    async def scenario() -> List[str]:
        await harness.navigate("https://example.com/")
        await panel.open()
        sent = [await panel.click()]
        await harness.bus.drain()
        assert harness.authority.store.get("example.com") is not None
        assert panel.label == UNBLOCK
        sent.append(await panel.click())
        await harness.bus.drain()
        return [e.category for e in sent]

    assert asyncio.run(scenario()) == [
        "blockCurrentHostnameIndefinitely",
        "unblockCurrentHostname",
    ]
    assert panel.label == BLOCK
    assert panel.refresh_visible
    assert "example.com" not in harness.authority.store


def test_click_daily_block_strips_spaces(harness: Harness) -> None:
    panel = _panel(harness)
    panel.mode = Mode.DAILY
    panel.daily_times = "9 - 17, 22:30-24"

    async def scenario() -> Envelope:
        await harness.navigate("https://example.com/")
        sent = await panel.click()
        await harness.bus.drain()
        return sent

    sent = asyncio.run(scenario())
    assert sent.payload == {"times": "9-17,22:30-24"}
    assert panel.label == REMOVE_DAILY
    assert harness.storage.values["dailyBlockTimes"] == "example.com 9-17,22:30-24"


def test_click_with_bad_times_sends_nothing(harness: Harness) -> None:
    panel = _panel(harness)
    panel.mode = Mode.DAILY
    panel.daily_times = "17-9"

    with pytest.raises(ValidationError):
        asyncio.run(panel.click())
    assert panel.label == BLOCK
    assert harness.notifier.shown == [
        ("Input error", "Each time range's start must be less than its end")
    ]


def test_pushes_update_label(harness: Harness) -> None:
    panel = _panel(harness)
    harness.authority.store.set_indefinite_block("example.com")

    async def scenario() -> None:
        await harness.navigate("https://example.com/")
        assert panel.label == UNBLOCK
        await harness.navigate("https://other.example.org/")

    asyncio.run(scenario())
    assert panel.label == BLOCK


def test_unknown_push_is_protocol_error(logger) -> None:
    panel = Panel(MessageBus(logger), RecordingNotifier())
    with pytest.raises(ProtocolError):
        asyncio.run(panel.handle(Envelope(Destination.PANEL, "somethingElse")))


def test_missing_response_is_hard_error(logger) -> None:
    # no authority attached, so the request comes back empty
    panel = Panel(MessageBus(logger), RecordingNotifier())
    with pytest.raises(ProtocolError):
        asyncio.run(panel.open())
