"""Tests for the JSON file store and per-category writers."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from drumline.errors import StorageError
from drumline.storage import CategoryWriter, JsonFileStorage

from conftest import MemoryStorage


def test_missing_file_loads_nothing(tmp_path: Path) -> None:
    storage = JsonFileStorage(tmp_path / "store.json")
    assert asyncio.run(storage.load("blocked")) is None


def test_save_keeps_other_keys(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "store.json"
    storage = JsonFileStorage(path)

    async def scenario() -> None:
        await storage.save("blocked", "example.com")
        await storage.save("dailyBlockTimes", "news.example.org 9-17")

    asyncio.run(scenario())
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "blocked": "example.com",
        "dailyBlockTimes": "news.example.org 9-17",
    }
    assert asyncio.run(storage.load("blocked")) == "example.com"


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"blocked": 3}'])
def test_corrupt_file_is_storage_error(tmp_path: Path, content: str) -> None:
    path = tmp_path / "store.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(StorageError):
        asyncio.run(JsonFileStorage(path).load("blocked"))


def test_unwritable_location_is_storage_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    storage = JsonFileStorage(blocker / "store.json")
    with pytest.raises(StorageError):
        asyncio.run(storage.save("blocked", "example.com"))


def test_writer_last_write_wins() -> None:
    storage = MemoryStorage()
    storage.delay = 0.01
    writer = CategoryWriter(storage, "blocked")

    async def scenario():
        return await asyncio.gather(
            writer.save("a.com"),
            writer.save("a.com b.com"),
            writer.save("a.com b.com c.com"),
        )

    results = asyncio.run(scenario())
    assert storage.values["blocked"] == "a.com b.com c.com"
    assert storage.saves[-1] == ("blocked", "a.com b.com c.com")
    assert results[-1] is True
    assert results[1] is False


def test_writer_sequential_saves_all_land() -> None:
    storage = MemoryStorage()
    writer = CategoryWriter(storage, "blocked")

    async def scenario() -> None:
        await writer.save("a.com")
        await writer.save("")

    asyncio.run(scenario())
    assert storage.saves == [("blocked", "a.com"), ("blocked", "")]
