"""
drumline.storage
~~~~~~~~~~~~~~~~
Durable key/value store for the persisted rule categories.

drumline-storage.json
---------------------
{"blocked": "example.com", "dailyBlockTimes": "news.example.org 9-17"}
"""

from __future__ import annotations

import asyncio
import json
import os
import pathlib
import threading
from typing import Dict, Optional, Protocol

from .errors import StorageError


class PersistenceAdapter(Protocol):
    async def load(self, key: str) -> Optional[str]:
        ...

    async def save(self, key: str, value: str) -> None:
        ...


class JsonFileStorage:
    def __init__(self, path: str | pathlib.Path):
        self.path = pathlib.Path(path)
        self._file_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # public
    # ------------------------------------------------------------------ #

    async def load(self, key: str) -> Optional[str]:
        data = await asyncio.to_thread(self._read)
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise StorageError(f"Stored value for {key!r} is not a string")
        return value

    async def save(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, key, value)

    # ------------------------------------------------------------------ #
    # private
    # ------------------------------------------------------------------ #

    def _read(self) -> Dict[str, object]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e

        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as e:
            raise StorageError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"{self.path} does not hold a JSON object")
        return data

    def _write(self, key: str, value: str) -> None:
        # both categories share one file
        with self._file_lock:
            data = self._read()
            data[key] = value
            tmp = self.path.with_name(self.path.name + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
                os.replace(tmp, self.path)
            except OSError as e:
                raise StorageError(f"Cannot write {self.path}: {e}") from e


class CategoryWriter:
    """
    Serializes saves of one category.  A save that is superseded by a newer
    one while waiting for the lock is skipped, so the last value requested
    is always the last value written.
    """

    def __init__(self, storage: PersistenceAdapter, key: str):
        self.storage = storage
        self.key = key
        self._lock = asyncio.Lock()
        self._latest = 0

    async def save(self, value: str) -> bool:
        """Return False if the write was skipped in favour of a newer one."""
        self._latest += 1
        seq = self._latest
        async with self._lock:
            if seq != self._latest:
                return False
            await self.storage.save(self.key, value)
            return True
