"""
drumline.logger
~~~~~~~~~~~~~~~
JSON-lines event log with daily rotation, plus an optional human-readable
console stream.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

_ISO = "%Y-%m-%dT%H:%M:%SZ"


def _now() -> str:  # RFC-3339 without microseconds
    return datetime.now(tz=timezone.utc).strftime(_ISO)


class _PlainFormatter(logging.Formatter):
    """ e.g. 2025-06-19T15:07:02Z block example.com reason=indefinite """

    def format(self, record):  # type: ignore[override]
        if not isinstance(record.msg, dict):
            return super().format(record)
        d: Dict[str, Any] = dict(record.msg)
        parts = [d.pop("ts", _now()), d.pop("event", "-")]
        host = d.pop("hostname", None)
        if host:
            parts.append(host)
        parts.extend(f"{k}={v}" for k, v in d.items())
        return " ".join(str(p) for p in parts)


class _JSONFormatter(logging.Formatter):
    def format(self, record):  # type: ignore[override]
        if isinstance(record.msg, dict):
            return json.dumps(record.msg, separators=(",", ":"))
        return json.dumps({"ts": _now(), "event": "message", "text": record.getMessage()})


class DrumlineLogger:
    def __init__(self, basename: str | Path | None = None, console: bool = False):
        root = logging.getLogger("drumline")
        root.setLevel(logging.DEBUG)
        root.propagate = False  # don't spam the root logger
        for old in list(root.handlers):
            root.removeHandler(old)
            old.close()

        if basename is not None:
            basename = Path(basename).with_suffix("")  # drumline
            jsonl_file = basename.with_suffix(".jsonl")
            jsonl_file.parent.mkdir(parents=True, exist_ok=True)

            # json lines
            h = logging.handlers.TimedRotatingFileHandler(
                jsonl_file, when="midnight", backupCount=7, encoding="utf-8"
            )
            h.setLevel(logging.INFO)
            h.setFormatter(_JSONFormatter())
            root.addHandler(h)

        if console:
            c = logging.StreamHandler()
            c.setLevel(logging.INFO)
            c.setFormatter(_PlainFormatter())
            root.addHandler(c)

        if not root.handlers:
            root.addHandler(logging.NullHandler())

        self.log = root

    def _emit(self, level: int, event: str, **fields: Any) -> None:
        self.log.log(level, {"event": event, "ts": _now(), **fields})

    def listening(self, bind: str):
        self._emit(logging.INFO, "listening", bind=bind)

    def navigation(self, hostname: str, blocked: bool):
        self._emit(logging.INFO, "navigation", hostname=hostname, blocked=blocked)

    def block(self, hostname: str, reason: str, message_id: str):
        self._emit(logging.INFO, "block", hostname=hostname, reason=reason, id=message_id)

    def rule_changed(self, hostname: str, action: str, rule: Optional[Dict[str, Any]]):
        self._emit(logging.INFO, "rule_changed", hostname=hostname, action=action, rule=rule)

    def storage_fail(self, category: str, error: str):
        self._emit(logging.WARNING, "storage_fail", category=category, error=error)

    def duplicate(self, category: str, message_id: str):
        self._emit(logging.INFO, "duplicate", category=category, id=message_id)

    def protocol_error(self, detail: str):
        self._emit(logging.ERROR, "protocol_error", detail=detail)

    def precondition_fail(self, hostname: str, action: str):
        self._emit(logging.WARNING, "precondition_fail", hostname=hostname, action=action)

    def request_failed(self, error: str, message: str):
        self._emit(logging.WARNING, "request_failed", error=error, message=message)

    def send_fail(self, destination: str, category: str, error: str):
        self._emit(logging.ERROR, "send_fail", destination=destination, category=category, error=error)

    def notify_fail(self, title: str, error: str):
        self._emit(logging.WARNING, "notify_fail", title=title, error=error)

    def undeliverable(self, destination: str, category: str):
        self._emit(logging.DEBUG, "undeliverable", destination=destination, category=category)
