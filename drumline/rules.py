"""
drumline.rules
~~~~~~~~~~~~~~
Per-hostname block rules and the in-memory store that owns them.
No I/O happens here; the authority persists after every mutation.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
from urllib.parse import urlsplit

from .errors import PreconditionError, ValidationError
from .timewindows import Window, format_windows, is_blocked


def normalize_hostname(value: str) -> str:
    """
    Hostname component of a URL or bare host, lower-cased.  URLs without an
    authority (``about:blank``, ``mailto:...``) have no hostname and give "".
    Applying it to its own result changes nothing.  Raises ValueError for
    unparseable input such as an unclosed ``[``.
    """
    value = value.strip()
    if not value:
        return ""
    if _ipv6(value):
        return _ipv6(value)
    if "//" not in value:
        head, sep, tail = value.partition(":")
        if sep and not tail.isdigit() and not head.startswith("["):
            return ""
        value = "//" + value
    host = (urlsplit(value).hostname or "").rstrip(".")
    return _ipv6(host) or host


def _ipv6(value: str) -> str:
    """Canonical form of a bare IPv6 literal, or "" if *value* is not one."""
    if ":" not in value:
        return ""
    try:
        return str(ipaddress.IPv6Address(value))
    except ValueError:
        return ""


@dataclass
class Rule:
    indefinite_block: Optional[bool] = None
    windows: Optional[List[Window]] = None
    # not evaluated yet
    tracked: Optional[bool] = None
    daily_time_limit: Optional[timedelta] = None

    def is_empty(self) -> bool:
        return (
            self.indefinite_block is None
            and self.windows is None
            and self.tracked is None
            and self.daily_time_limit is None
        )

    def to_payload(self) -> Dict[str, Any]:
        """Wire form sent to the panel; absent fields are omitted."""
        payload: Dict[str, Any] = {}
        if self.indefinite_block is not None:
            payload["indefiniteBlock"] = self.indefinite_block
        if self.windows is not None:
            payload["dailyBlockTimes"] = format_windows(self.windows)
        if self.tracked is not None:
            payload["tracked"] = self.tracked
        if self.daily_time_limit is not None:
            minutes = int(self.daily_time_limit.total_seconds()) // 60
            payload["dailyTimeLimit"] = f"{minutes // 60}:{minutes % 60:02d}"
        return payload


class RuleStore:
    def __init__(self) -> None:
        self._rules: Dict[str, Rule] = {}

    # ------------------------------------------------------------------ #
    # queries
    # ------------------------------------------------------------------ #

    def get(self, hostname: str) -> Optional[Rule]:
        return self._rules.get(normalize_hostname(hostname))

    def is_blocked_now(self, hostname: str, now: Union[datetime, time]) -> bool:
        rule = self.get(hostname)
        if rule is None:
            return False
        if rule.indefinite_block:
            return True
        return is_blocked(rule.windows, now)

    def indefinitely_blocked(self) -> List[str]:
        return [h for h, r in self._rules.items() if r.indefinite_block]

    def daily_windows(self) -> Dict[str, List[Window]]:
        return {h: list(r.windows) for h, r in self._rules.items() if r.windows}

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, hostname: object) -> bool:
        return isinstance(hostname, str) and normalize_hostname(hostname) in self._rules

    # ------------------------------------------------------------------ #
    # mutations
    # ------------------------------------------------------------------ #

    def load(self, rules: Mapping[str, Rule]) -> None:
        """Install decoded rules at startup. Empty rules are dropped."""
        for hostname, rule in rules.items():
            if not rule.is_empty():
                self._rules[normalize_hostname(hostname)] = rule

    def set_indefinite_block(self, hostname: str) -> Rule:
        rule = self._get_or_create(hostname)
        rule.indefinite_block = True
        return rule

    def set_windows(self, hostname: str, windows: Iterable[Window]) -> Rule:
        windows = list(windows)
        if not windows:
            raise ValidationError("At least one time range is required")
        rule = self._get_or_create(hostname)
        rule.windows = windows
        return rule

    def clear_indefinite_block(self, hostname: str) -> Optional[Rule]:
        rule = self._require(hostname, "clear indefinite block")
        rule.indefinite_block = None
        return self._prune(hostname, rule)

    def clear_windows(self, hostname: str) -> Optional[Rule]:
        rule = self._require(hostname, "clear daily windows")
        rule.windows = None
        return self._prune(hostname, rule)

    # ------------------------------------------------------------------ #
    # private
    # ------------------------------------------------------------------ #

    def _get_or_create(self, hostname: str) -> Rule:
        return self._rules.setdefault(normalize_hostname(hostname), Rule())

    def _require(self, hostname: str, action: str) -> Rule:
        rule = self.get(hostname)
        if rule is None:
            raise PreconditionError(normalize_hostname(hostname), action)
        return rule

    def _prune(self, hostname: str, rule: Rule) -> Optional[Rule]:
        if rule.is_empty():
            del self._rules[normalize_hostname(hostname)]
            return None
        return rule
