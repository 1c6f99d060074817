"""
drumline.codec
~~~~~~~~~~~~~~
Persisted rule layout.  Two independent string entries, no version tag:

blocked
-------
example.com news.example.org

dailyBlockTimes
---------------
example.com 9-17$news.example.org 0-14:30,22-24
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

from .errors import ValidationError
from .rules import Rule, normalize_hostname
from .timewindows import Window, format_windows, parse_windows

BLOCKED_KEY = "blocked"
DAILY_BLOCK_TIMES_KEY = "dailyBlockTimes"
CATEGORIES = (BLOCKED_KEY, DAILY_BLOCK_TIMES_KEY)

_ENTRY_SEP = "$"


def encode_blocked(hostnames: Iterable[str]) -> str:
    return " ".join(hostnames)


def decode_blocked(value: Optional[str]) -> List[str]:
    return [_stored_host(h) for h in (value or "").split()]


def encode_daily(daily: Mapping[str, Iterable[Window]]) -> str:
    return _ENTRY_SEP.join(f"{host} {format_windows(ws)}" for host, ws in daily.items())


def decode_daily(value: Optional[str]) -> Dict[str, List[Window]]:
    daily: Dict[str, List[Window]] = {}
    for entry in (value or "").split(_ENTRY_SEP):
        entry = entry.strip()
        if not entry:
            continue
        host, _, spec = entry.partition(" ")
        if not spec.strip():
            raise ValidationError(f"Daily block entry for {host} has no times")
        daily[_stored_host(host)] = parse_windows(spec, check_order=False)
    return daily


def _stored_host(raw: str) -> str:
    try:
        return normalize_hostname(raw)
    except ValueError as e:
        raise ValidationError(f"Stored hostname {raw!r} is malformed: {e}") from None


def encode_rules(rules: Mapping[str, Rule]) -> Dict[str, str]:
    blocked = [h for h, r in rules.items() if r.indefinite_block]
    daily = {h: r.windows for h, r in rules.items() if r.windows}
    return {
        BLOCKED_KEY: encode_blocked(blocked),
        DAILY_BLOCK_TIMES_KEY: encode_daily(daily),
    }


def decode_rules(values: Mapping[str, Optional[str]]) -> Dict[str, Rule]:
    rules: Dict[str, Rule] = {}
    for host in decode_blocked(values.get(BLOCKED_KEY)):
        rules.setdefault(host, Rule()).indefinite_block = True
    for host, windows in decode_daily(values.get(DAILY_BLOCK_TIMES_KEY)).items():
        rules.setdefault(host, Rule()).windows = windows
    return rules
