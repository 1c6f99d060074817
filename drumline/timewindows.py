"""
drumline.timewindows
~~~~~~~~~~~~~~~~~~~~
Recurring daily block windows.

Spec text
---------
9-17
0-14:30,22-24

Ranges are comma separated; each side of ``-`` is ``H`` or ``H:MM``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Iterable, List, Optional, Tuple, Union

from .errors import ValidationError

MAX_HOUR = 24
MAX_MINUTE = 59


@dataclass(frozen=True, slots=True)
class Window:
    start_hour: int
    end_hour: int
    start_minute: Optional[int] = None
    end_minute: Optional[int] = None

    @property
    def start(self) -> Tuple[int, int]:
        return self.start_hour, self.start_minute or 0

    @property
    def end(self) -> Tuple[int, int]:
        return self.end_hour, self.end_minute or 0

    def contains(self, hour: int, minute: int) -> bool:
        """
        Literal four-way match. No wraparound past midnight is applied when
        ``end_hour < start_hour``: "22-6" only matches 22:00-22:59, plus
        ``6:MM`` for any end minute greater than the current minute.
        """
        start_hour, start_minute = self.start
        end_hour, end_minute = self.end
        return (
            start_hour < hour < end_hour
            or (start_hour == end_hour == hour and start_minute <= minute < end_minute)
            or (hour == start_hour and minute >= start_minute)
            or (hour == end_hour and minute < end_minute)
        )

    def __str__(self) -> str:
        return f"{_fmt(self.start_hour, self.start_minute)}-{_fmt(self.end_hour, self.end_minute)}"


def is_blocked(windows: Optional[Iterable[Window]], now: Union[datetime, time]) -> bool:
    """True if *now* falls inside any of *windows*."""
    if not windows:
        return False
    return any(w.contains(now.hour, now.minute) for w in windows)


# ------------------------------------------------------------------ #
# spec text
# ------------------------------------------------------------------ #


def parse_windows(text: str, *, check_order: bool = True) -> List[Window]:
    """
    Parse spec text into windows, raising ValidationError on the first
    problem found. Stored data is parsed with ``check_order=False`` so that
    legacy entries whose end precedes their start still load.
    """
    windows: List[Window] = []
    for index, time_range in enumerate(text.replace(" ", "").split(",")):
        times = time_range.split("-")
        if len(times) != 2:
            raise ValidationError("Any time entered must be in ranges")

        start_hour, start_minute = _parse_time(times[0], "Start", index)
        end_hour, end_minute = _parse_time(times[1], "End", index)
        window = Window(start_hour, end_hour, start_minute, end_minute)
        if check_order and window.start >= window.end:
            raise ValidationError("Each time range's start must be less than its end")
        windows.append(window)
    return windows


def format_windows(windows: Iterable[Window]) -> str:
    return ",".join(str(w) for w in windows)


def _parse_time(raw: str, name: str, index: int) -> Tuple[int, Optional[int]]:
    parts = raw.split(":")
    if len(parts) > 2:
        raise ValidationError(
            f"{name} time in time range with index {index} must have zero or one colon"
        )
    hour = _parse_hand(parts[0], name, "hour", index)
    minute = _parse_hand(parts[1], name, "minute", index) if len(parts) == 2 else None
    return hour, minute


def _parse_hand(hand: str, time_name: str, hand_name: str, index: int) -> int:
    problem = None
    if not hand:
        problem = "not be empty"
    elif not (hand.isascii() and hand.isdigit()):
        problem = "be an integer"
    elif hand_name == "hour" and int(hand) > MAX_HOUR:
        problem = f"not be greater than {MAX_HOUR}"
    elif hand_name == "minute" and int(hand) > MAX_MINUTE:
        problem = f"not be greater than {MAX_MINUTE}"

    if problem:
        raise ValidationError(
            f"{time_name} time's {hand_name} in time range with index {index} must {problem}"
        )
    return int(hand)


def _fmt(hour: int, minute: Optional[int]) -> str:
    return str(hour) if minute is None else f"{hour}:{minute:02d}"
