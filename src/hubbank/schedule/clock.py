"""Minute-of-day arithmetic on the cyclic 24-hour hub clock."""

from __future__ import annotations

from typing import Optional

MINUTES_PER_DAY = 1440
SLOTS_PER_DAY = 24


def parse_clock(token: object) -> Optional[int]:
    """
    Parse an HH:MM string into minutes since midnight.

    Args:
        token: Raw value, usually from an import row or a manual edit.
    Returns:
        Minutes since midnight (0-1439), or ``None`` when the value is not a
        well-formed clock time. A trailing ``:SS`` component is ignored.
    """
    if not isinstance(token, str):
        return None
    text = token.strip()
    if ":" not in text:
        return None
    parts = text.split(":")
    if len(parts) not in (2, 3):
        return None
    hour_str, minute_str = parts[0].strip(), parts[1].strip()
    if not hour_str.isdigit() or not minute_str.isdigit():
        return None
    hour = int(hour_str)
    minute = int(minute_str)
    if hour > 23 or minute > 59:
        return None
    return hour * 60 + minute


def minutes_of(hour_slot: int, exact_time: str | int | None = None) -> int:
    """Return the exact time in minutes, falling back to the slot's top-of-hour."""
    if isinstance(exact_time, int) and not isinstance(exact_time, bool):
        return exact_time % MINUTES_PER_DAY
    parsed = parse_clock(exact_time)
    if parsed is None:
        return (int(hour_slot) * 60) % MINUTES_PER_DAY
    return parsed


def format_clock(minutes: int) -> str:
    hours, mins = divmod(int(round(minutes)) % MINUTES_PER_DAY, 60)
    return f"{hours:02d}:{mins:02d}"


def format_duration(minutes: int) -> str:
    hours, mins = divmod(int(round(minutes)), 60)
    return f"{hours}h {mins}m"


def slot_label(index: int) -> str:
    return f"{int(index) % SLOTS_PER_DAY:02d}:00"


def slot_of(minutes: int) -> int:
    return (int(minutes) % MINUTES_PER_DAY) // 60


def forward_distance(start: int, end: int) -> int:
    """Minutes from ``start`` forward to ``end``, wrapping past midnight."""
    return (int(end) - int(start)) % MINUTES_PER_DAY


def in_wraparound_window(value: int, window_start: int, duration: int) -> bool:
    """
    Return True when ``value`` lies in ``[window_start, window_start + duration]``
    on the cyclic clock. Both edges are inclusive.

    Every connection-window test goes through this predicate, so a window that
    opens at 23:30 and lasts 90 minutes contains 00:45 but not 01:01.
    """
    return 0 <= forward_distance(window_start, value) <= int(duration)


def signed_delta(from_minutes: int, to_minutes: int) -> int:
    """Shortest signed shift taking ``from_minutes`` to ``to_minutes``, in (-720, 720]."""
    delta = forward_distance(from_minutes, to_minutes)
    if delta > MINUTES_PER_DAY // 2:
        delta -= MINUTES_PER_DAY
    return delta


def shift(minutes: int, delta: int) -> int:
    return (int(minutes) + int(delta)) % MINUTES_PER_DAY


__all__ = [
    "MINUTES_PER_DAY",
    "SLOTS_PER_DAY",
    "format_clock",
    "format_duration",
    "forward_distance",
    "in_wraparound_window",
    "minutes_of",
    "parse_clock",
    "shift",
    "signed_delta",
    "slot_label",
    "slot_of",
]
