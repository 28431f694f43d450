from __future__ import annotations

import datetime as dt

ONE_WEEK_MILLIS = 7 * 24 * 60 * 60 * 1000
MIN_FREQUENCY_MILLIS = 600_000

WEEKDAY_INDEX = {
    name: idx
    for idx, name in enumerate(("mon", "tue", "wed", "thu", "fri", "sat", "sun"))
}


def parse_weekday(value: str) -> int:
    index = WEEKDAY_INDEX.get(value.strip()[:3].lower())
    if index is None:
        raise ValueError(f"unknown weekday: {value!r}")
    return index


def next_weekday_at(now: dt.datetime, weekday: int, hour: int) -> dt.datetime:
    """Next occurrence of ``weekday`` at ``hour``:00 strictly after ``now``."""
    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    candidate += dt.timedelta(days=(weekday - now.weekday()) % 7)
    if candidate <= now:
        candidate += dt.timedelta(days=7)
    return candidate


def to_millis(value: dt.datetime) -> int:
    return int(value.timestamp() * 1000)
