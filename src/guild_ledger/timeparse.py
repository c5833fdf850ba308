"""Clock, duration and date helpers shared by the cooldown gate and the shop.

Durations are plain integer milliseconds throughout the engine.  Two
renderings are produced for hosts:

- :func:`parse_duration` splits milliseconds into days/hours/minutes/
  seconds/milliseconds.
- :func:`pretty_duration` renders the short form chat bots display
  (``"1d"``, ``"23h"``, ``"5m"``, ``"10s"``, ``"500ms"``).

Item and history dates are stored as locale-formatted strings;
:func:`format_date` covers the locales hosts commonly configure and falls
back to ISO-8601 for anything else.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TimeParts:
    """A duration decomposed into calendar-free units."""

    days: int
    hours: int
    minutes: int
    seconds: int
    milliseconds: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def parse_duration(ms: int | float) -> TimeParts:
    """Split ``ms`` into days, hours, minutes, seconds and milliseconds."""
    ms = max(0, int(ms))
    return TimeParts(
        days=ms // DAY_MS,
        hours=(ms // HOUR_MS) % 24,
        minutes=(ms // MINUTE_MS) % 60,
        seconds=(ms // SECOND_MS) % 60,
        milliseconds=ms % SECOND_MS,
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def pretty_duration(ms: int | float) -> str:
    """Render ``ms`` using the largest whole unit, rounded."""
    magnitude = abs(ms)
    if magnitude >= DAY_MS:
        return f"{_round_half_up(ms / DAY_MS)}d"
    if magnitude >= HOUR_MS:
        return f"{_round_half_up(ms / HOUR_MS)}h"
    if magnitude >= MINUTE_MS:
        return f"{_round_half_up(ms / MINUTE_MS)}m"
    if magnitude >= SECOND_MS:
        return f"{_round_half_up(ms / SECOND_MS)}s"
    return f"{int(ms)}ms"


# ---------------------------------------------------------------------------
# Locale-formatted dates
# ---------------------------------------------------------------------------


def _hms(moment: datetime) -> str:
    return moment.strftime("%H:%M:%S")


def _us(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return (
        f"{moment.month}/{moment.day}/{moment.year}, "
        f"{hour}:{moment.minute:02d}:{moment.second:02d} {suffix}"
    )


_DATE_FORMATTERS: dict[str, Callable[[datetime], str]] = {
    "ru": lambda m: f"{m:%d.%m.%Y}, {_hms(m)}",
    "uk": lambda m: f"{m:%d.%m.%Y}, {_hms(m)}",
    "de": lambda m: f"{m.day}.{m.month}.{m.year}, {_hms(m)}",
    "en": _us,
    "en-us": _us,
    "en-gb": lambda m: f"{m:%d/%m/%Y}, {_hms(m)}",
    "fr": lambda m: f"{m:%d/%m/%Y} {_hms(m)}",
    "es": lambda m: f"{m.day}/{m.month}/{m.year}, {m.hour}:{m:%M:%S}",
    "pl": lambda m: f"{m.day}.{m:%m.%Y}, {_hms(m)}",
}


def format_date(moment: datetime, locale: str | None = "ru") -> str:
    """Format ``moment`` the way ``locale`` renders a date and time.

    Lookup tries the full tag (``"en-GB"``) and then its language part
    (``"en"``).  Unknown locales produce ISO-8601 with second precision.
    """
    tag = (locale or "").strip().lower().replace("_", "-")
    formatter = _DATE_FORMATTERS.get(tag) or _DATE_FORMATTERS.get(tag.split("-")[0])
    if formatter is None:
        return moment.isoformat(timespec="seconds")
    return formatter(moment)


def format_timestamp(timestamp_ms: int, locale: str | None = "ru") -> str:
    """Format an epoch-millisecond timestamp in local time."""
    return format_date(datetime.fromtimestamp(timestamp_ms / 1000), locale)
