"""
timeparse.py

Time strings as they appear in timetable cells. Formats are tried in the
configured order and the first one that matches wins:

    HH:MM                          08:05, 7:30, 24:15 (after midnight)
    H.MM                           8.05
    every N min HH:MM-HH:MM        every 20 min 08:00–09:00

Times are integer minutes since midnight of the service day. Hours up to 47
are accepted so a late journey can run past midnight without wrapping.
"""
import re
from dataclasses import dataclass

from .config import RECURRENCE_CAP, TimeFormat

MAX_HOUR = 47

_CLOCK = r"(\d{1,2})[:.](\d{2})"
_PATTERNS = {
    TimeFormat.HH_MM: re.compile(r"^(\d{1,2}):(\d{2})$"),
    TimeFormat.DOTTED: re.compile(r"^(\d{1,2})\.(\d{2})$"),
    TimeFormat.RECURRENCE: re.compile(
        r"^every\s+(\d+)\s*(?:m|min|mins|minutes?)\.?\s+(?:from\s+)?"
        + _CLOCK
        + r"\s*(?:-|–|—|to|until)\s*"
        + _CLOCK
        + r"$",
        re.IGNORECASE,
    ),
}


class TimeFormatError(ValueError):
    pass


@dataclass(frozen=True)
class Recurrence:
    every: int
    start: int
    end: int

    def count(self):
        return (self.end - self.start) // self.every + 1

    def expand(self, cap=RECURRENCE_CAP):
        if self.every <= 0:
            raise TimeFormatError(f"recurrence step must be positive, got {self.every}")
        if self.end < self.start:
            raise TimeFormatError(f"recurrence ends ({format_minutes(self.end)}) before it starts")
        n = self.count()
        if n > cap:
            raise TimeFormatError(f"recurrence expands to {n} departures, cap is {cap}")
        return tuple(range(self.start, self.end + 1, self.every))

    def __str__(self):
        return f"every {self.every} min {format_minutes(self.start)}–{format_minutes(self.end)}"


@dataclass(frozen=True)
class ParsedTime:
    times: tuple
    recurrence: Recurrence = None
    format: TimeFormat = None


def _minutes(hours, minutes, raw):
    h, m = int(hours), int(minutes)
    if h > MAX_HOUR or m > 59:
        raise TimeFormatError(f"time out of range: {raw!r}")
    return h * 60 + m


def format_minutes(minutes):
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_time(text, formats=tuple(TimeFormat), cap=RECURRENCE_CAP):
    """Parse one cell. Raises TimeFormatError when no accepted format fits."""
    raw = " ".join(str(text).split())
    for fmt in formats:
        m = _PATTERNS[fmt].match(raw)
        if not m:
            continue
        if fmt is TimeFormat.RECURRENCE:
            every, h1, m1, h2, m2 = m.groups()
            rec = Recurrence(int(every), _minutes(h1, m1, raw), _minutes(h2, m2, raw))
            return ParsedTime(rec.expand(cap), rec, fmt)
        return ParsedTime((_minutes(m.group(1), m.group(2), raw),), None, fmt)
    raise TimeFormatError(f"no accepted time format matches {raw!r}")


def to_minutes(value):
    """Accept minutes as an int or a clock string ("08:15", "8.15") for queries."""
    if isinstance(value, bool):
        raise TypeError("expected minutes or a clock string")
    if isinstance(value, int):
        return value
    parsed = parse_time(value, (TimeFormat.HH_MM, TimeFormat.DOTTED))
    return parsed.times[0]
