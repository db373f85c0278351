"""
config.py

Settings for scraping, storage and schedule building. Environment variables
override the defaults; ScheduleConfig is what the extractor, model and cache
actually consume, so nothing below reaches for these globals on its own.
"""
import enum
import os
from dataclasses import dataclass, field
from fractions import Fraction

# Scraper config
BASE_URL = os.environ.get("BASE_URL", "https://bustimes.org")
REGION_PATH = os.environ.get("REGION_PATH", "/regions/IM")
FETCH_TIMEOUT = float(os.environ.get("FETCH_TIMEOUT", "10"))

# Source served by the API when none is given
SCHEDULE_SOURCE = os.environ.get("SCHEDULE_SOURCE")

# Bounds on untrusted input
CACHE_SIZE = int(os.environ.get("CACHE_SIZE", "16"))
RECURRENCE_CAP = int(os.environ.get("RECURRENCE_CAP", "500"))
MAX_DENOMINATOR = 10**9


def database_url():
    """DATABASE_URL, else postgres from DB_* parts, else a local SQLite file."""
    url = os.environ.get("DATABASE_URL")
    if url:
        return url
    host = os.environ.get("DB_HOST")
    name = os.environ.get("DB_NAME")
    user = os.environ.get("DB_USER")
    password = os.environ.get("DB_PASSWORD")
    port = os.environ.get("DB_PORT", "5432")
    if all([host, name, user, password]):
        return f"postgresql://{user}:{password}@{host}:{port}/{name}"
    sqlite_path = os.environ.get("SQLITE_PATH", "bus_times.db")
    return f"sqlite:///{sqlite_path}"


class DayType(enum.Enum):
    # Definition order is the rank used when views mix day-types
    WEEKDAY = "weekday"
    WEEKEND = "weekend"
    HOLIDAY = "holiday"

    @property
    def rank(self):
        return list(DayType).index(self)

    @classmethod
    def parse(cls, text):
        """Map a markup label ("Mon-Fri", "Sundays", ...) onto a member, or None."""
        key = " ".join(str(text).lower().replace("_", " ").split())
        return _DAY_ALIASES.get(key)


_DAY_ALIASES = {
    "weekday": DayType.WEEKDAY,
    "weekdays": DayType.WEEKDAY,
    "mon-fri": DayType.WEEKDAY,
    "monday to friday": DayType.WEEKDAY,
    "workday": DayType.WEEKDAY,
    "workdays": DayType.WEEKDAY,
    "weekend": DayType.WEEKEND,
    "weekends": DayType.WEEKEND,
    "sat-sun": DayType.WEEKEND,
    "saturday": DayType.WEEKEND,
    "saturdays": DayType.WEEKEND,
    "sunday": DayType.WEEKEND,
    "sundays": DayType.WEEKEND,
    "holiday": DayType.HOLIDAY,
    "holidays": DayType.HOLIDAY,
    "bank holiday": DayType.HOLIDAY,
    "bank holidays": DayType.HOLIDAY,
    "public holiday": DayType.HOLIDAY,
}


class TimeFormat(enum.Enum):
    HH_MM = "HH:MM"
    DOTTED = "H.MM"
    RECURRENCE = "every N min HH:MM-HH:MM"


class FareBasis(enum.Enum):
    DISTANCE = "distance"
    TRAVEL_TIME = "minutes"


@dataclass(frozen=True)
class ScheduleConfig:
    day_types: frozenset = field(default_factory=lambda: frozenset(DayType))
    default_day_type: DayType = DayType.WEEKDAY
    time_formats: tuple = (TimeFormat.HH_MM, TimeFormat.DOTTED, TimeFormat.RECURRENCE)
    recurrence_cap: int = RECURRENCE_CAP
    cache_size: int = CACHE_SIZE
    fare_basis: FareBasis = FareBasis.DISTANCE
    # None keeps shares exact; e.g. Fraction(1, 100) rounds them to cents
    fare_quantum: Fraction = None
    max_denominator: int = MAX_DENOMINATOR

    def __post_init__(self):
        if self.recurrence_cap < 1:
            raise ValueError("recurrence_cap must be positive")
        if self.cache_size < 1:
            raise ValueError("cache_size must be positive")
        if self.default_day_type not in self.day_types:
            raise ValueError(f"default day-type {self.default_day_type.value} is not accepted")
        if not self.time_formats:
            raise ValueError("at least one time format is required")

    @classmethod
    def from_env(cls, **overrides):
        values = {
            "recurrence_cap": int(os.environ.get("RECURRENCE_CAP", RECURRENCE_CAP)),
            "cache_size": int(os.environ.get("CACHE_SIZE", CACHE_SIZE)),
        }
        basis = os.environ.get("FARE_BASIS")
        if basis:
            values["fare_basis"] = FareBasis(basis)
        quantum = os.environ.get("FARE_QUANTUM")
        if quantum:
            values["fare_quantum"] = Fraction(quantum)
        values.update(overrides)
        return cls(**values)
