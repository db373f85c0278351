"""Timetable ingestion and exact-arithmetic schedule queries for minibus routes."""
from .cache import ScheduleCache
from .config import DayType, FareBasis, ScheduleConfig, TimeFormat
from .errors import (
    DenominatorOverflow,
    Diagnostic,
    DiagnosticKind,
    FetchError,
    Invariant,
    MarkupError,
    QueryError,
    QueryErrorKind,
    ScheduleError,
)
from .extractor import RawRecord, extract
from .markup import Element, Text, parse_markup
from .model import Departure, Route, ScheduleModel, Stop, build, build_from_markup
from .query import ScheduleQuery
from .rational import Rational, split_proportionally
from .rules import BUSTIMES_RULES, DEFAULT_RULES, FieldRule, RecordKind, SelectionRule

__version__ = "0.1.0"
