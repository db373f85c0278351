"""
errors.py

Error taxonomy shared by the markup, extraction, model and query layers.
Per-record problems are not exceptions: they become Diagnostic values
collected next to the records that did parse.
"""
import enum
from dataclasses import dataclass


class MarshrutkaError(Exception):
    """Base class for every error raised by the package."""


class MarkupError(MarshrutkaError):
    """The text buffer cannot be turned into a tree at all."""


class FetchError(MarshrutkaError):
    """A source document could not be retrieved."""


class Invariant(enum.Enum):
    STOP_SEQUENCE = "stop-sequence"
    DEPARTURE_ORDER = "departure-order"
    DEPARTURE_STOP = "departure-stop"
    FARE_SUM = "fare-sum"
    ROUTE_IDENTITY = "route-identity"


class ScheduleError(MarshrutkaError):
    def __init__(self, invariant, record_ref, detail=""):
        self.invariant = invariant
        self.record_ref = record_ref
        self.detail = detail
        msg = f"{invariant.value} violated at {record_ref}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class DenominatorOverflow(MarshrutkaError, ArithmeticError):
    def __init__(self, value, limit):
        self.value = value
        self.limit = limit
        super().__init__(f"denominator of {value} exceeds {limit}")


class QueryErrorKind(enum.Enum):
    UNKNOWN_ROUTE = "unknown-route"
    UNKNOWN_STOP = "unknown-stop"
    INVALID_SEGMENT = "invalid-segment"
    NO_SUCH_DAY_TYPE = "no-such-day-type"


class QueryError(MarshrutkaError):
    def __init__(self, kind, message):
        self.kind = kind
        super().__init__(message)


class DiagnosticKind(enum.Enum):
    MISSING_FIELD = "missing-field"
    UNPARSEABLE_FIELD = "unparseable-field"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    source_path: str

    def __str__(self):
        return f"{self.kind.value} at {self.source_path}: {self.message}"
