"""
model.py

The validated, read-only schedule. build() groups extracted records into
routes, stops and departures, checks every invariant and only then hands
back a ScheduleModel; a failed check raises ScheduleError and nothing
half-built escapes. A model is never modified afterwards: a new ingestion
builds a new one.
"""
from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType

from .config import DayType, ScheduleConfig
from .errors import Invariant, ScheduleError
from .extractor import extract
from .logging_utils import get_logger
from .markup import parse_markup
from .rational import ZERO, Rational, checked, split_proportionally
from .rules import DEFAULT_RULES, RecordKind
from .timeparse import Recurrence, format_minutes

log = get_logger("model")


@dataclass(frozen=True)
class Stop:
    stop_id: str
    name: str
    sequence: int


@dataclass(frozen=True)
class Departure:
    route_id: str
    stop_id: str
    day_type: DayType
    minutes: int
    recurrence: Recurrence = None

    @property
    def time(self):
        return format_minutes(self.minutes)

    def __str__(self):
        return f"{self.route_id} {self.stop_id} {self.day_type.value} {self.time}"


@dataclass(frozen=True)
class Route:
    route_id: str
    name: str
    stops: tuple = ()
    day_types: frozenset = frozenset()
    total_fare: Rational = ZERO
    # fare_shares[i] is the segment stops[i] -> stops[i + 1]
    fare_shares: tuple = ()

    def stop(self, stop_id):
        for s in self.stops:
            if s.stop_id == stop_id:
                return s
        return None


class ScheduleModel:
    """
    Frozen snapshot of one ingested timetable. Use build() or
    ScheduleModel.from_entities(); the constructor trusts its input.
    """

    def __init__(self, routes, departures, day_types=frozenset(DayType)):
        self._routes = MappingProxyType({r.route_id: r for r in routes})
        self._day_types = frozenset(day_types)
        self._stop_index = MappingProxyType(
            {(r.route_id, s.stop_id): s.sequence for r in routes for s in r.stops}
        )

        by_stop = defaultdict(list)
        by_day = defaultdict(list)
        for d in departures:
            by_stop[(d.route_id, d.stop_id, d.day_type)].append(d)
            by_day[(d.route_id, d.day_type)].append(d)
        self._by_stop = MappingProxyType({k: tuple(v) for k, v in by_stop.items()})
        self._times = MappingProxyType(
            {k: tuple(d.minutes for d in v) for k, v in self._by_stop.items()}
        )
        index = self._stop_index
        self._by_day = MappingProxyType(
            {
                k: tuple(sorted(v, key=lambda d: (d.minutes, index[(d.route_id, d.stop_id)])))
                for k, v in by_day.items()
            }
        )
        self._departures = tuple(departures)

    @classmethod
    def from_entities(cls, routes, departures, day_types=frozenset(DayType)):
        """Rebuild from stored entities, re-running the invariant checks."""
        routes = tuple(routes)
        known = {}
        for route in routes:
            if route.route_id in known:
                raise ScheduleError(Invariant.ROUTE_IDENTITY, f"route {route.route_id}", "duplicate route id")
            known[route.route_id] = route
            _check_sequence(route.route_id, [(s.stop_id, s.sequence, f"stop {s.stop_id}") for s in route.stops])
            _check_fare_sum(route.route_id, route.total_fare, route.fare_shares, len(route.stops), f"route {route.route_id}")
        last = {}
        for d in departures:
            route = known.get(d.route_id)
            ref = f"departure {d}"
            if route is None or route.stop(d.stop_id) is None:
                raise ScheduleError(Invariant.DEPARTURE_STOP, ref, f"stop {d.stop_id} is not on route {d.route_id}")
            _check_order(last, d, ref)
        return cls(routes, departures, day_types)

    @property
    def day_types(self):
        return self._day_types

    def routes(self):
        return tuple(self._routes.values())

    def route(self, route_id):
        return self._routes.get(route_id)

    def __contains__(self, route_id):
        return route_id in self._routes

    def stop_index(self, route_id, stop_id):
        return self._stop_index.get((route_id, stop_id))

    def departures(self, route_id, stop_id, day_type):
        return self._by_stop.get((route_id, stop_id, day_type), ())

    def departure_times(self, route_id, stop_id, day_type):
        return self._times.get((route_id, stop_id, day_type), ())

    def departures_for_day(self, route_id, day_type):
        """All departures of a route on a day-type, by time then stop order."""
        return self._by_day.get((route_id, day_type), ())

    def all_departures(self):
        return self._departures

    def summary(self):
        return {
            "routes": len(self._routes),
            "stops": len(self._stop_index),
            "departures": len(self._departures),
        }

    def __eq__(self, other):
        if not isinstance(other, ScheduleModel):
            return NotImplemented
        return (
            self.routes() == other.routes()
            and self._departures == other._departures
            and self._day_types == other._day_types
        )

    __hash__ = None

    def __repr__(self):
        s = self.summary()
        return f"<ScheduleModel routes={s['routes']} stops={s['stops']} departures={s['departures']}>"


def _check_sequence(route_id, entries):
    """entries: (stop_id, sequence, ref) in source order."""
    seen_ids = {}
    seen_seq = {}
    for stop_id, sequence, ref in entries:
        if stop_id in seen_ids:
            raise ScheduleError(
                Invariant.STOP_SEQUENCE, ref, f"stop {stop_id} appears twice on route {route_id}"
            )
        if sequence in seen_seq:
            raise ScheduleError(
                Invariant.STOP_SEQUENCE, ref, f"sequence {sequence} reused on route {route_id}"
            )
        seen_ids[stop_id] = ref
        seen_seq[sequence] = ref
    for expected in range(len(entries)):
        if expected not in seen_seq:
            ref = entries[-1][2] if entries else f"route {route_id}"
            raise ScheduleError(
                Invariant.STOP_SEQUENCE, ref, f"route {route_id} has no stop at sequence {expected}"
            )


def _check_fare_sum(route_id, total, shares, stop_count, ref):
    segments = max(stop_count - 1, 0)
    if len(shares) != segments:
        raise ScheduleError(
            Invariant.FARE_SUM, ref, f"route {route_id} has {len(shares)} shares for {segments} segments"
        )
    if sum(shares, ZERO) != total:
        raise ScheduleError(
            Invariant.FARE_SUM, ref, f"shares of route {route_id} sum to {sum(shares, ZERO)}, not {total}"
        )


def _check_order(last, departure, ref):
    key = (departure.route_id, departure.stop_id, departure.day_type)
    previous = last.get(key)
    if previous is not None and departure.minutes <= previous:
        raise ScheduleError(
            Invariant.DEPARTURE_ORDER,
            ref,
            f"{format_minutes(departure.minutes)} does not follow {format_minutes(previous)}",
        )
    last[key] = departure.minutes


def _fare_shares(route_record, stops, config):
    """stops: stop records ordered by sequence; segment i ends at stops[i + 1]."""
    total = route_record.fields.get("fare", ZERO)
    segments = stops[1:]
    if not segments:
        return total, ()
    explicit = [s.fields.get("fare") for s in segments]
    if all(x is not None for x in explicit):
        shares = tuple(checked(x, config.max_denominator) for x in explicit)
        if "fare" not in route_record.fields:
            total = sum(shares, ZERO)
        return total, shares

    basis = [s.fields.get(config.fare_basis.value) for s in segments]
    if any(w is None for w in basis) or sum(basis) == 0:
        basis = [1] * len(segments)
    try:
        shares = split_proportionally(total, basis, config.fare_quantum, config.max_denominator)
    except (ValueError, ArithmeticError) as e:
        raise ScheduleError(Invariant.FARE_SUM, route_record.source_path, str(e)) from e
    return total, shares


def build(records, config=None):
    """
    Validate extracted records into a ScheduleModel.

    Raises ScheduleError naming the broken invariant and the offending
    record's source path.
    """
    config = config or ScheduleConfig()
    route_records = {}
    stop_records = defaultdict(list)
    departure_records = []

    for rec in records:
        if rec.kind is RecordKind.ROUTE:
            if rec.route_id in route_records:
                raise ScheduleError(Invariant.ROUTE_IDENTITY, rec.source_path, f"duplicate route id {rec.route_id}")
            route_records[rec.route_id] = rec
        elif rec.kind is RecordKind.STOP:
            stop_records[rec.route_id].append(rec)
        else:
            departure_records.append(rec)

    for route_id, recs in stop_records.items():
        if route_id not in route_records:
            raise ScheduleError(Invariant.ROUTE_IDENTITY, recs[0].source_path, f"route {route_id} is not declared")

    stops_by_route = {}
    for route_id in route_records:
        recs = stop_records.get(route_id, [])
        entries = [
            (r.stop_id, r.fields.get("sequence", i), r.source_path) for i, r in enumerate(recs)
        ]
        _check_sequence(route_id, entries)
        stops_by_route[route_id] = sorted(zip(recs, entries), key=lambda pair: pair[1][1])

    departures = []
    last = {}
    day_types = defaultdict(set)
    for rec in departure_records:
        route_id, stop_id = rec.route_id, rec.stop_id
        if route_id not in route_records:
            raise ScheduleError(Invariant.DEPARTURE_STOP, rec.source_path, f"route {route_id} is not declared")
        if not any(r.stop_id == stop_id for r, _ in stops_by_route[route_id]):
            raise ScheduleError(
                Invariant.DEPARTURE_STOP, rec.source_path, f"stop {stop_id} is not on route {route_id}"
            )
        day = rec.fields["day_type"]
        for minutes in rec.times:
            d = Departure(route_id, stop_id, day, minutes, rec.recurrence)
            _check_order(last, d, rec.source_path)
            departures.append(d)
        day_types[route_id].add(day)

    routes = []
    for route_id, rec in route_records.items():
        ordered = [r for r, _ in stops_by_route[route_id]]
        total, shares = _fare_shares(rec, ordered, config)
        _check_fare_sum(route_id, total, shares, len(ordered), rec.source_path)
        routes.append(
            Route(
                route_id=route_id,
                name=rec.fields.get("name") or route_id,
                stops=tuple(
                    Stop(r.stop_id, r.fields.get("name") or r.stop_id, seq)
                    for r, (_, seq, _) in stops_by_route[route_id]
                ),
                day_types=frozenset(day_types[route_id]),
                total_fare=checked(total, config.max_denominator),
                fare_shares=shares,
            )
        )

    model = ScheduleModel(routes, departures, config.day_types)
    log.info("Built schedule %s", model.summary())
    return model


def build_from_markup(text, rules=DEFAULT_RULES, config=None):
    """Parse, extract and build in one go. Returns (model, diagnostics)."""
    config = config or ScheduleConfig()
    records, diagnostics = extract(parse_markup(text), rules, config)
    return build(records, config), diagnostics
