"""
query.py

Read-only questions against a built ScheduleModel. Nothing here mutates the
model, so one ScheduleQuery can be shared between threads.
"""
from bisect import bisect_left, bisect_right

from .config import DayType
from .errors import QueryError, QueryErrorKind
from .rational import ZERO
from .timeparse import to_minutes


class DepartureWindow:
    """Ascending slice of one stop's departures; iterate it as often as needed."""

    def __init__(self, departures=(), lo=0, hi=0):
        self._departures = departures
        self._lo = lo
        self._hi = max(hi, lo)

    def __iter__(self):
        for i in range(self._lo, self._hi):
            yield self._departures[i]

    def __len__(self):
        return self._hi - self._lo

    def __bool__(self):
        return self._hi > self._lo

    def __repr__(self):
        return f"<DepartureWindow {len(self)} departures>"


def combined_key(departure, stop_sequence):
    """Total order for views mixing day-types and routes."""
    return (
        departure.day_type.rank,
        departure.minutes,
        departure.route_id,
        stop_sequence,
        departure.stop_id,
    )


class ScheduleQuery:
    def __init__(self, model):
        self.model = model

    def route(self, route_id):
        route = self.model.route(route_id)
        if route is None:
            raise QueryError(QueryErrorKind.UNKNOWN_ROUTE, f"unknown route {route_id!r}")
        return route

    def _stop(self, route, stop_id):
        stop = route.stop(stop_id)
        if stop is None:
            raise QueryError(
                QueryErrorKind.UNKNOWN_STOP, f"stop {stop_id!r} is not on route {route.route_id!r}"
            )
        return stop

    def _day(self, day_type):
        day = day_type if isinstance(day_type, DayType) else DayType.parse(day_type or "")
        if day is None or day not in self.model.day_types:
            raise QueryError(QueryErrorKind.NO_SUCH_DAY_TYPE, f"no such day-type {day_type!r}")
        return day

    def next_departure(self, route_id, stop_id, day_type, after):
        """
        First departure strictly after ``after`` (minutes or "HH:MM") on that
        day-type, or None. There is no wrap into the next day.
        """
        route = self.route(route_id)
        self._stop(route, stop_id)
        day = self._day(day_type)
        times = self.model.departure_times(route_id, stop_id, day)
        i = bisect_right(times, to_minutes(after))
        if i == len(times):
            return None
        return self.model.departures(route_id, stop_id, day)[i]

    def departures_between(self, route_id, stop_id, day_type, start, end):
        """Departures with start <= time <= end, ascending; empty if start > end."""
        route = self.route(route_id)
        self._stop(route, stop_id)
        day = self._day(day_type)
        start, end = to_minutes(start), to_minutes(end)
        if start > end:
            return DepartureWindow()
        times = self.model.departure_times(route_id, stop_id, day)
        return DepartureWindow(
            self.model.departures(route_id, stop_id, day),
            bisect_left(times, start),
            bisect_right(times, end),
        )

    def fare_for_segment(self, route_id, from_stop, to_stop):
        """Exact fare from ``from_stop`` to a later ``to_stop`` on the same route."""
        route = self.route(route_id)
        a = self._stop(route, from_stop)
        b = self._stop(route, to_stop)
        if a.sequence >= b.sequence:
            raise QueryError(
                QueryErrorKind.INVALID_SEGMENT,
                f"{from_stop!r} does not precede {to_stop!r} on route {route_id!r}",
            )
        return sum(route.fare_shares[a.sequence:b.sequence], ZERO)

    def combined_departures(self, day_types=None, stop_id=None, route_ids=None):
        """
        Departures across routes and day-types ordered by (day-type rank,
        time, route id, stop sequence, stop id).
        """
        days = None if day_types is None else {self._day(d) for d in day_types}
        if route_ids is not None:
            for route_id in route_ids:
                self.route(route_id)
        index = self.model.stop_index
        picked = [
            d
            for d in self.model.all_departures()
            if (days is None or d.day_type in days)
            and (stop_id is None or d.stop_id == stop_id)
            and (route_ids is None or d.route_id in route_ids)
        ]
        return tuple(sorted(picked, key=lambda d: combined_key(d, index(d.route_id, d.stop_id))))
