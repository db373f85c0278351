import threading

import pytest

from marshrutka.config import DayType, ScheduleConfig
from marshrutka.errors import QueryError, QueryErrorKind
from marshrutka.model import build_from_markup
from marshrutka.query import ScheduleQuery

from conftest import ROUTE_12


@pytest.fixture
def query(route_12_model):
    return ScheduleQuery(route_12_model)


def test_segment_fares(query):
    assert query.fare_for_segment("12", "A", "B") == 15
    assert query.fare_for_segment("12", "B", "C") == 15
    assert query.fare_for_segment("12", "A", "C") == 30


def test_next_departure(query):
    d = query.next_departure("12", "A", DayType.WEEKDAY, "08:15")
    assert d.minutes == 510
    assert d.time == "08:30"
    assert query.next_departure("12", "A", "weekday", 420).minutes == 480


def test_next_departure_is_strictly_after(query):
    assert query.next_departure("12", "A", DayType.WEEKDAY, "08:00").minutes == 510
    assert query.next_departure("12", "A", DayType.WEEKDAY, "09:00") is None


def test_departures_between_is_inclusive_and_restartable(query):
    window = query.departures_between("12", "C", DayType.WEEKDAY, "08:10", "08:40")
    assert [d.minutes for d in window] == [500, 520]
    assert [d.minutes for d in window] == [500, 520]
    assert len(window) == 2
    edges = query.departures_between("12", "C", DayType.WEEKDAY, "08:00", "09:00")
    assert [d.minutes for d in edges] == [480, 500, 520, 540]


def test_empty_windows(query):
    assert list(query.departures_between("12", "C", DayType.WEEKDAY, "09:00", "08:00")) == []
    weekend_b = query.departures_between("12", "B", DayType.WEEKEND, "00:00", "23:59")
    assert not weekend_b
    assert query.next_departure("12", "A", DayType.HOLIDAY, "00:00") is None


def test_unknown_stop(query):
    with pytest.raises(QueryError) as exc:
        query.next_departure("12", "Z", DayType.WEEKDAY, "08:00")
    assert exc.value.kind is QueryErrorKind.UNKNOWN_STOP


def test_unknown_route(query):
    with pytest.raises(QueryError) as exc:
        query.fare_for_segment("99", "A", "B")
    assert exc.value.kind is QueryErrorKind.UNKNOWN_ROUTE


@pytest.mark.parametrize("a, b", [("C", "A"), ("B", "B")])
def test_invalid_segment(query, a, b):
    with pytest.raises(QueryError) as exc:
        query.fare_for_segment("12", a, b)
    assert exc.value.kind is QueryErrorKind.INVALID_SEGMENT


def test_day_type_must_be_known():
    config = ScheduleConfig(day_types=frozenset([DayType.WEEKDAY, DayType.WEEKEND]))
    model, _ = build_from_markup(ROUTE_12, config=config)
    query = ScheduleQuery(model)
    for day in ["fortnightly", DayType.HOLIDAY]:
        with pytest.raises(QueryError) as exc:
            query.next_departure("12", "A", day, "08:00")
        assert exc.value.kind is QueryErrorKind.NO_SUCH_DAY_TYPE


def test_combined_departures_order(two_route_model):
    query = ScheduleQuery(two_route_model)
    rows = [(d.day_type, d.minutes, d.route_id) for d in query.combined_departures(stop_id="M")]
    assert rows == [
        (DayType.WEEKDAY, 480, "12"),
        (DayType.WEEKDAY, 480, "7"),
        (DayType.WEEKEND, 420, "12"),
        (DayType.HOLIDAY, 480, "7"),
    ]
    assert query.combined_departures(stop_id="M") == query.combined_departures(stop_id="M")


def test_combined_departures_filters(two_route_model):
    query = ScheduleQuery(two_route_model)
    weekend = query.combined_departures(day_types=["weekend"])
    assert [(d.route_id, d.minutes) for d in weekend] == [("12", 420)]
    only_7 = query.combined_departures(route_ids=["7"])
    assert {d.route_id for d in only_7} == {"7"}
    with pytest.raises(QueryError):
        query.combined_departures(route_ids=["nope"])


def test_concurrent_readers_see_the_same_answers(query):
    results = []

    def read():
        for _ in range(50):
            results.append(
                (
                    query.next_departure("12", "A", DayType.WEEKDAY, "08:15").minutes,
                    query.fare_for_segment("12", "A", "C"),
                )
            )

    threads = [threading.Thread(target=read) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert set(results) == {(510, 30)}
