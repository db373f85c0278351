import dataclasses
from fractions import Fraction

import pytest

from marshrutka.config import DayType, FareBasis, ScheduleConfig
from marshrutka.errors import Invariant, ScheduleError
from marshrutka.extractor import RawRecord
from marshrutka.model import ScheduleModel, build, build_from_markup
from marshrutka.rational import Rational
from marshrutka.rules import RecordKind

from conftest import ROUTE_12


def route_page(stops, rows, fare=None, route="R"):
    """stops: list of attribute strings for <li>; rows: (stop, time) pairs."""
    fare_attr = f' data-fare="{fare}"' if fare is not None else ""
    items = "".join(f'<li class="stop" {attrs}>x</li>' for attrs in stops)
    body = "".join(f'<tr><td class="stop">{s}</td><td class="time">{t}</td></tr>' for s, t in rows)
    return (
        f'<section class="route" data-route="{route}"{fare_attr}>'
        f'<ol class="stops">{items}</ol>'
        f'<table class="schedule" data-day="weekday">{body}</table>'
        "</section>"
    )


def test_route_entities(route_12_model):
    route = route_12_model.route("12")
    assert route.name == "Market - Station"
    assert [(s.stop_id, s.name, s.sequence) for s in route.stops] == [
        ("A", "Market", 0),
        ("B", "Library", 1),
        ("C", "Station", 2),
    ]
    assert route.day_types == frozenset([DayType.WEEKDAY, DayType.WEEKEND])
    assert route.total_fare == 30
    assert route.fare_shares == (15, 15)
    assert all(type(s) is Rational for s in route.fare_shares)


def test_indices(route_12_model):
    m = route_12_model
    assert m.departure_times("12", "A", DayType.WEEKDAY) == (480, 510, 540)
    assert m.departure_times("12", "A", DayType.HOLIDAY) == ()
    assert m.stop_index("12", "C") == 2
    assert m.stop_index("12", "Z") is None
    by_day = [(d.minutes, d.stop_id) for d in m.departures_for_day("12", DayType.WEEKDAY)]
    assert by_day == [
        (480, "A"),
        (480, "C"),
        (490, "B"),
        (500, "C"),
        (510, "A"),
        (520, "C"),
        (540, "A"),
        (540, "C"),
    ]
    assert m.summary() == {"routes": 1, "stops": 3, "departures": 9}


def test_recurrence_is_kept_on_expanded_departures(route_12_model):
    c = route_12_model.departures("12", "C", DayType.WEEKDAY)
    assert [d.time for d in c] == ["08:00", "08:20", "08:40", "09:00"]
    assert all(d.recurrence is not None and d.recurrence.every == 20 for d in c)
    assert route_12_model.departures("12", "A", DayType.WEEKDAY)[0].recurrence is None


def test_building_twice_gives_equal_models():
    first, _ = build_from_markup(ROUTE_12)
    second, _ = build_from_markup(ROUTE_12)
    assert first is not second
    assert first == second


def test_model_is_read_only(route_12_model):
    route = route_12_model.route("12")
    with pytest.raises(dataclasses.FrozenInstanceError):
        route.name = "changed"
    assert isinstance(route_12_model.routes(), tuple)
    assert isinstance(route.stops, tuple)


def test_from_entities_round_trip(route_12_model):
    m = route_12_model
    again = ScheduleModel.from_entities(m.routes(), m.all_departures(), m.day_types)
    assert again == m


def test_equal_weights_split_exactly():
    model, _ = build_from_markup(
        route_page(['data-stop="A"', 'data-stop="B"', 'data-stop="C"'], [], fare=45)
    )
    route = model.route("R")
    assert route.fare_shares == (Rational(45, 2), Rational(45, 2))
    assert sum(route.fare_shares) == route.total_fare


def test_distance_weights():
    stops = ['data-stop="A" data-distance="9"', 'data-stop="B" data-distance="1"', 'data-stop="C" data-distance="2"']
    model, _ = build_from_markup(route_page(stops, [], fare=30))
    assert model.route("R").fare_shares == (10, 20)


def test_partial_distances_fall_back_to_equal_weights():
    stops = ['data-stop="A"', 'data-stop="B" data-distance="1"', 'data-stop="C"']
    model, _ = build_from_markup(route_page(stops, [], fare=30))
    assert model.route("R").fare_shares == (15, 15)


def test_travel_time_basis():
    stops = ['data-stop="A"', 'data-stop="B" data-minutes="5"', 'data-stop="C" data-minutes="10"']
    config = ScheduleConfig(fare_basis=FareBasis.TRAVEL_TIME)
    model, _ = build_from_markup(route_page(stops, [], fare=30), config=config)
    assert model.route("R").fare_shares == (10, 20)


def test_quantised_shares_give_remainder_to_earliest_segment():
    stops = [f'data-stop="{s}"' for s in "ABCD"]
    config = ScheduleConfig(fare_quantum=Fraction(1))
    model, _ = build_from_markup(route_page(stops, [], fare=10), config=config)
    assert model.route("R").fare_shares == (4, 3, 3)


def test_explicit_segment_fares():
    stops = ['data-stop="A"', 'data-stop="B" data-fare="12.50"', 'data-stop="C" data-fare="17.50"']
    model, _ = build_from_markup(route_page(stops, [], fare=30))
    assert model.route("R").fare_shares == (Rational(25, 2), Rational(35, 2))

    undeclared_total, _ = build_from_markup(route_page(stops, []))
    assert undeclared_total.route("R").total_fare == 30


def test_explicit_fares_must_sum_to_total():
    stops = ['data-stop="A"', 'data-stop="B" data-fare="10"', 'data-stop="C" data-fare="10"']
    with pytest.raises(ScheduleError) as exc:
        build_from_markup(route_page(stops, [], fare=25))
    assert exc.value.invariant is Invariant.FARE_SUM
    assert exc.value.record_ref == "/section"


def test_single_stop_route_cannot_carry_a_fare():
    with pytest.raises(ScheduleError) as exc:
        build_from_markup(route_page(['data-stop="A"'], [], fare=5))
    assert exc.value.invariant is Invariant.FARE_SUM


@pytest.mark.parametrize(
    "stops",
    [
        ['data-stop="A"', 'data-stop="A"'],
        ['data-stop="A" data-seq="0"', 'data-stop="B" data-seq="2"'],
        ['data-stop="A" data-seq="1"', 'data-stop="B" data-seq="1"'],
        ['data-stop="A" data-seq="1"', 'data-stop="B" data-seq="2"'],
    ],
)
def test_stop_sequence_violations(stops):
    with pytest.raises(ScheduleError) as exc:
        build_from_markup(route_page(stops, []))
    assert exc.value.invariant is Invariant.STOP_SEQUENCE


def test_explicit_sequence_orders_stops():
    stops = ['data-stop="C" data-seq="2"', 'data-stop="A" data-seq="0"', 'data-stop="B" data-seq="1"']
    model, _ = build_from_markup(route_page(stops, []))
    assert [s.stop_id for s in model.route("R").stops] == ["A", "B", "C"]


def test_out_of_order_departures_are_rejected():
    with pytest.raises(ScheduleError) as exc:
        build_from_markup(route_page(['data-stop="A"'], [("A", "09:00"), ("A", "08:00")]))
    assert exc.value.invariant is Invariant.DEPARTURE_ORDER
    assert exc.value.record_ref == "/section/table/tr[2]"


def test_duplicate_after_recurrence_expansion_is_rejected():
    rows = [("A", "08:00"), ("A", "every 10 min 08:00-08:30")]
    with pytest.raises(ScheduleError) as exc:
        build_from_markup(route_page(['data-stop="A"'], rows))
    assert exc.value.invariant is Invariant.DEPARTURE_ORDER


def test_departure_for_unknown_stop_is_rejected():
    with pytest.raises(ScheduleError) as exc:
        build_from_markup(route_page(['data-stop="A"'], [("Z", "08:00")]))
    assert exc.value.invariant is Invariant.DEPARTURE_STOP


def test_duplicate_route_ids_are_rejected():
    page = route_page(['data-stop="A"'], []) + route_page(['data-stop="B"'], [])
    with pytest.raises(ScheduleError) as exc:
        build_from_markup(page)
    assert exc.value.invariant is Invariant.ROUTE_IDENTITY


def test_build_from_raw_records():
    records = [
        RawRecord(RecordKind.ROUTE, {"route_id": "1"}, "/r"),
        RawRecord(RecordKind.STOP, {"route_id": "1", "stop_id": "P"}, "/r/s"),
        RawRecord(
            RecordKind.DEPARTURE,
            {"route_id": "1", "stop_id": "P", "day_type": DayType.WEEKDAY},
            "/r/d",
            times=(600, 660),
        ),
    ]
    model = build(records)
    assert model.route("1").name == "1"
    assert model.route("1").total_fare == 0
    assert model.departure_times("1", "P", DayType.WEEKDAY) == (600, 660)

    with pytest.raises(ScheduleError) as exc:
        build([RawRecord(RecordKind.STOP, {"route_id": "9", "stop_id": "X"}, "/s")])
    assert exc.value.invariant is Invariant.ROUTE_IDENTITY
    assert exc.value.record_ref == "/s"
