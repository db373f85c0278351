import pytest

from marshrutka.config import DayType, ScheduleConfig
from marshrutka.model import build_from_markup
from marshrutka.rational import Rational
from marshrutka.store import (
    FareShareRow,
    SourceRow,
    delete_model,
    init_db,
    load_model,
    make_engine,
    save_model,
    session_factory,
)

from conftest import TWO_ROUTES


@pytest.fixture
def db():
    engine = make_engine("sqlite://")
    init_db(engine)
    session = session_factory(engine)()
    yield session
    session.close()


def test_saved_model_loads_back_equal(db, route_12_model):
    save_model(db, "mem://12", route_12_model)
    db.commit()
    loaded = load_model(db, "mem://12")
    assert loaded == route_12_model
    c = loaded.departures("12", "C", DayType.WEEKDAY)
    assert c[0].recurrence == route_12_model.departures("12", "C", DayType.WEEKDAY)[0].recurrence


def test_fractional_fares_survive_storage(db):
    model, _ = build_from_markup(TWO_ROUTES.replace('data-fare="45"', 'data-fare="4.50"'))
    save_model(db, "two", model)
    db.commit()
    loaded = load_model(db, "two")
    assert loaded.route("12").total_fare == Rational(9, 2)
    assert loaded.route("12").fare_shares == (Rational(9, 2),)
    assert loaded.route("7").day_types == frozenset([DayType.WEEKDAY, DayType.HOLIDAY])


def test_shares_are_stored_as_integer_pairs(db):
    model, _ = build_from_markup(
        '<section class="route" data-route="R" data-fare="10">'
        '<ol class="stops"><li class="stop" data-stop="A">A</li>'
        '<li class="stop" data-stop="B">B</li><li class="stop" data-stop="C">C</li>'
        '<li class="stop" data-stop="D">D</li></ol></section>'
    )
    save_model(db, "thirds", model)
    db.commit()
    rows = db.query(FareShareRow).order_by(FareShareRow.segment).all()
    assert [(r.numerator, r.denominator) for r in rows] == [(10, 3)] * 3


def test_saving_again_replaces_the_snapshot(db, route_12_model, two_route_model):
    save_model(db, "src", two_route_model)
    save_model(db, "src", route_12_model)
    db.commit()
    assert db.query(SourceRow).count() == 1
    assert load_model(db, "src") == route_12_model


def test_day_types_are_kept(db):
    config = ScheduleConfig(day_types=frozenset([DayType.WEEKDAY, DayType.WEEKEND]))
    model, _ = build_from_markup(TWO_ROUTES.replace("holiday", "weekend"), config=config)
    save_model(db, "src", model)
    db.commit()
    assert load_model(db, "src").day_types == config.day_types


def test_missing_and_deleted_snapshots(db, route_12_model):
    assert load_model(db, "nowhere") is None
    save_model(db, "src", route_12_model)
    db.commit()
    assert delete_model(db, "src")
    db.commit()
    assert load_model(db, "src") is None
    assert not delete_model(db, "src")
