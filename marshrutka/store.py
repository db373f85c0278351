"""
store.py

Saves schedule snapshots to a database and loads them back. Fares are kept
as integer numerator/denominator pairs so a reloaded model compares equal
to the one that was saved.

    engine = make_engine()            # DATABASE_URL / DB_* / SQLITE_PATH
    init_db(engine)
    with session_factory(engine)() as db:
        save_model(db, url, model)
        db.commit()
"""
from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DayType, database_url
from .logging_utils import get_logger
from .model import Departure, Route, ScheduleModel, Stop
from .rational import Rational
from .timeparse import Recurrence

log = get_logger("store")

Base = declarative_base()


class SourceRow(Base):
    __tablename__ = "sources"
    id = Column(Integer, primary_key=True)
    key = Column(String, unique=True, index=True, nullable=False)
    day_types = Column(String, nullable=False)


class RouteRow(Base):
    __tablename__ = "routes"
    id = Column(Integer, primary_key=True)
    source_id = Column(Integer, ForeignKey("sources.id"), index=True, nullable=False)
    route_id = Column(String, nullable=False)
    name = Column(String)
    position = Column(Integer, nullable=False)
    fare_numerator = Column(Integer, nullable=False)
    fare_denominator = Column(Integer, nullable=False)
    __table_args__ = (UniqueConstraint("source_id", "route_id", name="uix_source_route"),)


class StopRow(Base):
    __tablename__ = "stops"
    id = Column(Integer, primary_key=True)
    route_pk = Column(Integer, ForeignKey("routes.id"), index=True, nullable=False)
    stop_id = Column(String, nullable=False)
    name = Column(String)
    sequence = Column(Integer, nullable=False)
    __table_args__ = (UniqueConstraint("route_pk", "sequence", name="uix_route_sequence"),)


class FareShareRow(Base):
    __tablename__ = "fare_shares"
    id = Column(Integer, primary_key=True)
    route_pk = Column(Integer, ForeignKey("routes.id"), index=True, nullable=False)
    segment = Column(Integer, nullable=False)
    numerator = Column(Integer, nullable=False)
    denominator = Column(Integer, nullable=False)


class DepartureRow(Base):
    __tablename__ = "departures"
    id = Column(Integer, primary_key=True)
    route_pk = Column(Integer, ForeignKey("routes.id"), index=True, nullable=False)
    stop_id = Column(String, nullable=False)
    day_type = Column(String, index=True, nullable=False)
    minutes = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False)
    # recurrence shorthand the departure was expanded from, if any
    recurrence_every = Column(Integer)
    recurrence_start = Column(Integer)
    recurrence_end = Column(Integer)


def make_engine(url=None):
    return create_engine(url or database_url(), future=True)


def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


def init_db(engine, reset=False):
    if reset:
        Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


def delete_model(session, source_key):
    """Remove a stored snapshot; True if there was one."""
    source = session.query(SourceRow).filter_by(key=source_key).first()
    if not source:
        return False
    route_pks = [pk for (pk,) in session.query(RouteRow.id).filter_by(source_id=source.id)]
    if route_pks:
        for row_type in (DepartureRow, FareShareRow, StopRow):
            session.query(row_type).filter(row_type.route_pk.in_(route_pks)).delete(synchronize_session=False)
        session.query(RouteRow).filter(RouteRow.id.in_(route_pks)).delete(synchronize_session=False)
    session.delete(source)
    session.flush()
    return True


def save_model(session, source_key, model):
    """Store ``model`` under ``source_key``, replacing any earlier snapshot. Caller commits."""
    delete_model(session, source_key)
    source = SourceRow(
        key=source_key,
        day_types=",".join(d.value for d in DayType if d in model.day_types),
    )
    session.add(source)
    session.flush()

    route_pks = {}
    for position, route in enumerate(model.routes()):
        row = RouteRow(
            source_id=source.id,
            route_id=route.route_id,
            name=route.name,
            position=position,
            fare_numerator=route.total_fare.numerator,
            fare_denominator=route.total_fare.denominator,
        )
        session.add(row)
        session.flush()
        route_pks[route.route_id] = row.id
        for stop in route.stops:
            session.add(StopRow(route_pk=row.id, stop_id=stop.stop_id, name=stop.name, sequence=stop.sequence))
        for segment, share in enumerate(route.fare_shares):
            session.add(
                FareShareRow(
                    route_pk=row.id,
                    segment=segment,
                    numerator=share.numerator,
                    denominator=share.denominator,
                )
            )

    for position, d in enumerate(model.all_departures()):
        rec = d.recurrence
        session.add(
            DepartureRow(
                route_pk=route_pks[d.route_id],
                stop_id=d.stop_id,
                day_type=d.day_type.value,
                minutes=d.minutes,
                position=position,
                recurrence_every=rec.every if rec else None,
                recurrence_start=rec.start if rec else None,
                recurrence_end=rec.end if rec else None,
            )
        )
    session.flush()
    log.info("Saved schedule for %s %s", source_key, model.summary())
    return source.id


def load_model(session, source_key):
    """Rebuild the stored ScheduleModel for ``source_key``; None if never saved."""
    source = session.query(SourceRow).filter_by(key=source_key).first()
    if not source:
        return None

    route_rows = (
        session.query(RouteRow).filter_by(source_id=source.id).order_by(RouteRow.position).all()
    )
    by_pk = {r.id: r for r in route_rows}
    routes = []
    for r in route_rows:
        stops = (
            session.query(StopRow).filter_by(route_pk=r.id).order_by(StopRow.sequence).all()
        )
        shares = (
            session.query(FareShareRow).filter_by(route_pk=r.id).order_by(FareShareRow.segment).all()
        )
        departure_days = {
            day
            for (day,) in session.query(DepartureRow.day_type).filter_by(route_pk=r.id).distinct()
        }
        routes.append(
            Route(
                route_id=r.route_id,
                name=r.name,
                stops=tuple(Stop(s.stop_id, s.name, s.sequence) for s in stops),
                day_types=frozenset(DayType(d) for d in departure_days),
                total_fare=Rational(r.fare_numerator, r.fare_denominator),
                fare_shares=tuple(Rational(s.numerator, s.denominator) for s in shares),
            )
        )

    departures = []
    rows = []
    if by_pk:
        rows = (
            session.query(DepartureRow)
            .filter(DepartureRow.route_pk.in_(list(by_pk)))
            .order_by(DepartureRow.position)
            .all()
        )
    for row in rows:
        rec = None
        if row.recurrence_every is not None:
            rec = Recurrence(row.recurrence_every, row.recurrence_start, row.recurrence_end)
        departures.append(
            Departure(by_pk[row.route_pk].route_id, row.stop_id, DayType(row.day_type), row.minutes, rec)
        )

    day_types = frozenset(DayType(d) for d in source.day_types.split(",") if d)
    return ScheduleModel.from_entities(routes, departures, day_types)
