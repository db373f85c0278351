# app.py
from flask import Flask, jsonify, request
from flask_caching import Cache

from marshrutka import config
from marshrutka.cache import ScheduleCache
from marshrutka.errors import MarshrutkaError, QueryError, QueryErrorKind
from marshrutka.fetch import fetch_markup
from marshrutka.query import ScheduleQuery
from marshrutka.rules import BUSTIMES_RULES

NOT_FOUND = {QueryErrorKind.UNKNOWN_ROUTE, QueryErrorKind.UNKNOWN_STOP}


def fare_json(value):
    return {"numerator": value.numerator, "denominator": value.denominator, "display": value.display()}


def departure_json(d):
    return {
        "route_id": d.route_id,
        "stop_id": d.stop_id,
        "day_type": d.day_type.value,
        "departure_time": d.time,
        "minutes": d.minutes,
    }


def create_app(source=None, schedules=None, fetch=fetch_markup):
    """
    source: URL (cache key) of the timetable to serve
    schedules: ScheduleCache to share; fetch: source -> markup text
    """
    app = Flask(__name__)
    cache = Cache(config={"CACHE_TYPE": "SimpleCache", "CACHE_DEFAULT_TIMEOUT": 60})
    cache.init_app(app)
    app.config["SCHEDULE_SOURCE"] = source or config.SCHEDULE_SOURCE
    app.config["SOURCE_BASE_URL"] = config.BASE_URL
    if schedules is None:
        schedules = ScheduleCache(rules=BUSTIMES_RULES)
    app.config["SCHEDULES"] = schedules

    def allowed_source(key):
        # only the configured source or pages of the scraped site get fetched
        base = app.config["SOURCE_BASE_URL"].rstrip("/") + "/"
        return key == app.config["SCHEDULE_SOURCE"] or key.startswith(base)

    def current_query():
        key = request.args.get("source") or app.config["SCHEDULE_SOURCE"]
        if not key:
            raise QueryError(QueryErrorKind.UNKNOWN_ROUTE, "no schedule source configured")
        if not allowed_source(key):
            raise ValueError(f"source {key!r} is not served here")
        model = schedules.get(key)
        if model is None:
            model = schedules.refresh(key, fetch)
        return ScheduleQuery(model)

    @app.errorhandler(QueryError)
    def query_error(e):
        status = 404 if e.kind in NOT_FOUND else 400
        return jsonify({"error": e.kind.value, "message": str(e)}), status

    @app.errorhandler(MarshrutkaError)
    def schedule_error(e):
        return jsonify({"error": type(e).__name__, "message": str(e)}), 502

    @app.errorhandler(ValueError)
    def bad_argument(e):
        return jsonify({"error": "bad-argument", "message": str(e)}), 400

    @app.route("/api/routes", methods=["GET"])
    @cache.cached(query_string=True)
    def get_routes():
        name_like = (request.args.get("name_like") or "").lower()
        q = current_query()
        return jsonify([
            {
                "id": r.route_id,
                "name": r.name,
                "day_types": sorted(d.value for d in r.day_types),
                "fare": fare_json(r.total_fare),
            }
            for r in q.model.routes()
            if name_like in r.name.lower()
        ])

    @app.route("/api/stops", methods=["GET"])
    @cache.cached(query_string=True)
    def get_stops():
        q = current_query()
        route_id = request.args.get("route_id")
        routes = [q.route(route_id)] if route_id else q.model.routes()
        name_like = (request.args.get("name_like") or "").lower()
        return jsonify([
            {"id": s.stop_id, "name": s.name, "route_id": r.route_id, "sequence": s.sequence}
            for r in routes
            for s in r.stops
            if name_like in s.name.lower()
        ])

    @app.route("/api/timetable", methods=["GET"])
    @cache.cached(query_string=True)
    def get_timetable():
        q = current_query()
        window = q.departures_between(
            request.args.get("route_id"),
            request.args.get("stop_id"),
            request.args.get("day_type", "weekday"),
            request.args.get("from", "00:00"),
            request.args.get("to", "47:59"),
        )
        return jsonify([departure_json(d) for d in window])

    @app.route("/api/next", methods=["GET"])
    def get_next():
        q = current_query()
        d = q.next_departure(
            request.args.get("route_id"),
            request.args.get("stop_id"),
            request.args.get("day_type", "weekday"),
            request.args.get("after", "00:00"),
        )
        return jsonify(departure_json(d) if d else None)

    @app.route("/api/fare", methods=["GET"])
    @cache.cached(query_string=True)
    def get_fare():
        q = current_query()
        share = q.fare_for_segment(
            request.args.get("route_id"),
            request.args.get("from_stop_id"),
            request.args.get("to_stop_id"),
        )
        return jsonify(fare_json(share))

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
