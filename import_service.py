#!/usr/bin/env python3
"""
import_service.py

Fetches a single timetable from a bustimes.org service page, builds the
schedule and stores it in the database.
Usage:
    pip install -e .
    export DATABASE_URL or DB_HOST,DB_NAME,DB_USER,DB_PASSWORD
    python import_service.py SERVICE_URL
"""
import sys

from marshrutka.errors import MarkupError, MarshrutkaError
from marshrutka.fetch import fetch_markup
from marshrutka.model import build_from_markup
from marshrutka.rules import BUSTIMES_RULES
from marshrutka.store import init_db, make_engine, save_model, session_factory


def import_service(url, db, session=None, config=None):
    """Fetch, build and save one service page. Returns (model, diagnostics)."""
    markup = fetch_markup(url, session)
    model, diagnostics = build_from_markup(markup, BUSTIMES_RULES, config)
    if not model.routes():
        raise MarkupError(f"No timetable table found at {url}")
    save_model(db, url, model)
    return model, diagnostics


def ingest_service(url):
    engine = make_engine()
    init_db(engine)
    db = session_factory(engine)()
    try:
        model, diagnostics = import_service(url, db)
        db.commit()
        counts = model.summary()
        print(
            f"Importing '{url}': {counts['departures']} departures across "
            f"{counts['routes']} direction(s), {counts['stops']} stops"
        )
        if diagnostics:
            print(f"- {len(diagnostics)} record(s) skipped:")
            for d in diagnostics:
                print(f"  {d}")
        print("Ingestion complete")
        return 0
    except MarshrutkaError as e:
        db.rollback()
        print("Error:", e, file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: import_service.py SERVICE_URL")
        sys.exit(1)
    sys.exit(ingest_service(sys.argv[1]))
