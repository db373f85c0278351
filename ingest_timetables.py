#!/usr/bin/env python3
"""
ingest_timetables.py

Fetches all timetables listed under class="services" on the region page
(BASE_URL + REGION_PATH) and stores each one in the database. A service that
fails to fetch or build is reported and skipped; the rest still load.
"""
import sys

import requests

from import_service import import_service
from marshrutka.config import BASE_URL, REGION_PATH
from marshrutka.errors import MarshrutkaError
from marshrutka.fetch import fetch_service_urls
from marshrutka.store import init_db, make_engine, session_factory


def main():
    engine = make_engine()
    # (Re)create schema once
    init_db(engine, reset=True)
    http = requests.Session()
    db = session_factory(engine)()
    failed = []
    try:
        services = fetch_service_urls(BASE_URL, REGION_PATH, http)
        print(f"Found {len(services)} services to ingest")
        for url in services:
            print(f"Ingesting {url}")
            try:
                model, diagnostics = import_service(url, db, http)
                db.commit()
            except MarshrutkaError as e:
                db.rollback()
                print(f"- skipped: {e}", file=sys.stderr)
                failed.append(url)
                continue
            print(f"- {model.summary()} ({len(diagnostics)} diagnostics)")
    except MarshrutkaError as e:
        db.rollback()
        print("Error during ingestion:", e, file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()
    if failed:
        print(f"{len(failed)} service(s) failed", file=sys.stderr)
        sys.exit(1)
    print("All services ingested successfully")


if __name__ == "__main__":
    main()
