"""
fetch.py

Downloads timetable pages. Only this module talks to the network; the
parser, extractor and model work on text they are handed.
"""
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from .config import BASE_URL, FETCH_TIMEOUT, REGION_PATH
from .errors import FetchError
from .logging_utils import get_logger

log = get_logger("fetch")


def fetch_markup(url, session=None, timeout=FETCH_TIMEOUT):
    """GET ``url`` and return the body text. Raises FetchError on any failure."""
    http = session or requests
    try:
        r = http.get(url, timeout=timeout)
        r.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(f"fetching {url} failed: {e}") from e
    log.info("Fetched %s (%d bytes)", url, len(r.text))
    return r.text


def service_urls(region_html, base_url=BASE_URL):
    """Sorted absolute service URLs listed under <ul class="services">."""
    soup = BeautifulSoup(region_html, "html.parser")
    ul = soup.find("ul", class_="services")
    if not ul:
        raise FetchError("No services list found")
    hrefs = [a["href"] for a in ul.find_all("a", href=True)]
    return sorted({urljoin(base_url, h) for h in hrefs})


def fetch_service_urls(base_url=BASE_URL, region_path=REGION_PATH, session=None):
    return service_urls(fetch_markup(base_url + region_path, session), base_url)
