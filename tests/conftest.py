import pytest
import requests

from marshrutka.config import ScheduleConfig
from marshrutka.model import build_from_markup

ROUTE_12 = """<!DOCTYPE html>
<html><body>
<section class="route" data-route="12" data-fare="30">
  <h2 class="route-name">Market - Station</h2>
  <ol class="stops">
    <li class="stop" data-stop="A">Market</li>
    <li class="stop" data-stop="B">Library</li>
    <li class="stop" data-stop="C">Station</li>
  </ol>
  <table class="schedule" data-day="weekday">
    <thead><tr><th>Stop</th><th>Time</th></tr></thead>
    <tbody>
      <tr><td class="stop">A</td><td class="time">08:00</td></tr>
      <tr><td class="stop">A</td><td class="time">08:30</td></tr>
      <tr><td class="stop">A</td><td class="time">09:00</td></tr>
      <tr><td class="stop">B</td><td class="time">8.10</td></tr>
      <tr><td class="stop">C</td><td class="time">every 20 min 08:00–09:00</td></tr>
    </tbody>
  </table>
  <table class="schedule" data-day="weekend">
    <tr><td class="stop">A</td><td class="time">10:00</td></tr>
  </table>
</section>
</body></html>
"""

TWO_ROUTES = """
<section class="route" data-route="7" data-fare="10">
  <h2 class="route-name">Harbour loop</h2>
  <ul class="stops">
    <li class="stop" data-stop="H">Harbour</li>
    <li class="stop" data-stop="M">Market</li>
  </ul>
  <table class="schedule" data-day="weekday">
    <tr><td class="stop">M</td><td class="time">08:00</td></tr>
  </table>
  <table class="schedule" data-day="holiday">
    <tr><td class="stop">M</td><td class="time">08:00</td></tr>
  </table>
</section>
<section class="route" data-route="12" data-fare="45">
  <h2 class="route-name">Market - Station</h2>
  <ul class="stops">
    <li class="stop" data-stop="M">Market</li>
    <li class="stop" data-stop="S">Station</li>
  </ul>
  <table class="schedule" data-day="weekday">
    <tr><td class="stop">M</td><td class="time">08:00</td></tr>
  </table>
  <table class="schedule" data-day="weekend">
    <tr><td class="stop">M</td><td class="time">07:00</td></tr>
  </table>
</section>
"""


@pytest.fixture
def config():
    return ScheduleConfig()


@pytest.fixture
def route_12_model(config):
    model, diagnostics = build_from_markup(ROUTE_12, config=config)
    assert diagnostics == []
    return model


@pytest.fixture
def two_route_model(config):
    model, _ = build_from_markup(TWO_ROUTES, config=config)
    return model


class FakeResponse:
    def __init__(self, text="", status=200):
        self.text = text
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Stands in for requests.Session; unknown URLs fail to connect."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        page = self.pages.get(url)
        if page is None:
            raise requests.ConnectionError(f"cannot reach {url}")
        return page
