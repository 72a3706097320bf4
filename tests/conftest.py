"""
Shared fixtures: an in-memory store, a settable clock and fake provider
clients with call counters, wired into an AppContext the app can be built with.
"""

import json
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from dashfeed.config import AppContext, Settings
from dashfeed.errors import UpstreamError
from dashfeed.main import create_app
from dashfeed.providers.tomtom import parse_route_summary
from dashfeed.store import MemoryKV, SnapshotStore

# Tuesday 2026-10-13 10:00 America/Chicago (CDT, UTC-5)
TUESDAY_10_CHI = datetime(2026, 10, 13, 15, 0, tzinfo=UTC)
# Saturday 2026-10-17 10:00 America/Chicago
SATURDAY_10_CHI = datetime(2026, 10, 17, 15, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeTomTom:
    def __init__(self):
        self.geocode_calls = []
        self.route_calls = []
        self.fail_geocode_for = set()
        self.fail_routes = False
        self.null_route_summary = False
        self.travel_time_sec = 1500
        self.no_traffic_time_sec = 1200

    async def geocode(self, query, bias, bbox):
        self.geocode_calls.append((query, bias, bbox))
        if query in self.fail_geocode_for:
            raise UpstreamError("tomtom", f'Geocode failed for "{query}"')
        return {"label": query.title(), "lat": 41.9, "lon": -87.7}

    async def route(self, origin, destination):
        self.route_calls.append((origin, destination))
        if self.fail_routes:
            raise UpstreamError("tomtom", "HTTP 503: unavailable")
        if self.null_route_summary:
            return parse_route_summary({"routes": [{"summary": None}]})
        return {
            "travel_time_sec": self.travel_time_sec,
            "no_traffic_time_sec": self.no_traffic_time_sec,
            "distance_m": 12000,
        }


class FakeOpenMeteo:
    def __init__(self):
        self.geocode_calls = []
        self.forecast_calls = []
        self.known_cities = {
            "denver": {
                "name": "Denver",
                "admin1": "Colorado",
                "country": "United States",
                "lat": 39.7392,
                "lon": -104.9903,
                "timezone": "America/Denver",
            }
        }

    async def geocode_city(self, name, default_tz="America/Chicago"):
        self.geocode_calls.append(name)
        return self.known_cities.get(name.strip().lower())

    async def forecast(self, lat, lon, timezone):
        self.forecast_calls.append((lat, lon, timezone))
        return {
            "current": {"temperature_2m": 61.3, "weather_code": 3},
            "daily": {"temperature_2m_max": [66.0], "temperature_2m_min": [48.1]},
            "hourly": None,
        }


class FakeTwelveData:
    def __init__(self):
        self.quote_calls = []
        self.series_calls = []
        self.fail_quotes = set()
        self.fail_series = False

    async def quote(self, symbol):
        self.quote_calls.append(symbol)
        if symbol in self.fail_quotes:
            raise UpstreamError("twelvedata", f"Bad price for {symbol}")
        return {"price": 500.25, "change": 1.5, "percent_change": 0.3}

    async def daily_series(self, symbol, count=12):
        self.series_calls.append((symbol, count))
        if self.fail_series:
            raise UpstreamError("twelvedata", f"series {symbol}: rate limited")
        # newest-first, like the provider
        return [{"date": f"2026-10-{12 - i:02d}", "close": 100.0 + i} for i in range(count)]


@pytest.fixture
def kv():
    return MemoryKV()


@pytest.fixture
def store(kv):
    return SnapshotStore(kv)


@pytest.fixture
def clock():
    return FakeClock(TUESDAY_10_CHI)


@pytest.fixture
def tomtom():
    return FakeTomTom()


@pytest.fixture
def openmeteo():
    return FakeOpenMeteo()


@pytest.fixture
def twelvedata():
    return FakeTwelveData()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def ctx(settings, store, clock, tomtom, openmeteo, twelvedata):
    return AppContext(
        settings=settings,
        store=store,
        tomtom=tomtom,
        openmeteo=openmeteo,
        twelvedata=twelvedata,
        clock=clock,
    )


@pytest.fixture
def client(ctx):
    with TestClient(create_app(ctx)) as c:
        yield c


@pytest.fixture
def parse_script():
    """Pull the JSON literal back out of an embedded-script body."""

    def _parse(body: str, field: str):
        marker = f"window.DASH_DATA.{field} = "
        assert marker in body, body
        literal = body.split(marker, 1)[1].rstrip().rstrip(";")
        return json.loads(literal)

    return _parse
