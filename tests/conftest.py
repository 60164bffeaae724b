"""
Rainwatch Test Configuration

Shared fixtures and configuration for pytest.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import httpx
import pytest
import pytz

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from rainwatch.agent import WeatherAgent
from rainwatch.core.exceptions import LocationNotFound
from rainwatch.core.store import MemorySettingsStore
from rainwatch.delivery.channels import Notifier
from rainwatch.forecast.fetcher import ForecastFetcher, select_window
from rainwatch.forecast.models import Coordinate, ForecastPoint, ForecastSeries
from rainwatch.geocoding import Geocoder, LocationFetcher, LocationSuggestion

NOW = pytz.utc.localize(datetime(2026, 10, 18, 12, 0))
PARIS = Coordinate(48.8534, 2.3488)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# =============================================================================
# Fakes
# =============================================================================

class FakeClock:
    """Settable clock."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeTimer:
    """Records arm/cancel calls instead of scheduling anything."""

    def __init__(self, clock):
        self.clock = clock
        self.armed = None
        self.arm_calls = []
        self.cancel_calls = 0
        self.shut_down = False

    def arm(self, interval_seconds, callback):
        fire_at = self.clock() + timedelta(seconds=interval_seconds)
        self.armed = (interval_seconds, callback, fire_at)
        self.arm_calls.append((interval_seconds, fire_at))
        return fire_at

    def cancel(self):
        self.cancel_calls += 1
        self.armed = None

    @property
    def is_armed(self) -> bool:
        return self.armed is not None

    def shutdown(self):
        self.shut_down = True


class FakeGeocoder(Geocoder):
    """Answers from a fixed table of query -> suggestions."""

    def __init__(self, matches: Optional[Dict[str, List[LocationSuggestion]]] = None, reverse_name=None, error=None):
        self.matches = matches or {}
        self.reverse_name = reverse_name
        self.error = error
        self.calls = []

    async def geocode_forward(self, query):
        self.calls.append(query)
        if self.error is not None:
            raise self.error
        found = self.matches.get(query.strip())
        if not found:
            raise LocationNotFound(f"no matches for '{query}'")
        return list(found)

    async def geocode_reverse(self, coordinate):
        return self.reverse_name


class FakeLocationFetcher(LocationFetcher):
    def __init__(self, coordinate=PARIS, error=None):
        self.coordinate = coordinate
        self.error = error

    async def current_location(self):
        if self.error is not None:
            raise self.error
        return self.coordinate


class RecordingNotifier(Notifier):
    """Notifier that keeps every delivered alert."""

    def __init__(self, grant: bool = True):
        super().__init__("recording")
        self.grant = grant
        self.sent = []
        self.permission_requests = 0

    def _is_authorized(self):
        return self.grant

    async def request_permission(self):
        self.permission_requests += 1
        return await super().request_permission()

    async def _deliver(self, title, body):
        self.sent.append((title, body))
        return True


class StubFetcher(ForecastFetcher):
    """ForecastFetcher whose network fetch returns a canned series.

    Set ``gate`` to an asyncio.Event to hold a fetch in flight.
    """

    def __init__(self, geocoder, series=None, error=None):
        super().__init__(geocoder, validate=False)
        self.series = series
        self.error = error
        self.gate = None
        self.fetch_calls = []

    async def fetch_for_coordinate(self, coordinate, lookahead):
        self.fetch_calls.append((coordinate, lookahead))
        self.last_request_url = self.forecast_link(coordinate, lookahead)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.series


# =============================================================================
# Forecast Fixtures
# =============================================================================

def build_series(probabilities, rain=None, start=NOW, lookahead=12, tz=pytz.utc, now=None, step_hours=1):
    rain = rain if rain is not None else [0.0] * len(probabilities)
    points = [
        ForecastPoint(start + timedelta(hours=i * step_hours), float(p), float(r))
        for i, (p, r) in enumerate(zip(probabilities, rain))
    ]
    now = now or start
    return ForecastSeries(
        all_points=tuple(points),
        timezone=tz,
        lookahead_hours=lookahead,
        window_points=select_window(points, now, lookahead, fallback_count=lookahead),
        next_24_hour_points=select_window(points, now, 24, fallback_count=24, limit=24),
    )


@pytest.fixture
def make_series():
    """Factory for hourly series starting at NOW."""
    return build_series


@pytest.fixture
def open_meteo_payload():
    """Factory for Open-Meteo forecast payloads."""

    def _payload(probabilities, rain=None, start="2026-10-18T12:00", timezone="GMT",
                 utc_offset_seconds=0, times=None):
        base = datetime.strptime(start, "%Y-%m-%dT%H:%M")
        if times is None:
            times = [(base + timedelta(hours=i)).strftime("%Y-%m-%dT%H:%M") for i in range(len(probabilities))]
        return {
            "latitude": 48.86,
            "longitude": 2.34,
            "timezone": timezone,
            "utc_offset_seconds": utc_offset_seconds,
            "hourly_units": {"time": "iso8601", "precipitation_probability": "%", "rain": "mm"},
            "hourly": {
                "time": times,
                "precipitation_probability": probabilities,
                "rain": rain if rain is not None else [0.0] * len(probabilities),
            },
        }

    return _payload


@pytest.fixture
def mock_http_client():
    """Factory for AsyncClients answered by an in-process handler."""

    def _client(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _client


# =============================================================================
# Agent Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def paris_suggestion():
    return LocationSuggestion(PARIS, "Paris", "Île-de-France, France")


@pytest.fixture
def make_agent(clock, paris_suggestion):
    """Build a WeatherAgent wired to fakes.

    Returns a factory; keyword arguments override the stored config, the
    canned series and the notifier permission.
    """

    def _make(stored=None, series=None, error=None, grant=True, location_fetcher=None, geocoder=None):
        geocoder = geocoder or FakeGeocoder({"Paris": [paris_suggestion]}, reverse_name="Paris, Île-de-France")
        fetcher = StubFetcher(geocoder, series=series, error=error)
        return WeatherAgent(
            store=MemorySettingsStore(stored),
            fetcher=fetcher,
            notifier=RecordingNotifier(grant=grant),
            timer=FakeTimer(clock),
            location_fetcher=location_fetcher,
            clock=clock,
        )

    return _make
