"""
Pytest configuration and fixtures for tool server testing

Provides fixtures to:
1. Build registries with the real tax tool and a stubbed weather collaborator
2. Create the FastAPI app with short stream timings and tracing disabled
3. Provide a TestClient running the app lifespan
"""
import pytest
from fastapi.testclient import TestClient

from tool_server.base import ServerSettings
from tool_server.dispatcher import Dispatcher
from tool_server.http_app import create_mcp_http_app
from tool_server.tools import build_registry


TEST_TAX_RATES = {"Texas": 0.0625, "California": 0.0725, "New York": 0.04}

PARIS = {
    "name": "Paris",
    "latitude": 48.85341,
    "longitude": 2.3488,
    "country": "France",
    "admin1": "Île-de-France",
}

PARIS_FORECAST = {
    "current_units": {"temperature_2m": "°C", "relative_humidity_2m": "%", "wind_speed_10m": "km/h"},
    "current": {"time": "2026-10-18T12:00", "temperature_2m": 14.2, "relative_humidity_2m": 71, "wind_speed_10m": 9.4},
    "hourly_units": {"temperature_2m": "°C"},
    "hourly": {
        "time": ["2026-10-18T13:00", "2026-10-18T14:00", "2026-10-18T15:00"],
        "temperature_2m": [14.8, 15.1, 14.6],
    },
}


class FakeWeatherClient:
    """In-memory stand-in for WeatherClient."""

    def __init__(self, locations=None, forecast=None, error=None):
        self.locations = locations if locations is not None else {"Paris": PARIS}
        self.forecast_payload = forecast if forecast is not None else PARIS_FORECAST
        self.error = error
        self.geocode_calls = []

    async def geocode(self, city):
        self.geocode_calls.append(city)
        if self.error:
            raise self.error
        return self.locations.get(city)

    async def forecast(self, latitude, longitude):
        return self.forecast_payload

    async def aclose(self):
        pass


@pytest.fixture
def weather_client():
    return FakeWeatherClient()


@pytest.fixture
def registry(weather_client):
    return build_registry(weather_client, tax_rates=TEST_TAX_RATES)


@pytest.fixture
def dispatcher(registry):
    return Dispatcher(registry)


@pytest.fixture
def settings():
    return ServerSettings(
        service_name="tool-server-test",
        heartbeat_interval_ms=50,
        completion_delay_ms=10,
        enable_tracing=False,
    )


@pytest.fixture
def app(settings, registry):
    return create_mcp_http_app(settings, registry=registry)


@pytest.fixture
def client(app):
    """Create test client for the FastAPI app with lifespan context."""
    with TestClient(app) as c:
        yield c
