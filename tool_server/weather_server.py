"""
Weather Tool

Provides the ``get-weather`` tool backed by two Open-Meteo endpoints:
- geocoding: city name -> coordinates
- forecast: coordinates -> current and hourly conditions

An unknown city is answered with an apology, not an error. Network failures and
an open circuit breaker propagate to the dispatcher.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

import httpx
from aiobreaker import CircuitBreaker, CircuitBreakerError

from error_handling import trace_span

from .base import DEFAULT_FORECAST_URL, DEFAULT_GEOCODING_URL, ServerSettings, ToolResult
from .registry import ParameterSpec, ToolDefinition

logger = logging.getLogger("tool_server.weather")

CURRENT_FIELDS = "temperature_2m,relative_humidity_2m,wind_speed_10m"
HOURLY_FIELDS = "temperature_2m,relative_humidity_2m"
HOURLY_PREVIEW = 3


class WeatherClient:
    """
    Async client for the geocoding and forecast services.

    Calls share one httpx.AsyncClient and one circuit breaker (5 failures,
    60s recovery), so a dead upstream fails fast instead of stacking timeouts.
    """

    def __init__(
        self,
        geocoding_url: str = DEFAULT_GEOCODING_URL,
        forecast_url: str = DEFAULT_FORECAST_URL,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.geocoding_url = geocoding_url
        self.forecast_url = forecast_url
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._circuit_breaker = CircuitBreaker(
            fail_max=5,
            timeout_duration=timedelta(seconds=60),
            name="weather_api"
        )

    @classmethod
    def from_settings(cls, settings: ServerSettings) -> "WeatherClient":
        return cls(
            geocoding_url=settings.geocoding_url,
            forecast_url=settings.forecast_url,
            timeout=settings.weather_timeout_s,
        )

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        @self._circuit_breaker
        async def protected_call():
            response = await self._http_client.get(url, params=params)
            response.raise_for_status()
            return response.json()

        try:
            return await protected_call()
        except CircuitBreakerError as e:
            logger.error(f"Circuit breaker open for {url}")
            raise RuntimeError("Weather service temporarily unavailable") from e

    @trace_span("weather.geocode", attributes={"component": "weather_api"})
    async def geocode(self, city: str) -> Optional[Dict[str, Any]]:
        """Return the best match for ``city`` or None when nothing matches."""
        data = await self._get_json(
            self.geocoding_url,
            {"name": city, "count": 1, "language": "en", "format": "json"},
        )
        results = data.get("results") or []
        return results[0] if results else None

    @trace_span("weather.forecast", attributes={"component": "weather_api"})
    async def forecast(self, latitude: float, longitude: float) -> Dict[str, Any]:
        return await self._get_json(
            self.forecast_url,
            {
                "latitude": latitude,
                "longitude": longitude,
                "current": CURRENT_FIELDS,
                "hourly": HOURLY_FIELDS,
                "forecast_hours": HOURLY_PREVIEW,
                "timezone": "auto",
            },
        )

    async def aclose(self) -> None:
        await self._http_client.aclose()


def _place_name(location: Dict[str, Any]) -> str:
    parts = [location.get("name"), location.get("admin1"), location.get("country")]
    seen: List[str] = []
    for part in parts:
        if part and part not in seen:
            seen.append(part)
    return ", ".join(seen)


def _reading(values: Dict[str, Any], units: Dict[str, Any], key: str) -> Optional[str]:
    value = values.get(key)
    if value is None:
        return None
    return f"{value}{units.get(key, '')}"


def format_forecast(location: Dict[str, Any], forecast: Dict[str, Any]) -> str:
    """Render the forecast payload as a short text report."""
    place = _place_name(location)
    current = forecast.get("current") or {}
    units = forecast.get("current_units") or {}
    if not current:
        return f"Weather data for {place} is currently unavailable."

    lines = [f"Current weather in {place}:"]
    for label, key in (
        ("Temperature", "temperature_2m"),
        ("Humidity", "relative_humidity_2m"),
        ("Wind speed", "wind_speed_10m"),
    ):
        reading = _reading(current, units, key)
        if reading is not None:
            lines.append(f"{label}: {reading}")

    hourly = forecast.get("hourly") or {}
    hourly_units = forecast.get("hourly_units") or {}
    times = hourly.get("time") or []
    temperatures = hourly.get("temperature_2m") or []
    if times and temperatures:
        unit = hourly_units.get("temperature_2m", "")
        preview = [
            f"{time}: {temperature}{unit}"
            for time, temperature in list(zip(times, temperatures))[:HOURLY_PREVIEW]
        ]
        lines.append("Next hours: " + ", ".join(preview))

    return "\n".join(lines)


def make_weather_tool(client: WeatherClient) -> ToolDefinition:
    """Build the ``get-weather`` definition around a WeatherClient."""

    async def get_weather(params: Dict[str, Any]) -> ToolResult:
        city = params["city"]
        if not city.strip():
            return ToolResult.text("Sorry, I couldn't find a city named ''.")

        logger.info(f"Looking up weather for {city}")
        location = await client.geocode(city.strip())
        if location is None:
            return ToolResult.text(f"Sorry, I couldn't find a city named '{city}'.")

        forecast = await client.forecast(location["latitude"], location["longitude"])
        return ToolResult.text(format_forecast(location, forecast))

    return ToolDefinition(
        name="get-weather",
        description="Gets the current weather and a short hourly outlook for a city.",
        parameters=(ParameterSpec("city", "string", "City name, e.g. Paris"),),
        handler=get_weather,
    )
