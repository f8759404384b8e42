"""
Tests for the get-weather tool and its Open-Meteo client.

The HTTP layer is replaced with httpx.MockTransport; nothing leaves the process.
"""
import httpx
import pytest

from tool_server.weather_server import WeatherClient, format_forecast, make_weather_tool

from conftest import FakeWeatherClient, PARIS, PARIS_FORECAST

GEOCODING_URL = "https://geo.test/v1/search"
FORECAST_URL = "https://forecast.test/v1/forecast"


def _client(handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WeatherClient(GEOCODING_URL, FORECAST_URL, http_client=http_client)


class TestWeatherClient:

    @pytest.mark.asyncio
    async def test_geocode_returns_first_result(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"results": [PARIS, {"name": "Paris", "country": "United States"}]})

        client = _client(handler)
        location = await client.geocode("Paris")
        await client.aclose()

        assert location == PARIS
        assert seen[0].url.host == "geo.test"
        assert seen[0].url.params["name"] == "Paris"
        assert seen[0].url.params["count"] == "1"

    @pytest.mark.asyncio
    async def test_geocode_without_results(self):
        client = _client(lambda request: httpx.Response(200, json={"generationtime_ms": 0.5}))
        assert await client.geocode("Nowhereville") is None
        await client.aclose()

    @pytest.mark.asyncio
    async def test_forecast_requests_current_fields(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=PARIS_FORECAST)

        client = _client(handler)
        payload = await client.forecast(48.85, 2.35)
        await client.aclose()

        assert payload == PARIS_FORECAST
        params = seen[0].url.params
        assert params["latitude"] == "48.85"
        assert "temperature_2m" in params["current"]

    @pytest.mark.asyncio
    async def test_http_errors_propagate(self):
        client = _client(lambda request: httpx.Response(503))
        with pytest.raises(httpx.HTTPStatusError):
            await client.geocode("Paris")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_circuit_breaker_opens_after_repeated_failures(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = _client(handler)
        errors = []
        for _ in range(7):
            with pytest.raises(Exception) as exc_info:
                await client.geocode("Paris")
            errors.append(exc_info.value)
        await client.aclose()

        assert isinstance(errors[-1], RuntimeError)
        assert str(errors[-1]) == "Weather service temporarily unavailable"
        # once open, the upstream is no longer contacted
        assert len(calls) <= 5


class TestFormatForecast:

    def test_full_report(self):
        assert format_forecast(PARIS, PARIS_FORECAST) == "\n".join([
            "Current weather in Paris, Île-de-France, France:",
            "Temperature: 14.2°C",
            "Humidity: 71%",
            "Wind speed: 9.4km/h",
            "Next hours: 2026-10-18T13:00: 14.8°C, 2026-10-18T14:00: 15.1°C, 2026-10-18T15:00: 14.6°C",
        ])

    def test_missing_current_block(self):
        assert format_forecast({"name": "Paris"}, {}) == "Weather data for Paris is currently unavailable."

    def test_repeated_place_parts_collapse(self):
        location = {"name": "Singapore", "admin1": None, "country": "Singapore"}
        forecast = {"current": {"temperature_2m": 31}, "current_units": {"temperature_2m": "°C"}}
        assert format_forecast(location, forecast) == "Current weather in Singapore:\nTemperature: 31°C"


class TestWeatherTool:

    @pytest.mark.asyncio
    async def test_unknown_city_apology(self):
        tool = make_weather_tool(FakeWeatherClient(locations={}))
        result = await tool.handler({"city": "Nowhereville"})
        assert result.content[0]["text"] == "Sorry, I couldn't find a city named 'Nowhereville'."

    @pytest.mark.asyncio
    async def test_blank_city_skips_lookup(self):
        client = FakeWeatherClient()
        tool = make_weather_tool(client)
        result = await tool.handler({"city": "   "})
        assert result.content[0]["text"].startswith("Sorry, I couldn't find a city named")
        assert client.geocode_calls == []

    @pytest.mark.asyncio
    async def test_report_for_known_city(self):
        tool = make_weather_tool(FakeWeatherClient())
        result = await tool.handler({"city": " Paris "})
        assert result.content[0]["text"].startswith("Current weather in Paris")
