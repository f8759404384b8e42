"""Built-in tool catalogue."""

from typing import Mapping, Optional

from .registry import ToolRegistry
from .tax_server import make_tax_tool
from .weather_server import WeatherClient, make_weather_tool


def build_registry(
    weather_client: WeatherClient,
    tax_rates: Optional[Mapping[str, float]] = None,
) -> ToolRegistry:
    """Register the built-in tools and freeze the registry."""
    registry = ToolRegistry()
    registry.register(make_tax_tool(tax_rates))
    registry.register(make_weather_tool(weather_client))
    registry.freeze()
    return registry
