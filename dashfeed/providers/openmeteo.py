# dashfeed/providers/openmeteo.py
# Open-Meteo forecast + city geocoding. No API key.

from __future__ import annotations

from typing import Any

import httpx

from dashfeed.errors import UpstreamError
from dashfeed.providers.http import get_json

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
GEOCODE_URL = "https://geocoding-api.open-meteo.com/v1/search"
PROVIDER = "open-meteo"

CURRENT_FIELDS = (
    "temperature_2m",
    "apparent_temperature",
    "relative_humidity_2m",
    "precipitation",
    "weather_code",
    "wind_speed_10m",
    "wind_direction_10m",
    "pressure_msl",
)
DAILY_FIELDS = (
    "weather_code",
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_probability_max",
    "sunrise",
    "sunset",
)
# kept light; only the detail page reads it
HOURLY_FIELDS = ("temperature_2m", "precipitation_probability", "weather_code", "wind_speed_10m")


class OpenMeteoClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        forecast_url: str = FORECAST_URL,
        geocode_url: str = GEOCODE_URL,
    ):
        self.http = http
        self.forecast_url = forecast_url
        self.geocode_url = geocode_url

    async def geocode_city(self, name: str, default_tz: str = "America/Chicago"):
        """First match for a city name, or None when Open-Meteo knows no such place."""
        params = {"name": name, "count": "1", "language": "en", "format": "json"}
        d = await get_json(self.http, PROVIDER, self.geocode_url, params)
        results = d.get("results") if isinstance(d, dict) else None
        if not results:
            return None
        r = results[0] if isinstance(results, list) else None
        if not isinstance(r, dict):
            raise UpstreamError(PROVIDER, f"Bad geocode result for {name!r}: {str(results)[:200]}")
        return {
            "name": r.get("name"),
            "admin1": r.get("admin1"),
            "country": r.get("country"),
            "lat": r.get("latitude"),
            "lon": r.get("longitude"),
            "timezone": r.get("timezone") or default_tz,
        }

    async def forecast(self, lat: float, lon: float, timezone: str) -> dict[str, Any]:
        params = {
            "latitude": str(lat),
            "longitude": str(lon),
            "timezone": timezone,
            "current": ",".join(CURRENT_FIELDS),
            "daily": ",".join(DAILY_FIELDS),
            "hourly": ",".join(HOURLY_FIELDS),
            "temperature_unit": "fahrenheit",
            "wind_speed_unit": "mph",
            "precipitation_unit": "inch",
        }
        d = await get_json(self.http, PROVIDER, self.forecast_url, params)
        if not isinstance(d, dict) or not d.get("current") or not d.get("daily"):
            raise UpstreamError(PROVIDER, f"Bad weather: {str(d)[:200]}")
        return {"current": d["current"], "daily": d["daily"], "hourly": d.get("hourly") or None}
