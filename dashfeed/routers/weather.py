# dashfeed/routers/weather.py
# GET /api/weather[?city=...|?lat=...&lon=...[&tz=...]] -> script setting window.DASH_DATA.weather
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Response

from dashfeed.assembler import cache_or_fetch
from dashfeed.config import AppContext
from dashfeed.deps import get_context
from dashfeed.errors import DashError, ValidationError
from dashfeed.freshness import WEATHER_TTL_SEC, TtlPolicy
from dashfeed.keys import derive_params_key
from dashfeed.render import script_error_response, script_response
from dashfeed.utils import clamp_len, num

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["weather"])

CACHE_CONTROL = "s-maxage=900"
KEY_VERSION = "v1"
POLICY = TtlPolicy(WEATHER_TTL_SEC)

DEFAULT_LAT = 41.8781
DEFAULT_LON = -87.6298
DEFAULT_TZ = "America/Chicago"


def location_params(city: str, lat_q: str | None, lon_q: str | None, tz_q: str) -> dict[str, Any]:
    """
    Which location the request asks for, before any geocoding:
      1) explicit lat/lon (both present; unparseable values fall back to the default)
      2) city name
      3) default (Chicago)
    """
    if lat_q and lon_q:
        lat, lon = num(lat_q), num(lon_q)
        if lat is not None and lon is not None:
            return {"mode": "coords", "lat": lat, "lon": lon, "tz": tz_q or DEFAULT_TZ}
        return {"mode": "default"}
    if city:
        return {"mode": "city", "city": city}
    return {"mode": "default"}


async def resolve_location(ctx: AppContext, loc: dict[str, Any]) -> dict[str, Any]:
    mode = loc["mode"]
    if mode == "coords":
        lat, lon = loc["lat"], loc["lon"]
        return {
            "label": f"({lat:.4f}, {lon:.4f})",
            "lat": lat,
            "lon": lon,
            "timezone": loc["tz"],
            "city": None,
        }
    if mode == "city":
        g = await ctx.openmeteo.geocode_city(loc["city"], default_tz=DEFAULT_TZ)
        if not g:
            raise ValidationError(f"City not found: {loc['city']}")
        return {
            "label": ", ".join(p for p in (g["name"], g["admin1"], g["country"]) if p),
            "lat": g["lat"],
            "lon": g["lon"],
            "timezone": g["timezone"] or DEFAULT_TZ,
            "city": loc["city"],
        }
    return {"label": "Default", "lat": DEFAULT_LAT, "lon": DEFAULT_LON, "timezone": DEFAULT_TZ, "city": None}


@router.get("/weather")
async def weather(
    city: str | None = Query(None),
    lat: str | None = Query(None),
    lon: str | None = Query(None),
    tz: str | None = Query(None),
    ctx: AppContext = Depends(get_context),
) -> Response:
    try:
        loc = location_params(clamp_len(city, 80), lat, lon, clamp_len(tz, 80))

        async def refresh(now: datetime) -> dict[str, Any]:
            location = await resolve_location(ctx, loc)
            d = await ctx.openmeteo.forecast(location["lat"], location["lon"], location["timezone"])
            return {
                "location": location,
                "current": d["current"],
                "daily": d["daily"],
                "hourly": d.get("hourly"),
            }

        lookup = await cache_or_fetch(
            ctx.store,
            derive_params_key("dash:weather", loc, KEY_VERSION),
            POLICY,
            refresh,
            ctx.clock(),
            endpoint="weather",
            serve_stale_on_error=ctx.settings.serve_stale_on_error,
        )
        return script_response("weather", lookup.payload, CACHE_CONTROL)
    except DashError as e:
        log.error("weather api error: %s", e.message, exc_info=e.http_status >= 500)
        return script_error_response(e)
    except Exception as e:
        log.exception("weather api error")
        return script_error_response(e)
