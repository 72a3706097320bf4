"""
TomTom geocoding (Search API) and traffic-aware routing.

Shapes returned:
  geocode -> {"label": str, "lat": float, "lon": float}
  route   -> {"travel_time_sec": float, "no_traffic_time_sec": float, "distance_m": float | None}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from dashfeed.errors import UpstreamError
from dashfeed.providers.http import get_json
from dashfeed.utils import num

BASE_URL = "https://api.tomtom.com"
PROVIDER = "tomtom"


@dataclass(frozen=True)
class LatLon:
    lat: float
    lon: float


@dataclass(frozen=True)
class BBox:
    top_left: LatLon  # NW corner
    btm_right: LatLon  # SE corner


class TomTomClient:
    def __init__(self, http: httpx.AsyncClient, api_key: str, base_url: str = BASE_URL):
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def geocode(self, query: str, bias: LatLon, bbox: BBox) -> dict[str, Any]:
        params = {
            "key": self.api_key,
            "limit": "5",
            "countrySet": "US",
            "lat": str(bias.lat),
            "lon": str(bias.lon),
            "topLeft": f"{bbox.top_left.lat},{bbox.top_left.lon}",
            "btmRight": f"{bbox.btm_right.lat},{bbox.btm_right.lon}",
        }
        url = f"{self.base_url}/search/2/geocode/{quote(query, safe='')}.json"
        data = await get_json(self.http, PROVIDER, url, params)
        return pick_geocode_result(data, query)

    async def route(self, origin: LatLon, destination: LatLon) -> dict[str, Any]:
        params = {
            "key": self.api_key,
            "traffic": "true",
            "computeTravelTimeFor": "all",
            "routeRepresentation": "summaryOnly",
            "routeType": "fastest",
        }
        loc = f"{origin.lat},{origin.lon}:{destination.lat},{destination.lon}"
        url = f"{self.base_url}/routing/1/calculateRoute/{quote(loc, safe='')}/json"
        data = await get_json(self.http, PROVIDER, url, params)
        return parse_route_summary(data)


def pick_geocode_result(data: Any, query: str) -> dict[str, Any]:
    results = data.get("results") if isinstance(data, dict) else None
    if isinstance(results, list):
        results = [r for r in results if isinstance(r, dict)]
    if not isinstance(results, list) or not results:
        raise UpstreamError(PROVIDER, f'Geocode failed for "{query}"')

    # highest score wins; the first result when no scores are present
    best = results[0]
    best_score = num(best.get("score"))
    for r in results[1:]:
        s = num(r.get("score"))
        if s is not None and (best_score is None or s > best_score):
            best, best_score = r, s

    pos = best.get("position")
    if not isinstance(pos, dict):
        raise UpstreamError(PROVIDER, f'Geocode failed for "{query}"')
    lat, lon = num(pos.get("lat")), num(pos.get("lon"))
    if lat is None or lon is None:
        raise UpstreamError(PROVIDER, f'Geocode failed for "{query}"')

    addr = best.get("address")
    if not isinstance(addr, dict):
        addr = {}
    label = addr.get("freeformAddress") or addr.get("municipality") or query
    return {"label": label, "lat": lat, "lon": lon}


def parse_route_summary(data: Any) -> dict[str, Any]:
    try:
        summary = data["routes"][0]["summary"]
    except (KeyError, IndexError, TypeError):
        summary = None
    if not isinstance(summary, dict):
        summary = {}

    travel = num(summary.get("travelTimeInSeconds"))
    no_traffic = num(summary.get("noTrafficTravelTimeInSeconds"))
    if travel is None or no_traffic is None or no_traffic <= 0:
        raise UpstreamError(
            PROVIDER, "Routing response missing travelTimeInSeconds / noTrafficTravelTimeInSeconds"
        )

    return {
        "travel_time_sec": travel,
        "no_traffic_time_sec": no_traffic,
        "distance_m": num(summary.get("lengthInMeters")),
    }
