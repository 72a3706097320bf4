# dashfeed/routers/commute.py
# GET /api/commute?from=...&to=...  ->  JSON travel time between two free-text places.
from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Response

from dashfeed.assembler import cache_or_fetch, gather_all
from dashfeed.config import AppContext
from dashfeed.deps import get_context
from dashfeed.errors import ValidationError
from dashfeed.freshness import COMMUTE_TTL_SEC, TtlPolicy
from dashfeed.keys import derive_key
from dashfeed.providers.tomtom import BBox, LatLon
from dashfeed.utils import clamp_len, num

router = APIRouter(prefix="/api", tags=["commute"])

CACHE_CONTROL = "s-maxage=120, stale-while-revalidate=600"
KEY_VERSION = "v2"
MAX_QUERY_LEN = 160
POLICY = TtlPolicy(COMMUTE_TTL_SEC)

# Geocoding bias defaults to Chicago; without it TomTom happily matches
# "Bethalto, IL" and friends.
CHI_BIAS = LatLon(lat=41.881832, lon=-87.623177)
CHI_BBOX = BBox(top_left=LatLon(42.50, -88.60), btm_right=LatLon(41.30, -87.10))


def parse_bias(
    bias_lat: str | None, bias_lon: str | None, bbox: str | None
) -> tuple[LatLon, BBox]:
    """Optional ?bias_lat=&bias_lon= and ?bbox=topLat,topLon,btmLat,btmLon; bad values fall back."""
    lat, lon = num(bias_lat), num(bias_lon)
    bias = LatLon(lat, lon) if lat is not None and lon is not None else CHI_BIAS

    box = CHI_BBOX
    raw = (bbox or "").strip()
    if raw:
        parts = [num(x) for x in raw.split(",")]
        if len(parts) == 4 and all(p is not None for p in parts):
            box = BBox(LatLon(parts[0], parts[1]), LatLon(parts[2], parts[3]))
    return bias, box


def commute_key(from_raw: str, to_raw: str, bias: LatLon, bbox: BBox) -> str:
    return derive_key(
        "dash:commute",
        [
            from_raw,
            to_raw,
            bias.lat,
            bias.lon,
            bbox.top_left.lat,
            bbox.top_left.lon,
            bbox.btm_right.lat,
            bbox.btm_right.lon,
        ],
        KEY_VERSION,
    )


def route_metrics(route: dict[str, Any]) -> dict[str, Any]:
    travel = route["travel_time_sec"]
    no_traffic = route["no_traffic_time_sec"]
    return {
        "travel_time_sec": travel,
        "traffic_delay_sec": max(0, travel - no_traffic),
        "distance_m": route.get("distance_m"),
        "ratio": travel / no_traffic,
    }


@router.get("/commute")
async def commute(
    response: Response,
    from_: str | None = Query(None, alias="from"),
    to: str | None = Query(None),
    bias_lat: str | None = Query(None),
    bias_lon: str | None = Query(None),
    bbox: str | None = Query(None),
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any]:
    tomtom = ctx.require_tomtom()

    from_raw = clamp_len(from_, MAX_QUERY_LEN)
    to_raw = clamp_len(to, MAX_QUERY_LEN)
    if not from_raw or not to_raw:
        raise ValidationError('Provide query params: ?from="..."&to="..."')

    bias, box = parse_bias(bias_lat, bias_lon, bbox)

    async def refresh(now: datetime) -> dict[str, Any]:
        places = await gather_all(
            {
                "from": tomtom.geocode(from_raw, bias, box),
                "to": tomtom.geocode(to_raw, bias, box),
            }
        )
        route = await tomtom.route(
            LatLon(places["from"]["lat"], places["from"]["lon"]),
            LatLon(places["to"]["lat"], places["to"]["lon"]),
        )
        return {"from": places["from"], "to": places["to"], "route": route_metrics(route)}

    lookup = await cache_or_fetch(
        ctx.store,
        commute_key(from_raw, to_raw, bias, box),
        POLICY,
        refresh,
        ctx.clock(),
        endpoint="commute",
        serve_stale_on_error=ctx.settings.serve_stale_on_error,
    )
    response.headers["Cache-Control"] = CACHE_CONTROL
    return lookup.payload
