# dashfeed/routers/traffic.py
# GET /api/traffic -> script setting window.DASH_DATA.traffic for a few fixed routes.
from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Response

from dashfeed.assembler import cache_or_fetch, gather_all
from dashfeed.config import AppContext
from dashfeed.deps import get_context
from dashfeed.errors import ConfigError, DashError
from dashfeed.freshness import TRAFFIC_TTL_SEC, TtlPolicy
from dashfeed.keys import derive_key
from dashfeed.providers.tomtom import LatLon
from dashfeed.render import script_error_response, script_response
from dashfeed.utils import num

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["traffic"])

CACHE_CONTROL = "s-maxage=120, stale-while-revalidate=600"
KEY_VERSION = "v1"
MAX_ROUTES = 3
POLICY = TtlPolicy(TRAFFIC_TTL_SEC)


def status_from_ratio(ratio: float | None) -> str:
    """Congestion label from traffic / free-flow travel time."""
    if ratio is None or not math.isfinite(ratio):
        return "Light"
    if ratio < 1.20:
        return "Light"
    if ratio < 1.50:
        return "Medium"
    if ratio < 2.00:
        return "Heavy"
    return "Severe"


def delay_minutes(travel_sec: float, no_traffic_sec: float) -> int:
    # half-up rounding, so 90s reads as 2 min rather than banker's 2/0 flip-flop
    return max(0, math.floor((travel_sec - no_traffic_sec) / 60 + 0.5))


def _point(v: Any, route_id: Any) -> LatLon:
    if isinstance(v, list | tuple) and len(v) == 2:
        lat, lon = num(v[0]), num(v[1])
        if lat is not None and lon is not None:
            return LatLon(lat, lon)
    raise ConfigError(f"traffic route {route_id!r}: origin/destination must be [lat, lon]")


def configured_routes(ctx: AppContext) -> list[dict[str, Any]]:
    routes = []
    for rt in ctx.settings.traffic_routes()[:MAX_ROUTES]:
        if not isinstance(rt, dict):
            raise ConfigError("traffic routes must be JSON objects")
        routes.append(
            {
                "id": rt.get("id"),
                "label": rt.get("label"),
                "origin": _point(rt.get("origin"), rt.get("id")),
                "destination": _point(rt.get("destination"), rt.get("id")),
            }
        )
    return routes


def traffic_key(routes: list[dict[str, Any]]) -> str:
    parts = [
        json.dumps([r["id"], r["origin"].lat, r["origin"].lon, r["destination"].lat, r["destination"].lon])
        for r in routes
    ]
    return derive_key("dash:traffic", parts, KEY_VERSION)


@router.options("/traffic", include_in_schema=False)
async def traffic_options() -> Response:
    return Response(status_code=204)


@router.get("/traffic")
async def traffic(ctx: AppContext = Depends(get_context)) -> Response:
    try:
        tomtom = ctx.require_tomtom()
        routes = configured_routes(ctx)

        async def one(rt: dict[str, Any]) -> dict[str, Any]:
            m = await tomtom.route(rt["origin"], rt["destination"])
            travel, no_traffic = m["travel_time_sec"], m["no_traffic_time_sec"]
            return {
                "id": rt["id"],
                "label": rt["label"],
                "status": status_from_ratio(travel / no_traffic),
                "delay_min": delay_minutes(travel, no_traffic),
            }

        async def refresh(now: datetime) -> dict[str, Any]:
            results = await gather_all({str(i): one(rt) for i, rt in enumerate(routes)})
            return {"routes": [results[str(i)] for i in range(len(routes))]}

        lookup = await cache_or_fetch(
            ctx.store,
            traffic_key(routes),
            POLICY,
            refresh,
            ctx.clock(),
            endpoint="traffic",
            serve_stale_on_error=ctx.settings.serve_stale_on_error,
        )
        return script_response("traffic", lookup.payload, CACHE_CONTROL)
    except DashError as e:
        log.error("traffic api error: %s", e.message, exc_info=e.http_status >= 500)
        return script_error_response(e)
    except Exception as e:
        log.exception("traffic api error")
        return script_error_response(e)
