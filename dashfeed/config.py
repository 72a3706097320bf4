# dashfeed/config.py
# Settings are read from the environment once; the AppContext built from them
# is created at startup, stored on app.state and reused for the process lifetime.

from __future__ import annotations

import json
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from dashfeed.errors import ConfigError
from dashfeed.freshness import BusinessHoursPolicy
from dashfeed.history import HistoryCache
from dashfeed.providers.openmeteo import OpenMeteoClient
from dashfeed.providers.tomtom import TomTomClient
from dashfeed.providers.twelvedata import TwelveDataClient
from dashfeed.store import SnapshotStore, backend_from_url
from dashfeed.utils import utc_now

DEFAULT_SYMBOLS = ("SPY", "QQQ", "IAU", "SLV")

DEFAULT_TRAFFIC_ROUTES: list[dict[str, Any]] = [
    {"id": "I90_94", "label": "I-90/94", "origin": [41.971, -87.761], "destination": [41.883, -87.632]},
    {"id": "I290", "label": "I-290", "origin": [41.886, -87.798], "destination": [41.883, -87.632]},
    {"id": "I55", "label": "I-55", "origin": [41.705, -87.681], "destination": [41.883, -87.632]},
]


def _flag(v: str | None) -> bool:
    return str(v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class Settings:
    kv_url: str = "memory://"
    tomtom_api_key: str | None = None
    twelvedata_api_key: str | None = None
    traffic_routes_json: str | None = None
    http_timeout_sec: float = 10.0
    market_tz: str = "America/Chicago"
    market_symbols: tuple[str, ...] = DEFAULT_SYMBOLS
    serve_stale_on_error: bool = False
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> Settings:
        e = os.environ if env is None else env
        symbols = tuple(
            s.strip().upper() for s in e.get("DASH_MARKET_SYMBOLS", "").split(",") if s.strip()
        )
        origins = tuple(o.strip() for o in e.get("DASH_CORS_ORIGINS", "*").split(",") if o.strip())
        return cls(
            kv_url=e.get("DASH_KV_URL") or e.get("REDIS_URL") or "memory://",
            tomtom_api_key=e.get("TOMTOM_API_KEY") or e.get("TOMTOM_KEY") or None,
            twelvedata_api_key=e.get("TWELVEDATA_API_KEY") or None,
            traffic_routes_json=e.get("TRAFFIC_ROUTES_JSON") or None,
            http_timeout_sec=float(e.get("DASH_HTTP_TIMEOUT_SEC", "10")),
            market_tz=e.get("DASH_MARKET_TZ", "America/Chicago"),
            market_symbols=symbols or DEFAULT_SYMBOLS,
            serve_stale_on_error=_flag(e.get("DASH_SERVE_STALE_ON_ERROR")),
            cors_origins=origins or ("*",),
        )

    def traffic_routes(self) -> list[dict[str, Any]]:
        if not self.traffic_routes_json:
            return DEFAULT_TRAFFIC_ROUTES
        try:
            parsed = json.loads(self.traffic_routes_json)
        except json.JSONDecodeError as e:
            raise ConfigError(f"TRAFFIC_ROUTES_JSON is not valid JSON: {e}") from e
        if not isinstance(parsed, list) or not parsed:
            raise ConfigError("TRAFFIC_ROUTES_JSON must be a non-empty JSON array")
        return parsed


@dataclass
class AppContext:
    settings: Settings
    store: SnapshotStore
    http: httpx.AsyncClient | None = None
    tomtom: Any = None  # TomTomClient or a compatible fake
    openmeteo: Any = None
    twelvedata: Any = None
    clock: Callable[[], datetime] = utc_now
    market_hours: BusinessHoursPolicy = field(default_factory=BusinessHoursPolicy)
    history: HistoryCache | None = None

    def require_tomtom(self):
        if self.tomtom is None:
            raise ConfigError("Missing TOMTOM_API_KEY (or TOMTOM_KEY)")
        return self.tomtom

    def require_twelvedata(self):
        if self.twelvedata is None:
            raise ConfigError("Missing TWELVEDATA_API_KEY")
        return self.twelvedata

    def require_history(self) -> HistoryCache:
        if self.history is None:
            self.history = HistoryCache(self.store, self.require_twelvedata().daily_series)
        return self.history

    async def aclose(self) -> None:
        await self.store.aclose()
        if self.http is not None:
            await self.http.aclose()


def build_context(settings: Settings | None = None) -> AppContext:
    """Wire real clients from settings. Called once from the app lifespan."""
    s = settings or Settings.from_env()
    http = httpx.AsyncClient(timeout=httpx.Timeout(s.http_timeout_sec))
    scheme = s.kv_url.split("://", 1)[0] if "://" in s.kv_url else "memory"
    store = SnapshotStore(backend_from_url(s.kv_url), name=scheme)

    tomtom = TomTomClient(http, s.tomtom_api_key) if s.tomtom_api_key else None
    twelvedata = TwelveDataClient(http, s.twelvedata_api_key) if s.twelvedata_api_key else None

    return AppContext(
        settings=s,
        store=store,
        http=http,
        tomtom=tomtom,
        openmeteo=OpenMeteoClient(http),
        twelvedata=twelvedata,
        market_hours=BusinessHoursPolicy(tz_name=s.market_tz),
        history=HistoryCache(store, twelvedata.daily_series) if twelvedata else None,
    )
