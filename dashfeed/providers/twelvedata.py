"""
TwelveData quotes and daily time series.

TwelveData answers many failures with HTTP 200 and a body like
  {"status": "error", "code": 429, "message": "..."}
so every response is checked for that shape before parsing.
"""

from __future__ import annotations

from typing import Any

import httpx

from dashfeed.errors import UpstreamError
from dashfeed.providers.http import get_json
from dashfeed.utils import num

BASE_URL = "https://api.twelvedata.com"
PROVIDER = "twelvedata"


def _raise_on_error_body(d: Any, what: str, symbol: str) -> None:
    if not isinstance(d, dict):
        raise UpstreamError(PROVIDER, f"{what} {symbol}: unexpected body {str(d)[:200]}")
    if d.get("status") == "error" or (d.get("code") and d.get("message")):
        raise UpstreamError(PROVIDER, f"{what} {symbol}: {d.get('message')}")


class TwelveDataClient:
    def __init__(self, http: httpx.AsyncClient, api_key: str, base_url: str = BASE_URL):
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def quote(self, symbol: str) -> dict[str, Any]:
        d = await get_json(
            self.http, PROVIDER, f"{self.base_url}/quote", {"symbol": symbol, "apikey": self.api_key}
        )
        _raise_on_error_body(d, "quote", symbol)

        price = num(d.get("close") if d.get("close") is not None else d.get("price"))
        if price is None:
            raise UpstreamError(PROVIDER, f"Bad price for {symbol}: {str(d)[:200]}")
        return {
            "price": price,
            "change": num(d.get("change")),
            "percent_change": num(d.get("percent_change")),
        }

    async def daily_series(self, symbol: str, count: int = 12) -> list[dict[str, Any]]:
        """Daily closes, newest-first. Rows without a date or a numeric close are dropped."""
        params = {
            "symbol": symbol,
            "interval": "1day",
            "outputsize": str(count),
            "apikey": self.api_key,
        }
        d = await get_json(self.http, PROVIDER, f"{self.base_url}/time_series", params)
        _raise_on_error_body(d, "series", symbol)

        values = d.get("values") if isinstance(d.get("values"), list) else []
        out: list[dict[str, Any]] = []
        for v in values:
            if not isinstance(v, dict):
                continue
            close = num(v.get("close"))
            if v.get("datetime") and close is not None:
                out.append({"date": v["datetime"], "close": close})
        return out
