# dashfeed/providers/http.py
from __future__ import annotations

from typing import Any

import httpx

from dashfeed.errors import UpstreamError
from dashfeed.observability import UPSTREAM_FETCHES


async def get_json(
    client: httpx.AsyncClient, provider: str, url: str, params: dict[str, Any] | None = None
) -> Any:
    """
    GET a JSON document from a provider.
    Transport errors, non-2xx statuses and bodies that aren't JSON all raise
    UpstreamError with a short body snippet (never the request URL, which
    carries the API key).
    """
    try:
        r = await client.get(url, params=params)
    except httpx.RequestError as e:
        UPSTREAM_FETCHES.labels(provider=provider, outcome="network_error").inc()
        raise UpstreamError(provider, f"request failed: {type(e).__name__}") from e

    if r.is_error:
        UPSTREAM_FETCHES.labels(provider=provider, outcome="http_error").inc()
        raise UpstreamError(provider, f"HTTP {r.status_code}: {r.text[:250]}")

    try:
        data = r.json()
    except ValueError as e:
        UPSTREAM_FETCHES.labels(provider=provider, outcome="bad_json").inc()
        raise UpstreamError(provider, f"Bad JSON: {r.text[:200]}") from e

    UPSTREAM_FETCHES.labels(provider=provider, outcome="ok").inc()
    return data
