# dashfeed/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dashfeed.config import AppContext, Settings, build_context
from dashfeed.errors import DashError, envelope_from_dash_error
from dashfeed.logging_conf import setup_logging

# --- Observability ---
from dashfeed.observability import metrics_endpoint, timing_middleware

# --- Routers ---
from dashfeed.routers import commute, markets, traffic, weather
from dashfeed.schemas import HealthResponse, VersionResponse
from dashfeed.utils import utc_now
from dashfeed.version import SERVICE_VERSION, service_version_payload

log = logging.getLogger(__name__)


def create_app(context: AppContext | None = None) -> FastAPI:
    """
    Build the app. With no context, one is built from the environment at
    startup and closed at shutdown; an injected context (tests) is left to
    its owner.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = context is None
        if owned:
            app.state.ctx = build_context(settings)
            log.info("dashfeed started (store=%s)", app.state.ctx.store.name)
        try:
            yield
        finally:
            if owned:
                await app.state.ctx.aclose()
            else:
                await app.state.ctx.store.drain()

    settings = context.settings if context is not None else Settings.from_env()

    app = FastAPI(title="dashfeed", version=SERVICE_VERSION, lifespan=lifespan)
    if context is not None:
        app.state.ctx = context

    # --- Include routers ---
    app.include_router(commute.router)
    app.include_router(traffic.router)
    app.include_router(weather.router)
    app.include_router(markets.router)

    # --- Middleware ---
    app.middleware("http")(timing_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
    )

    # --- Error envelopes (script endpoints render their own `// Error:` bodies) ---
    @app.exception_handler(DashError)
    async def dash_error_handler(request: Request, exc: DashError):
        if exc.http_status >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.http_status, content=envelope_from_dash_error(exc).model_dump(mode="json")
        )

    # --- Utility endpoints ---

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        ctx: AppContext = request.app.state.ctx
        store_ok = await ctx.store.ping()
        return {
            "status": "ok" if store_ok else "degraded",
            "as_of": utc_now().isoformat(),
            "service": "dashfeed",
            "store": ctx.store.name,
            "store_ok": store_ok,
        }

    @app.get("/version", response_model=VersionResponse)
    def version():
        return VersionResponse(**service_version_payload())

    @app.get("/metrics")
    def metrics():
        return metrics_endpoint()

    return app


# --- App ---
setup_logging()
app = create_app()
