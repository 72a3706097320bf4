# dashfeed/render.py
# Embedded-script bodies: the dashboard page loads each endpoint with a
# <script src>, which assigns the payload onto window.DASH_DATA.<field>.

from __future__ import annotations

import json
from typing import Any

from fastapi import Response

from dashfeed.errors import DashError

JS_MEDIA_TYPE = "application/javascript; charset=utf-8"
BANNER = "// AUTO-GENERATED. DO NOT EDIT.\n"


def to_js_literal(obj: Any) -> str:
    # "</" can't close a surrounding <script> tag if the body is ever inlined
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).replace("</", "<\\/")


def script_body(field: str, obj: Any) -> str:
    return (
        BANNER
        + f"window.DASH_DATA = window.DASH_DATA || {{}}; window.DASH_DATA.{field} = {to_js_literal(obj)};\n"
    )


def script_response(field: str, obj: Any, cache_control: str | None = None) -> Response:
    headers = {"Cache-Control": cache_control} if cache_control else None
    return Response(content=script_body(field, obj), media_type=JS_MEDIA_TYPE, headers=headers)


def script_error_response(exc: DashError | Exception) -> Response:
    if isinstance(exc, DashError):
        status, message = exc.http_status, exc.message
    else:
        status, message = 500, str(exc) or "Unknown error"
    # keep it a single JS comment line
    message = " ".join(message.splitlines())
    return Response(content=f"// Error: {message}", status_code=status, media_type=JS_MEDIA_TYPE)
