# dashfeed/logging_conf.py
from __future__ import annotations

import json
import logging
import os
from logging.config import dictConfig
from typing import Any

# Structured fields callers may pass via `extra=` on cache / provider logs
_EXTRA_FIELDS = ("endpoint", "cache_key", "provider", "symbol", "outcome", "module", "funcName")


class JsonFormatter(logging.Formatter):
    """One JSON object per line on stdout."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for extra_key in _EXTRA_FIELDS:
            val = getattr(record, extra_key, None)
            if val:
                payload[extra_key] = val
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str | None = None) -> None:
    """Configure JSON logging for dashfeed + uvicorn; our middleware owns access logs."""
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    def _json_logger(lvl: str = log_level) -> dict[str, Any]:
        return {"level": lvl, "handlers": ["console"], "propagate": False}

    dict_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": JsonFormatter}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"level": log_level, "handlers": ["console"]},
        "loggers": {
            "uvicorn": _json_logger(),
            "uvicorn.error": _json_logger(),
            # replaced by the per-request line from timing_middleware
            "uvicorn.access": _json_logger("WARNING"),
            "fastapi": _json_logger(),
            "starlette": _json_logger(),
            "dashfeed": _json_logger(),
            "request": _json_logger(),
            # httpx logs every request at INFO, including provider API keys in the URL
            "httpx": _json_logger("WARNING"),
        },
    }

    dictConfig(dict_config)
