from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# --- Cached units ---
class Snapshot(BaseModel):
    """Provider output plus its capture time (epoch seconds)."""

    captured_at: float
    payload: dict[str, Any] = Field(default_factory=dict)


class SeriesPoint(BaseModel):
    date: str
    close: float


class HistoryEntry(BaseModel):
    cached_at: float
    series: list[SeriesPoint] = Field(default_factory=list)


# --- Health payload ---
class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    as_of: str
    service: Literal["dashfeed"] = "dashfeed"
    store: str
    store_ok: bool


# --- Version payload ---
class VersionResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())
    service: str  # "dashfeed-api:0.3.0"
    service_version: str
    cache_schema: dict[str, str]


# --- Error taxonomy ---
class ErrorCode(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    MISCONFIGURED = "MISCONFIGURED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    code: ErrorCode
    message: str
    hint: str | None = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
