from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def iso_from_ts(ts: float) -> str:
    """Epoch seconds -> ISO8601 UTC with millisecond precision and a Z suffix."""
    return datetime.fromtimestamp(ts, tz=UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def as_utc(now: datetime) -> datetime:
    # naive datetimes are taken as UTC
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now


def num(v: Any) -> float | None:
    """Finite number (ints kept as ints) or None. Booleans and blanks are not numbers."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, str) and not v.strip():
        return None
    try:
        n = float(v)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def clamp_len(s: Any, max_len: int) -> str:
    v = str(s if s is not None else "").strip()
    return v[:max_len]

