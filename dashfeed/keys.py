# dashfeed/keys.py
# Purpose: Stable cache keys for the shared KV store.
# Versioning: bump the version tag whenever a payload shape changes so old,
# incompatibly-shaped entries are never read back.

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping
from typing import Any

_SEP = "\x00"


def normalize_part(part: Any) -> str:
    return str(part).strip().lower().replace(_SEP, "")


def derive_key(namespace: str, parts: Iterable[Any], version: str = "v1") -> str:
    """
    Hash an ordered sequence of request parameters into a fixed-length key:
      "<namespace>:<version>:<sha256 hex>"
    Parts are trimmed and lower-cased; NUL is stripped from each part and then
    used as the join separator, so ("a", "b") and ("a\\x00b",) cannot collide.
    """
    raw = _SEP.join(normalize_part(p) for p in parts)
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    return f"{namespace}:{version}:{digest}"


def derive_params_key(namespace: str, params: Mapping[str, Any], version: str = "v1") -> str:
    """Same as derive_key, for a mapping; parameter order does not matter."""
    items = sorted((normalize_part(k), normalize_part(v)) for k, v in params.items())
    return derive_key(namespace, [p for pair in items for p in pair], version)
