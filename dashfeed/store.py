# dashfeed/store.py
# Purpose: get/set contract over the shared key-value store.
# Reads are awaited; writes are dispatched as detached tasks so the response
# path never waits on (or fails because of) the store.
# Pitfalls: no locking. Concurrent refreshes of one key both write; last wins.

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, TypeVar

import redis.asyncio as aioredis
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from dashfeed.errors import CacheReadError, CacheWriteError
from dashfeed.observability import CACHE_WRITE_FAILURES
from dashfeed.schemas import Snapshot

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class KVBackend(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: str) -> Any: ...

    async def ping(self) -> Any: ...

    async def aclose(self) -> None: ...


class MemoryKV:
    """In-process backend for local runs and tests. Entries never expire."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> bool:
        self._data[key] = value
        return True

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


def backend_from_url(url: str) -> KVBackend:
    """memory:// -> MemoryKV; redis:// / rediss:// / unix:// -> redis.asyncio client."""
    if not url or url.startswith("memory://"):
        return MemoryKV()
    return aioredis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )


class SnapshotStore:
    def __init__(self, backend: KVBackend, name: str = "memory"):
        self.backend = backend
        self.name = name
        self.write_failures = 0
        self._pending: set[asyncio.Task] = set()

    # ---------- reads ----------

    async def _read_raw(self, key: str) -> str | None:
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            raise CacheReadError(f"get {key}: {e}") from e
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return raw

    async def get(self, key: str, model: type[M] = Snapshot) -> M | None:
        """
        Return the stored entry, or None when absent.
        An unreachable store or an undecodable entry also reads as None so the
        caller refreshes instead of failing.
        """
        try:
            raw = await self._read_raw(key)
        except CacheReadError as e:
            log.warning("cache read failed: %s", e, extra={"cache_key": key})
            return None
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except PydanticValidationError:
            log.warning("discarding undecodable cache entry", extra={"cache_key": key})
            return None

    # ---------- writes ----------

    async def _write_raw(self, key: str, value: BaseModel) -> None:
        try:
            await self.backend.set(key, value.model_dump_json())
        except Exception as e:
            raise CacheWriteError(f"set {key}: {e}") from e

    async def write(self, key: str, value: BaseModel) -> bool:
        """Awaited best-effort write. Failures are logged and counted, never raised."""
        try:
            await self._write_raw(key, value)
        except CacheWriteError as e:
            self.write_failures += 1
            CACHE_WRITE_FAILURES.inc()
            log.warning("cache write failed: %s", e, extra={"cache_key": key})
            return False
        return True

    def set(self, key: str, value: BaseModel) -> asyncio.Task:
        """Fire-and-forget write; the returned task is only for callers that want to drain."""
        task = asyncio.create_task(self.write(key, value), name=f"cache-set:{key}")
        # strong ref until done
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for background writes still in flight (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ---------- lifecycle ----------

    async def ping(self) -> bool:
        try:
            return bool(await self.backend.ping())
        except Exception as e:
            log.warning("cache ping failed: %s", e)
            return False

    async def aclose(self) -> None:
        await self.drain()
        await self.backend.aclose()
