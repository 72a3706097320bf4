# dashfeed/freshness.py
# Two ways of answering "must we hit upstream now?":
#   - TtlPolicy: refresh once the snapshot is older than a fixed TTL.
#   - BusinessHoursPolicy: refresh only inside the active trading window;
#     outside it the last capture is served at any age.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from dashfeed.schemas import Snapshot
from dashfeed.utils import as_utc

# TTLs (seconds)
COMMUTE_TTL_SEC = 300
TRAFFIC_TTL_SEC = 300
WEATHER_TTL_SEC = 15 * 60
HISTORY_TTL_SEC = 6 * 60 * 60


def is_fresh(snapshot: Snapshot | None, now_ts: float, ttl_seconds: float) -> bool:
    """
    Fresh iff 0 <= age < ttl. A capture time in the future (clock skew)
    is never trusted.
    """
    if snapshot is None:
        return False
    age = now_ts - snapshot.captured_at
    return 0 <= age < ttl_seconds


class FreshnessPolicy(Protocol):
    def should_refresh(self, snapshot: Snapshot | None, now: datetime) -> bool: ...


@dataclass(frozen=True)
class TtlPolicy:
    ttl_seconds: float

    def should_refresh(self, snapshot: Snapshot | None, now: datetime) -> bool:
        return not is_fresh(snapshot, as_utc(now).timestamp(), self.ttl_seconds)


@dataclass(frozen=True)
class BusinessHoursPolicy:
    """
    Weekly active window in a fixed civil timezone (not server-local).
    Defaults: Monday-Friday, 09:00 <= local time < 17:00, America/Chicago.
    """

    tz_name: str = "America/Chicago"
    start_hour: int = 9
    end_hour: int = 17
    weekdays: frozenset[int] = frozenset(range(5))  # Monday=0

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.tz_name)

    def local(self, now: datetime) -> datetime:
        return as_utc(now).astimezone(self.tz)

    def is_active_now(self, now: datetime) -> bool:
        # read weekday/hour off the converted datetime; never re-parse a formatted string
        local = self.local(now)
        return local.weekday() in self.weekdays and self.start_hour <= local.hour < self.end_hour

    def should_refresh(self, snapshot: Snapshot | None, now: datetime) -> bool:
        # the stored snapshot's age is irrelevant here
        return self.is_active_now(now)

    def format_local(self, now: datetime) -> str:
        """Short local stamp, e.g. '10/13/26, 14:05'."""
        d = self.local(now)
        return f"{d.month}/{d.day}/{d:%y}, {d:%H:%M}"

    def format_clock(self, now: datetime) -> str:
        return f"{self.local(now):%H:%M:%S}"
