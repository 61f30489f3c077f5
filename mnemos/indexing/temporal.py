"""
mnemos.indexing.temporal — Calendar-day buckets over creation time.

Bucket keys are ``YYYY-MM-DD`` in UTC.  Range queries walk every day
between the two ends, inclusive.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Set

from mnemos.core.types import ensure_utc, now
from mnemos.indexing.inverted import KeySets
from mnemos.models.record import MemoryRecord

_FORMATS = {
    "hour": "%Y-%m-%dT%H",
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
}


def bucket_key(ts: datetime, granularity: str = "day") -> str:
    """Bucket label for *ts* at hour, day or month granularity."""
    try:
        fmt = _FORMATS[granularity]
    except KeyError:
        raise ValueError(f"Unknown granularity: {granularity!r}") from None
    return ensure_utc(ts).strftime(fmt)


class TemporalIndex:
    """day bucket -> record ids."""

    def __init__(self) -> None:
        self._keys = KeySets()
        self._bucket_of: Dict[str, str] = {}

    def add(self, record: MemoryRecord) -> None:
        self.remove(record.id)
        key = bucket_key(record.metadata.created_at)
        self._keys.add(key, record.id)
        self._bucket_of[record.id] = key

    def remove(self, record_id: str) -> None:
        key = self._bucket_of.pop(record_id, None)
        if key is not None:
            self._keys.discard(key, record_id)

    def query(self, day: str) -> Set[str]:
        return self._keys.get(day)

    def query_range(self, start: datetime, end: datetime) -> Set[str]:
        """Ids created on any day from *start* through *end* inclusive."""
        first: date = ensure_utc(start).date()
        last: date = ensure_utc(end).date()
        result: Set[str] = set()
        day = first
        while day <= last:
            result |= self._keys.get(day.isoformat())
            day += timedelta(days=1)
        return result

    def query_today(self, at: Optional[datetime] = None) -> Set[str]:
        return self.query(bucket_key(at or now()))

    def query_last_n_days(self, n: int, at: Optional[datetime] = None) -> Set[str]:
        end = at or now()
        return self.query_range(end - timedelta(days=n), end)

    def query_month(self, year: int, month: int) -> Set[str]:
        prefix = f"{year:04d}-{month:02d}-"
        result: Set[str] = set()
        for key, ids in self._keys.items():
            if key.startswith(prefix):
                result |= ids
        return result

    def buckets(self) -> List[str]:
        return sorted(self._keys.keys())

    def clear(self) -> None:
        self._keys.clear()
        self._bucket_of.clear()

    def stats(self) -> Dict[str, float]:
        return self._keys.stats()
