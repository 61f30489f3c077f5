"""
mnemos.consolidation.buffer — Short-term memory buffer.

A bounded working set of freshly stored records waiting to be
consolidated.  When the buffer is full the entry with the lowest
retention score is evicted:

    retention = 0.5 * effective_importance
              + 0.3 * exp(-age / window)
              + 0.2 * min(1, access_count / 10)

An entry is ready for consolidation once it is older than the window
*or* its importance has reached the auto-consolidation threshold.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from mnemos.core.logging import memory_context
from mnemos.core.types import now
from mnemos.models.record import MemoryRecord

log = logging.getLogger(__name__)


class ShortTermBuffer:
    """
    Capacity-bounded, insertion-ordered map of records.

    Parameters
    ----------
    capacity : int
        Maximum number of entries (default 50).
    window_s : float
        Time window in seconds used for recency and readiness (default 1h).
    auto_consolidate_threshold : float
        Importance at which an entry is ready regardless of age.
    on_evict : callable, optional
        Called with each evicted record.  Errors are logged, not raised.
    clock : callable, optional
        Returns the current time; defaults to UTC now.
    """

    def __init__(
        self,
        capacity: int = 50,
        window_s: float = 3600.0,
        auto_consolidate_threshold: float = 0.8,
        on_evict: Optional[Callable[[MemoryRecord], None]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.window_s = window_s
        self.auto_consolidate_threshold = auto_consolidate_threshold
        self._on_evict = on_evict
        self._clock = clock or now
        self._entries: Dict[str, MemoryRecord] = {}

    # -- scoring ------------------------------------------------------------

    def _age_s(self, record: MemoryRecord, at: datetime) -> float:
        return max(0.0, (at - record.metadata.created_at).total_seconds())

    def retention_score(self, record: MemoryRecord, at: Optional[datetime] = None) -> float:
        at = at or self._clock()
        recency = math.exp(-self._age_s(record, at) / self.window_s)
        frequency = min(1.0, record.metadata.access_count / 10)
        return 0.5 * record.effective_importance + 0.3 * recency + 0.2 * frequency

    # -- public API ---------------------------------------------------------

    def add(self, record: MemoryRecord) -> Optional[MemoryRecord]:
        """Insert *record*; return the evicted record, if any."""
        self._entries.pop(record.id, None)
        evicted = None
        if len(self._entries) >= self.capacity:
            evicted = self._evict_one()
        self._entries[record.id] = record
        return evicted

    def _evict_one(self) -> Optional[MemoryRecord]:
        at = self._clock()
        victim_id = min(self._entries, key=lambda rid: self.retention_score(self._entries[rid], at))
        victim = self._entries.pop(victim_id)
        log.debug("Buffer full; evicted %s", victim_id, extra=memory_context(victim))
        if self._on_evict is not None:
            try:
                self._on_evict(victim)
            except Exception:
                log.debug(
                    "on_evict callback failed for %s",
                    victim_id,
                    exc_info=True,
                    extra=memory_context(victim),
                )
        return victim

    def get(self, record_id: str) -> Optional[MemoryRecord]:
        return self._entries.get(record_id)

    def refresh(self, record: MemoryRecord) -> bool:
        """Swap in a newer instance of a buffered record, keeping its slot."""
        if record.id not in self._entries:
            return False
        self._entries[record.id] = record
        return True

    def remove(self, record_id: str) -> bool:
        return self._entries.pop(record_id, None) is not None

    def all(self) -> List[MemoryRecord]:
        return list(self._entries.values())

    def ready_for_consolidation(self, at: Optional[datetime] = None) -> List[MemoryRecord]:
        at = at or self._clock()
        return [
            r
            for r in self._entries.values()
            if self._age_s(r, at) >= self.window_s
            or r.metadata.importance >= self.auto_consolidate_threshold
        ]

    def apply_decay(self, rate: float = 0.01) -> None:
        for record in self._entries.values():
            record.apply_decay(rate)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def size(self) -> int:
        return len(self._entries)

    def is_full(self) -> bool:
        return len(self._entries) >= self.capacity

    def stats(self) -> Dict[str, Any]:
        records = list(self._entries.values())
        at = self._clock()
        return {
            "size": len(records),
            "capacity": self.capacity,
            "utilization": len(records) / self.capacity,
            "average_importance": (
                sum(r.effective_importance for r in records) / len(records)
                if records
                else 0.0
            ),
            "oldest_age_s": max((self._age_s(r, at) for r in records), default=0.0),
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._entries
