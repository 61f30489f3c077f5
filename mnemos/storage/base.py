"""
mnemos.storage.base — The storage contract every backend implements.

Backends implement the primitive operations (``store``, ``retrieve``,
``update``, ``delete``, ``query``, ``get_all``, ``clear``).  Bulk
operations, stats, export/import and optimisation are provided here on
top of those primitives and may be overridden when a backend can do
better.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from mnemos.core.errors import (
    DeserializationError,
    MemoryImportError,
    ValidationError,
)
from mnemos.core.types import MemoryKind, ensure_utc
from mnemos.models.codec import record_from_dict
from mnemos.models.record import MemoryRecord

log = logging.getLogger(__name__)

#: Records whose decay factor falls below this are dropped by optimize().
OPTIMIZE_DECAY_FLOOR = 0.01


class SortKey(str, Enum):
    CREATED_AT = "created_at"
    LAST_ACCESSED_AT = "last_accessed_at"
    IMPORTANCE = "importance"
    CONFIDENCE = "confidence"


@dataclass
class QueryOptions:
    """
    Filter for :meth:`MemoryStore.query`.

    Fields combine with AND.  ``tags`` and ``entities`` each match when a
    record carries *any* of the listed values; tags compare
    case-insensitively.  ``min_importance`` applies to effective
    importance, and so does sorting by importance.
    """

    kind: Optional[MemoryKind] = None
    tags: List[str] = field(default_factory=list)
    entities: List[str] = field(default_factory=list)
    date_range: Optional[Tuple[datetime, datetime]] = None
    min_importance: Optional[float] = None
    min_confidence: Optional[float] = None
    consolidated_only: bool = False
    sort_by: Optional[SortKey] = None
    sort_direction: str = "desc"
    limit: Optional[int] = None
    offset: int = 0

    def __post_init__(self) -> None:
        if self.kind is not None:
            self.kind = MemoryKind(self.kind)
        if self.sort_by is not None:
            self.sort_by = SortKey(self.sort_by)
        if self.sort_direction not in ("asc", "desc"):
            raise ValueError(f"sort_direction must be 'asc' or 'desc', got {self.sort_direction!r}")

    def matches(self, record: MemoryRecord) -> bool:
        """True when *record* passes every filter field."""
        meta = record.metadata
        if self.kind is not None and record.kind != self.kind:
            return False
        if self.tags:
            wanted = {t.lower() for t in self.tags}
            if not any(t.lower() in wanted for t in meta.tags):
                return False
        if self.entities:
            wanted_entities = set(self.entities)
            if not any(e in wanted_entities for e in meta.entities):
                return False
        if self.date_range is not None:
            start, end = self.date_range
            if not ensure_utc(start) <= meta.created_at <= ensure_utc(end):
                return False
        if self.min_importance is not None and record.effective_importance < self.min_importance:
            return False
        if self.min_confidence is not None and meta.confidence < self.min_confidence:
            return False
        if self.consolidated_only and not record.is_consolidated:
            return False
        return True

    def apply(self, records: Iterable[MemoryRecord]) -> List[MemoryRecord]:
        """Filter, sort and page *records*."""
        results = [r for r in records if self.matches(r)]
        if self.sort_by is not None:
            results.sort(key=_sort_key(self.sort_by), reverse=self.sort_direction == "desc")
        results = results[self.offset:]
        if self.limit is not None:
            results = results[: self.limit]
        return results


def _sort_key(key: SortKey):
    if key == SortKey.CREATED_AT:
        return lambda r: r.metadata.created_at
    if key == SortKey.LAST_ACCESSED_AT:
        return lambda r: r.metadata.last_accessed_at
    if key == SortKey.IMPORTANCE:
        return lambda r: r.effective_importance
    return lambda r: r.metadata.confidence


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class MemoryStore(ABC):
    """Abstract memory storage backend."""

    # -- primitives ---------------------------------------------------------

    @abstractmethod
    def store(self, record: MemoryRecord) -> None:
        """Validate and save *record*, replacing any record with the same id."""
        ...

    @abstractmethod
    def retrieve(self, record_id: str) -> Optional[MemoryRecord]:
        """Return the record and count the access, or None."""
        ...

    @abstractmethod
    def update(self, record: MemoryRecord) -> None:
        """Replace an existing record.  NotFoundError / ValidationError."""
        ...

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """Remove a record; False when it did not exist."""
        ...

    @abstractmethod
    def query(self, options: Optional[QueryOptions] = None) -> List[MemoryRecord]:
        ...

    @abstractmethod
    def get_all(self) -> List[MemoryRecord]:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    # -- derived ------------------------------------------------------------

    def exists(self, record_id: str) -> bool:
        return any(r.id == record_id for r in self.get_all())

    def count(self, options: Optional[QueryOptions] = None) -> int:
        if options is None:
            return len(self.get_all())
        return len(self.query(options))

    def bulk_store(self, records: Iterable[MemoryRecord]) -> None:
        """Store several records; validates all before storing any."""
        records = list(records)
        for record in records:
            record.validate()
        for record in records:
            self.store(record)

    def bulk_delete(self, record_ids: Iterable[str]) -> int:
        return sum(1 for rid in list(record_ids) if self.delete(rid))

    def stats(self) -> Dict[str, Any]:
        records = self.get_all()
        by_kind = {kind.value: 0 for kind in MemoryKind}
        for record in records:
            by_kind[record.kind.value] += 1
        avg = (
            sum(r.effective_importance for r in records) / len(records)
            if records
            else 0.0
        )
        return {
            "total_memories": len(records),
            "by_kind": by_kind,
            "storage_size": len(self.export().encode("utf-8")),
            "consolidated_count": sum(1 for r in records if r.is_consolidated),
            "average_importance": avg,
        }

    # -- serialisation ------------------------------------------------------

    def export(self, options: Optional[QueryOptions] = None) -> str:
        """JSON array of every (or every matching) record."""
        records = self.get_all() if options is None else self.query(options)
        return json.dumps([r.to_dict() for r in records], indent=2)

    def import_(self, data: Union[str, bytes]) -> int:
        """Load records from an export; return how many were stored.

        A payload that is not JSON raises MemoryImportError.  Entries that
        fail to decode or validate are logged and skipped.
        """
        try:
            parsed = json.loads(data)
        except (TypeError, ValueError) as exc:
            raise MemoryImportError(f"Import payload is not valid JSON: {exc}") from exc

        entries = parsed if isinstance(parsed, list) else [parsed]
        imported = 0
        for i, entry in enumerate(entries):
            try:
                record = record_from_dict(entry)
                self.store(record)
            except (DeserializationError, ValidationError) as exc:
                log.warning("Skipping import entry %d: %s", i, exc, extra={"entry_index": i})
                continue
            imported += 1
        log.info("Imported %d of %d memories", imported, len(entries), extra={"count": imported})
        return imported

    def optimize(self) -> int:
        """Drop unconsolidated records that have all but decayed away."""
        doomed = [
            r.id
            for r in self.get_all()
            if not r.is_consolidated and r.decay_factor < OPTIMIZE_DECAY_FLOOR
        ]
        removed = self.bulk_delete(doomed)
        if removed:
            log.info("Optimize removed %d decayed memories", removed, extra={"count": removed})
        return removed
