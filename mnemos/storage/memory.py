"""
mnemos.storage.memory — In-process dictionary-backed store.

Records are held by reference, so lifecycle calls on a retrieved record
(``record_access``, ``apply_decay``, ``consolidate``) are visible to
every other holder without an explicit ``update``.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from mnemos.core.errors import NotFoundError
from mnemos.models.record import MemoryRecord
from mnemos.storage.base import MemoryStore, QueryOptions


class InMemoryStore(MemoryStore):
    """Single-process store keyed by record id (insertion ordered)."""

    def __init__(self) -> None:
        self._records: Dict[str, MemoryRecord] = {}

    def store(self, record: MemoryRecord) -> None:
        record.validate()
        self._records[record.id] = record

    def retrieve(self, record_id: str) -> Optional[MemoryRecord]:
        record = self._records.get(record_id)
        if record is not None:
            record.record_access()
        return record

    def get(self, record_id: str) -> Optional[MemoryRecord]:
        """Look up without counting an access."""
        return self._records.get(record_id)

    def update(self, record: MemoryRecord) -> None:
        if record.id not in self._records:
            raise NotFoundError(record.id)
        record.validate()
        self._records[record.id] = record

    def delete(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    def query(self, options: Optional[QueryOptions] = None) -> List[MemoryRecord]:
        return (options or QueryOptions()).apply(self._records.values())

    def get_all(self) -> List[MemoryRecord]:
        return list(self._records.values())

    def exists(self, record_id: str) -> bool:
        return record_id in self._records

    def count(self, options: Optional[QueryOptions] = None) -> int:
        if options is None:
            return len(self._records)
        return super().count(options)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records
