"""
mnemos.indexing.inverted — Key -> id-set indexes over records.

Each index owns its own :class:`KeySets` map.  A key exists only while
at least one id is filed under it: removing the last id deletes the key.
"""

from __future__ import annotations

from typing import Dict, Hashable, Iterable, List, Set

from mnemos.core.types import MemoryKind
from mnemos.models.record import MemoryRecord


class KeySets:
    """Map from key to a non-empty set of record ids."""

    def __init__(self) -> None:
        self._sets: Dict[Hashable, Set[str]] = {}

    def add(self, key: Hashable, record_id: str) -> None:
        self._sets.setdefault(key, set()).add(record_id)

    def discard(self, key: Hashable, record_id: str) -> None:
        ids = self._sets.get(key)
        if ids is None:
            return
        ids.discard(record_id)
        if not ids:
            del self._sets[key]

    def get(self, key: Hashable) -> Set[str]:
        return set(self._sets.get(key, ()))

    def keys(self) -> List[Hashable]:
        return list(self._sets)

    def items(self):
        return self._sets.items()

    def clear(self) -> None:
        self._sets.clear()

    def stats(self) -> Dict[str, float]:
        total = sum(len(ids) for ids in self._sets.values())
        unique = len(self._sets)
        return {
            "unique_keys": unique,
            "total_entries": total,
            "average_entries_per_key": total / unique if unique else 0.0,
        }

    def __len__(self) -> int:
        return len(self._sets)

    def __contains__(self, key: object) -> bool:
        return key in self._sets


class _ReverseMappedIndex:
    """Shared add/remove bookkeeping for indexes with many keys per record."""

    def __init__(self) -> None:
        self._keys = KeySets()
        self._by_record: Dict[str, Set[Hashable]] = {}

    def _record_keys(self, record: MemoryRecord) -> Iterable[Hashable]:
        raise NotImplementedError

    def add(self, record: MemoryRecord) -> None:
        self.remove(record.id)
        keys = set(self._record_keys(record))
        for key in keys:
            self._keys.add(key, record.id)
        if keys:
            self._by_record[record.id] = keys

    def remove(self, record_id: str) -> None:
        for key in self._by_record.pop(record_id, ()):
            self._keys.discard(key, record_id)

    def keys(self) -> List[Hashable]:
        return self._keys.keys()

    def clear(self) -> None:
        self._keys.clear()
        self._by_record.clear()

    def stats(self) -> Dict[str, float]:
        return self._keys.stats()


class EntityIndex(_ReverseMappedIndex):
    """entity -> record ids.  Composite queries intersect (AND)."""

    def _record_keys(self, record: MemoryRecord) -> Iterable[str]:
        return record.metadata.entities

    def query(self, entity: str) -> Set[str]:
        return self._keys.get(entity)

    def query_all(self, entities: Iterable[str]) -> Set[str]:
        """Ids that reference *every* given entity."""
        entities = list(entities)
        if not entities:
            return set()
        result = self._keys.get(entities[0])
        for entity in entities[1:]:
            result &= self._keys.get(entity)
            if not result:
                break
        return result

    def entities_for(self, record_id: str) -> Set[str]:
        return set(self._by_record.get(record_id, ()))


class TagIndex(_ReverseMappedIndex):
    """tag -> record ids.  Keys are case-folded; composite queries union (OR)."""

    def _record_keys(self, record: MemoryRecord) -> Iterable[str]:
        return (tag.lower() for tag in record.metadata.tags)

    def query(self, tag: str) -> Set[str]:
        return self._keys.get(tag.lower())

    def query_any(self, tags: Iterable[str]) -> Set[str]:
        """Ids carrying *any* of the given tags."""
        result: Set[str] = set()
        for tag in tags:
            result |= self._keys.get(tag.lower())
        return result


class TypeIndex:
    """kind -> record ids.  Removal scans the (at most four) keys."""

    def __init__(self) -> None:
        self._keys = KeySets()

    def add(self, record: MemoryRecord) -> None:
        self.remove(record.id)
        self._keys.add(record.kind, record.id)

    def remove(self, record_id: str) -> None:
        for kind in self._keys.keys():
            self._keys.discard(kind, record_id)

    def query(self, kind: MemoryKind) -> Set[str]:
        return self._keys.get(MemoryKind(kind))

    def keys(self) -> List[Hashable]:
        return self._keys.keys()

    def clear(self) -> None:
        self._keys.clear()

    def stats(self) -> Dict[str, float]:
        return self._keys.stats()
