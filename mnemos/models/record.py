"""
mnemos.models.record — The memory record and its shared metadata.

A :class:`MemoryRecord` is one memory.  Its ``kind`` picks the content
payload (episodic, semantic, procedural or emotional); everything else
(importance, decay, tags, entities, versioning) is shared.  Kind-specific
rules such as validation and implied tags live on the payload classes
and are dispatched through the ``kind`` tag.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from mnemos.core.errors import ValidationError
from mnemos.core.types import MemoryKind, Privacy, clamp, now, parse_ts, to_iso


def _dedupe_extend(target: List[str], items: Iterable[str]) -> None:
    seen = set(target)
    for item in items:
        if item and item not in seen:
            target.append(item)
            seen.add(item)


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


@dataclass
class MemoryMetadata:
    """Bookkeeping shared by every record kind."""

    created_at: datetime = field(default_factory=now)
    last_accessed_at: Optional[datetime] = None
    last_modified_at: Optional[datetime] = None
    access_count: int = 0
    importance: float = 0.5
    confidence: float = 0.8
    source: str = "unknown"
    tags: List[str] = field(default_factory=list)
    entities: List[str] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.last_accessed_at is None:
            self.last_accessed_at = self.created_at
        if self.last_modified_at is None:
            self.last_modified_at = self.created_at
        self.importance = clamp(self.importance)
        self.confidence = clamp(self.confidence)
        self.access_count = max(0, int(self.access_count))
        tags, entities = list(self.tags), list(self.entities)
        self.tags, self.entities = [], []
        _dedupe_extend(self.tags, tags)
        _dedupe_extend(self.entities, entities)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created_at": to_iso(self.created_at),
            "last_accessed_at": to_iso(self.last_accessed_at),
            "last_modified_at": to_iso(self.last_modified_at),
            "access_count": self.access_count,
            "importance": self.importance,
            "confidence": self.confidence,
            "source": self.source,
            "tags": list(self.tags),
            "entities": list(self.entities),
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MemoryMetadata":
        created = parse_ts(d.get("created_at")) or now()
        return cls(
            created_at=created,
            last_accessed_at=parse_ts(d.get("last_accessed_at")),
            last_modified_at=parse_ts(d.get("last_modified_at")),
            access_count=d.get("access_count", 0),
            importance=d.get("importance", 0.5),
            confidence=d.get("confidence", 0.8),
            source=d.get("source", "unknown"),
            tags=d.get("tags", []),
            entities=d.get("entities", []),
            context=d.get("context", {}),
        )


@dataclass
class VersionInfo:
    """Content version; bumped on every :meth:`MemoryRecord.update`."""

    version: int = 1
    timestamp: datetime = field(default_factory=now)
    change_description: Optional[str] = None
    previous_version_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": to_iso(self.timestamp),
            "change_description": self.change_description,
            "previous_version_id": self.previous_version_id,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "VersionInfo":
        return cls(
            version=int(d.get("version", 1)),
            timestamp=parse_ts(d.get("timestamp")) or now(),
            change_description=d.get("change_description"),
            previous_version_id=d.get("previous_version_id"),
        )


# ---------------------------------------------------------------------------
# MemoryRecord
# ---------------------------------------------------------------------------


@dataclass
class MemoryRecord:
    """
    One memory.

    Parameters
    ----------
    id : str
        Caller-assigned, immutable identifier.
    kind : MemoryKind
        Discriminant; must match the type of ``content``.
    content :
        One of ``EpisodicContent``, ``SemanticContent``,
        ``ProceduralContent`` or ``EmotionalContent``.
    privacy : Privacy
        Defaults per kind (emotional records are sensitive, others private).

    Use :meth:`create` rather than the constructor so the kind, the
    default privacy and the content-implied tags/entities are filled in.
    """

    id: str
    kind: MemoryKind
    content: Any
    privacy: Privacy = Privacy.PRIVATE
    metadata: MemoryMetadata = field(default_factory=MemoryMetadata)
    version: VersionInfo = field(default_factory=VersionInfo)
    is_consolidated: bool = False
    decay_factor: float = 1.0

    def __post_init__(self) -> None:
        self.kind = MemoryKind(self.kind)
        self.privacy = Privacy(self.privacy)
        self.decay_factor = clamp(self.decay_factor)

    # -- construction -------------------------------------------------------

    @classmethod
    def create(
        cls,
        id: str,
        content: Any,
        privacy: Optional[Privacy] = None,
        *,
        importance: float = 0.5,
        confidence: float = 0.8,
        source: str = "unknown",
        tags: Iterable[str] = (),
        entities: Iterable[str] = (),
        context: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> "MemoryRecord":
        """Build a record around *content*, deriving kind and implied keys."""
        kind = content.KIND
        meta = MemoryMetadata(
            created_at=created_at or now(),
            importance=importance,
            confidence=confidence,
            source=source,
            tags=list(tags),
            entities=list(entities),
            context=dict(context or {}),
        )
        record = cls(
            id=id,
            kind=kind,
            content=content,
            privacy=privacy if privacy is not None else content.DEFAULT_PRIVACY,
            metadata=meta,
            version=VersionInfo(timestamp=meta.created_at),
        )
        record._absorb_content_keys()
        return record

    def _absorb_content_keys(self) -> None:
        self.add_tags(self.content.implied_tags())
        self.add_entities(self.content.implied_entities())

    # -- validation ---------------------------------------------------------

    def validation_errors(self) -> List[str]:
        if self.content is None:
            return ["content is missing"]
        if getattr(self.content, "KIND", None) != self.kind:
            return [f"content does not match kind {self.kind.value}"]
        return self.content.validation_errors()

    def is_valid(self) -> bool:
        return not self.validation_errors()

    def validate(self) -> None:
        """Raise :class:`ValidationError` if the record is not well-formed."""
        errors = self.validation_errors()
        if errors:
            raise ValidationError(
                f"Invalid {self.kind.value} memory {self.id}: " + "; ".join(errors),
                record_id=self.id,
            )

    # -- lifecycle ----------------------------------------------------------

    @property
    def effective_importance(self) -> float:
        return self.metadata.importance * self.decay_factor

    def record_access(self, at: Optional[datetime] = None) -> None:
        self.metadata.last_accessed_at = at or now()
        self.metadata.access_count += 1

    def update(self, content: Any, change_description: str = "") -> None:
        """Replace the content and bump the version."""
        if getattr(content, "KIND", None) != self.kind:
            raise ValidationError(
                f"Cannot replace {self.kind.value} content with "
                f"{type(content).__name__}",
                record_id=self.id,
            )
        stamp = now()
        self.version = VersionInfo(
            version=self.version.version + 1,
            timestamp=stamp,
            change_description=change_description or None,
            previous_version_id=f"{self.id}_v{self.version.version}",
        )
        self.content = content
        self.metadata.last_modified_at = stamp
        self._absorb_content_keys()

    def apply_decay(self, rate: float) -> None:
        """Multiply the decay factor by ``1 - rate``; never increases it."""
        rate = clamp(rate)
        self.decay_factor = max(0.0, self.decay_factor * (1.0 - rate))

    def consolidate(self) -> None:
        self.is_consolidated = True

    def add_tags(self, tags: Iterable[str]) -> None:
        _dedupe_extend(self.metadata.tags, tags)

    def add_entities(self, entities: Iterable[str]) -> None:
        _dedupe_extend(self.metadata.entities, entities)

    # -- serialisation ------------------------------------------------------

    def content_text(self) -> str:
        """Canonical JSON text of the content, used for text matching."""
        return json.dumps(self.content.to_dict(), sort_keys=True, default=str)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "content": self.content.to_dict(),
            "privacy": self.privacy.value,
            "metadata": self.metadata.to_dict(),
            "version": self.version.to_dict(),
            "is_consolidated": self.is_consolidated,
            "decay_factor": self.decay_factor,
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        return (
            f"MemoryRecord(id={self.id!r}, kind={self.kind.value}, "
            f"importance={self.metadata.importance:.2f}, "
            f"decay={self.decay_factor:.3f}, consolidated={self.is_consolidated})"
        )
