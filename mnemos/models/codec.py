"""
mnemos.models.codec — Tagged decode of serialised records.

``record_from_dict`` is the inverse of ``MemoryRecord.to_dict``: it reads
the ``kind`` discriminant, revives timestamps and rebuilds the typed
content payload.
"""

from __future__ import annotations

from typing import Any, Dict, Type

from mnemos.core.errors import DeserializationError
from mnemos.core.types import MemoryKind
from mnemos.models.emotional import EmotionalContent
from mnemos.models.episodic import EpisodicContent
from mnemos.models.procedural import ProceduralContent
from mnemos.models.record import MemoryMetadata, MemoryRecord, VersionInfo
from mnemos.models.sealed import SealedContent
from mnemos.models.semantic import SemanticContent

CONTENT_TYPES: Dict[MemoryKind, Type] = {
    MemoryKind.EPISODIC: EpisodicContent,
    MemoryKind.SEMANTIC: SemanticContent,
    MemoryKind.PROCEDURAL: ProceduralContent,
    MemoryKind.EMOTIONAL: EmotionalContent,
}


def record_from_dict(d: Dict[str, Any]) -> MemoryRecord:
    """Rebuild a typed record; raise DeserializationError on bad input."""
    if not isinstance(d, dict):
        raise DeserializationError(f"Expected a mapping, got {type(d).__name__}")

    raw_kind = d.get("kind", d.get("type"))
    try:
        kind = MemoryKind(raw_kind)
    except ValueError:
        raise DeserializationError(f"Unknown memory kind: {raw_kind!r}") from None

    if "id" not in d:
        raise DeserializationError("Serialised memory has no id")

    try:
        raw_content = d.get("content") or {}
        if SealedContent.is_sealed(raw_content):
            content = SealedContent(kind, raw_content.get("data", ""))
        else:
            content = CONTENT_TYPES[kind].from_dict(raw_content)
        return MemoryRecord(
            id=str(d["id"]),
            kind=kind,
            content=content,
            privacy=d.get("privacy", content.DEFAULT_PRIVACY),
            metadata=MemoryMetadata.from_dict(d.get("metadata") or {}),
            version=VersionInfo.from_dict(d.get("version") or {}),
            is_consolidated=bool(d.get("is_consolidated", False)),
            decay_factor=float(d.get("decay_factor", 1.0)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise DeserializationError(
            f"Malformed {kind.value} memory {d.get('id')!r}: {exc}"
        ) from exc
