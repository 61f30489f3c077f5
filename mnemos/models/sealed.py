"""
mnemos.models.sealed — Opaque stand-in for encrypted content.

An encrypting store swaps a record's content for a :class:`SealedContent`
before handing it to the backend.  It serialises as
``{"__encrypted": true, "data": "<ciphertext>"}``.
"""

from __future__ import annotations

from typing import Any, Dict, List

from mnemos.core.types import MemoryKind, Privacy

SEALED_MARKER = "__encrypted"


class SealedContent:
    """Ciphertext wrapped so it can sit where a content payload goes."""

    DEFAULT_PRIVACY = Privacy.SENSITIVE

    def __init__(self, kind: MemoryKind, data: str) -> None:
        self.KIND = MemoryKind(kind)
        self.data = data

    def validation_errors(self) -> List[str]:
        return []

    def implied_tags(self) -> List[str]:
        return []

    def implied_entities(self) -> List[str]:
        return []

    def to_dict(self) -> Dict[str, Any]:
        return {SEALED_MARKER: True, "data": self.data}

    @staticmethod
    def is_sealed(d: Any) -> bool:
        return isinstance(d, dict) and bool(d.get(SEALED_MARKER))

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, SealedContent)
            and other.KIND == self.KIND
            and other.data == self.data
        )

    def __repr__(self) -> str:
        return f"SealedContent(kind={self.KIND.value}, {len(self.data)} chars)"
