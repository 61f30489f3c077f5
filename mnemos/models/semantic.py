"""
mnemos.models.semantic — Semantic memory: facts, preferences, beliefs.

Two semantic records *contradict* when they describe the same
subject/property with different values.  :func:`merge_semantic` folds a
contradicting record into an existing one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Optional

from mnemos.core.types import MemoryKind, Privacy, clamp

if TYPE_CHECKING:
    from mnemos.models.record import MemoryRecord


class KnowledgeType(str, Enum):
    FACT = "fact"
    PREFERENCE = "preference"
    BELIEF = "belief"
    SKILL = "skill"
    RELATIONSHIP = "relationship"
    CONCEPT = "concept"


@dataclass
class Relationship:
    subject: str
    predicate: str
    object: str
    strength: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "predicate": self.predicate,
            "object": self.object,
            "strength": self.strength,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Relationship":
        return cls(
            subject=d["subject"],
            predicate=d.get("predicate", ""),
            object=d["object"],
            strength=d.get("strength"),
        )


@dataclass
class SemanticContent:
    """Payload of a semantic record."""

    KIND: ClassVar[MemoryKind] = MemoryKind.SEMANTIC
    DEFAULT_PRIVACY: ClassVar[Privacy] = Privacy.PRIVATE

    knowledge_type: Optional[KnowledgeType]
    subject: str
    value: Any
    property: Optional[str] = None
    category: Optional[str] = None
    relationships: List[Relationship] = field(default_factory=list)
    evidence: List[str] = field(default_factory=list)
    contradictions: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.knowledge_type is not None:
            self.knowledge_type = KnowledgeType(self.knowledge_type)

    # -- record hooks -------------------------------------------------------

    def validation_errors(self) -> List[str]:
        errors = []
        if not self.subject:
            errors.append("subject is required")
        if self.knowledge_type is None:
            errors.append("knowledge type is required")
        if self.value is None:
            errors.append("value is required")
        return errors

    def implied_tags(self) -> List[str]:
        tags = []
        if self.category:
            tags.append(self.category)
        if self.knowledge_type is not None:
            tags.append(self.knowledge_type.value)
        return tags

    def implied_entities(self) -> List[str]:
        entities = [self.subject] if self.subject else []
        for rel in self.relationships:
            entities.extend([rel.subject, rel.object])
        return entities

    # -- queries ------------------------------------------------------------

    def contradicts(self, other: "SemanticContent") -> bool:
        return (
            self.subject == other.subject
            and self.property == other.property
            and self.value != other.value
        )

    def is_about(self, entity: str) -> bool:
        if self.subject == entity:
            return True
        return any(r.subject == entity or r.object == entity for r in self.relationships)

    def related_entities(self) -> List[str]:
        """Entities linked to the subject through relationships."""
        related: List[str] = []
        for rel in self.relationships:
            for name in (rel.subject, rel.object):
                if name != self.subject and name not in related:
                    related.append(name)
        return related

    # -- serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "knowledge_type": self.knowledge_type.value if self.knowledge_type else None,
            "subject": self.subject,
            "property": self.property,
            "value": self.value,
            "category": self.category,
            "relationships": [r.to_dict() for r in self.relationships],
            "evidence": list(self.evidence),
            "contradictions": list(self.contradictions),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SemanticContent":
        return cls(
            knowledge_type=d.get("knowledge_type"),
            subject=d.get("subject", ""),
            property=d.get("property"),
            value=d.get("value"),
            category=d.get("category"),
            relationships=[Relationship.from_dict(r) for r in d.get("relationships", [])],
            evidence=list(d.get("evidence", [])),
            contradictions=list(d.get("contradictions", [])),
        )


def merge_semantic(
    existing: "MemoryRecord",
    other: "MemoryRecord",
    prefer_newer: bool = True,
) -> bool:
    """Fold *other* into *existing* when the two contradict.

    With ``prefer_newer`` the value of whichever record was created later
    wins; otherwise the more confident one wins.  The displaced value is
    appended to the contradiction trail, evidence is concatenated and
    confidence becomes the mean of both.  Returns False (and changes
    nothing) when the records do not contradict.
    """
    mine: SemanticContent = existing.content
    theirs: SemanticContent = other.content
    if not mine.contradicts(theirs):
        return False

    if prefer_newer:
        take_other = other.metadata.created_at > existing.metadata.created_at
    else:
        take_other = other.metadata.confidence > existing.metadata.confidence

    if take_other:
        mine.contradictions.append(f"Previous value: {mine.value}")
        mine.value = theirs.value

    mine.evidence.extend(theirs.evidence)
    existing.metadata.confidence = clamp(
        (existing.metadata.confidence + other.metadata.confidence) / 2
    )
    return True
