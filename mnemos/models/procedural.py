"""
mnemos.models.procedural — Procedural memory: how to do something.

Effectiveness feedback moves importance: each success raises it by
``SUCCESS_BOOST`` (capped at 1.0), each failure lowers it by
``FAILURE_PENALTY`` (floored at ``IMPORTANCE_FLOOR``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Optional

from mnemos.core.types import MemoryKind, Privacy, clamp

if TYPE_CHECKING:
    from mnemos.models.record import MemoryRecord

SUCCESS_BOOST = 0.05
FAILURE_PENALTY = 0.03
IMPORTANCE_FLOOR = 0.1


@dataclass
class ProcedureContext:
    activity: str
    environment: Optional[str] = None
    prerequisites: List[str] = field(default_factory=list)
    user_state: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "activity": self.activity,
            "environment": self.environment,
            "prerequisites": list(self.prerequisites),
            "user_state": dict(self.user_state),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProcedureContext":
        return cls(
            activity=d.get("activity", ""),
            environment=d.get("environment"),
            prerequisites=list(d.get("prerequisites", [])),
            user_state=dict(d.get("user_state") or {}),
        )


@dataclass
class ProcedureStep:
    order: int
    description: str
    actions: List[str] = field(default_factory=list)
    expected_outcome: Optional[str] = None
    conditions: List[str] = field(default_factory=list)
    alternatives: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": self.order,
            "description": self.description,
            "actions": list(self.actions),
            "expected_outcome": self.expected_outcome,
            "conditions": list(self.conditions),
            "alternatives": list(self.alternatives),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProcedureStep":
        return cls(
            order=int(d.get("order", 0)),
            description=d.get("description", ""),
            actions=list(d.get("actions", [])),
            expected_outcome=d.get("expected_outcome"),
            conditions=list(d.get("conditions", [])),
            alternatives=list(d.get("alternatives", [])),
        )


@dataclass
class Variation:
    condition: str
    steps: List[ProcedureStep] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"condition": self.condition, "steps": [s.to_dict() for s in self.steps]}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Variation":
        return cls(
            condition=d.get("condition", ""),
            steps=[ProcedureStep.from_dict(s) for s in d.get("steps", [])],
        )


@dataclass
class Effectiveness:
    success_count: int = 0
    failure_count: int = 0
    average_completion_time: Optional[float] = None
    satisfaction_ratings: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "average_completion_time": self.average_completion_time,
            "satisfaction_ratings": list(self.satisfaction_ratings),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Effectiveness":
        return cls(
            success_count=int(d.get("success_count", 0)),
            failure_count=int(d.get("failure_count", 0)),
            average_completion_time=d.get("average_completion_time"),
            satisfaction_ratings=list(d.get("satisfaction_ratings", [])),
        )


@dataclass
class ProceduralContent:
    """Payload of a procedural record."""

    KIND: ClassVar[MemoryKind] = MemoryKind.PROCEDURAL
    DEFAULT_PRIVACY: ClassVar[Privacy] = Privacy.PRIVATE

    name: str
    description: str
    context: ProcedureContext
    steps: List[ProcedureStep]
    effectiveness: Optional[Effectiveness] = field(default_factory=Effectiveness)
    variations: List[Variation] = field(default_factory=list)
    success_criteria: List[str] = field(default_factory=list)
    pitfalls: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.steps = sorted(self.steps, key=lambda s: s.order)

    # -- record hooks -------------------------------------------------------

    def validation_errors(self) -> List[str]:
        errors = []
        if not self.name:
            errors.append("name is required")
        if not self.description:
            errors.append("description is required")
        if self.context is None or not self.context.activity:
            errors.append("context activity is required")
        if not self.steps:
            errors.append("at least one step is required")
        if self.effectiveness is None:
            errors.append("effectiveness counters are required")
        return errors

    def implied_tags(self) -> List[str]:
        tags = [self.context.activity] if self.context and self.context.activity else []
        if self.context and self.context.environment:
            tags.append(self.context.environment)
        return tags

    def implied_entities(self) -> List[str]:
        return []

    # -- queries ------------------------------------------------------------

    def success_rate(self) -> float:
        eff = self.effectiveness
        total = eff.success_count + eff.failure_count
        return eff.success_count / total if total else 0.0

    def average_satisfaction(self) -> float:
        ratings = self.effectiveness.satisfaction_ratings
        return sum(ratings) / len(ratings) if ratings else 0.0

    def add_satisfaction_rating(self, rating: float) -> None:
        self.effectiveness.satisfaction_ratings.append(clamp(rating))

    def applies_to(self, activity: str, environment: Optional[str] = None) -> bool:
        if self.context.activity != activity:
            return False
        if environment and self.context.environment:
            return self.context.environment == environment
        return True

    def steps_for_context(self, environment: Optional[str] = None) -> List[ProcedureStep]:
        """Steps of the first variation whose condition mentions *environment*."""
        if environment:
            needle = environment.lower()
            for variation in self.variations:
                if needle in variation.condition.lower():
                    return sorted(variation.steps, key=lambda s: s.order)
        return list(self.steps)

    # -- serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "context": self.context.to_dict(),
            "steps": [s.to_dict() for s in self.steps],
            "variations": [v.to_dict() for v in self.variations],
            "success_criteria": list(self.success_criteria),
            "pitfalls": list(self.pitfalls),
            "effectiveness": self.effectiveness.to_dict() if self.effectiveness else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProceduralContent":
        eff = d.get("effectiveness")
        return cls(
            name=d.get("name", ""),
            description=d.get("description", ""),
            context=ProcedureContext.from_dict(d.get("context") or {}),
            steps=[ProcedureStep.from_dict(s) for s in d.get("steps", [])],
            variations=[Variation.from_dict(v) for v in d.get("variations", [])],
            success_criteria=list(d.get("success_criteria", [])),
            pitfalls=list(d.get("pitfalls", [])),
            effectiveness=Effectiveness.from_dict(eff) if eff is not None else None,
        )


# ---------------------------------------------------------------------------
# Feedback on a procedural record
# ---------------------------------------------------------------------------


def record_success(record: "MemoryRecord", completion_time: Optional[float] = None) -> None:
    """Count a successful run and raise the record's importance."""
    eff = record.content.effectiveness
    eff.success_count += 1
    if completion_time is not None:
        if eff.average_completion_time is None:
            eff.average_completion_time = float(completion_time)
        else:
            total = eff.success_count
            eff.average_completion_time = (
                eff.average_completion_time * (total - 1) + completion_time
            ) / total
    record.metadata.importance = min(1.0, record.metadata.importance + SUCCESS_BOOST)


def record_failure(record: "MemoryRecord") -> None:
    """Count a failed run and lower the record's importance."""
    record.content.effectiveness.failure_count += 1
    record.metadata.importance = max(
        IMPORTANCE_FLOOR, record.metadata.importance - FAILURE_PENALTY
    )
