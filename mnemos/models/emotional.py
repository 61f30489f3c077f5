"""
mnemos.models.emotional — Emotional memory: a felt state and its causes.

Similarity between two emotional records blends four signals:

    0.3  same primary emotion
    0.2  valence closeness        max(0, 1 - |dv|)
    0.1  intensity closeness      (1 - |di|)
    0.4  trigger overlap          common / max(len)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional

from mnemos.core.types import MemoryKind, Privacy

POSITIVE_VALENCE = 0.3
NEGATIVE_VALENCE = -0.3


class TriggerType(str, Enum):
    EVENT = "event"
    PERSON = "person"
    TOPIC = "topic"
    MEMORY = "memory"
    ENVIRONMENT = "environment"
    OTHER = "other"


class ResponseType(str, Enum):
    COPING = "coping"
    EXPRESSION = "expression"
    REGULATION = "regulation"
    AVOIDANCE = "avoidance"


@dataclass
class EmotionalState:
    primary_emotion: str
    intensity: float
    valence: float
    arousal: float
    secondary_emotions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_emotion": self.primary_emotion,
            "secondary_emotions": list(self.secondary_emotions),
            "intensity": self.intensity,
            "valence": self.valence,
            "arousal": self.arousal,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EmotionalState":
        return cls(
            primary_emotion=d.get("primary_emotion", ""),
            secondary_emotions=list(d.get("secondary_emotions", [])),
            intensity=float(d.get("intensity", 0.0)),
            valence=float(d.get("valence", 0.0)),
            arousal=float(d.get("arousal", 0.0)),
        )


@dataclass
class Trigger:
    type: TriggerType
    description: str
    strength: float = 0.5
    entity: Optional[str] = None

    def __post_init__(self) -> None:
        self.type = TriggerType(self.type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "entity": self.entity,
            "strength": self.strength,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Trigger":
        return cls(
            type=d.get("type", TriggerType.OTHER.value),
            description=d.get("description", ""),
            entity=d.get("entity"),
            strength=float(d.get("strength", 0.5)),
        )


@dataclass
class Response:
    type: ResponseType
    description: str
    effectiveness: Optional[float] = None

    def __post_init__(self) -> None:
        self.type = ResponseType(self.type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "effectiveness": self.effectiveness,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Response":
        return cls(
            type=d.get("type", ResponseType.EXPRESSION.value),
            description=d.get("description", ""),
            effectiveness=d.get("effectiveness"),
        )


@dataclass
class EmotionalSituation:
    situation: Optional[str] = None
    location: Optional[str] = None
    people_present: List[str] = field(default_factory=list)
    time_of_day: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "situation": self.situation,
            "location": self.location,
            "people_present": list(self.people_present),
            "time_of_day": self.time_of_day,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EmotionalSituation":
        return cls(
            situation=d.get("situation"),
            location=d.get("location"),
            people_present=list(d.get("people_present", [])),
            time_of_day=d.get("time_of_day"),
        )


@dataclass
class EmotionalContent:
    """Payload of an emotional record."""

    KIND: ClassVar[MemoryKind] = MemoryKind.EMOTIONAL
    DEFAULT_PRIVACY: ClassVar[Privacy] = Privacy.SENSITIVE

    state: EmotionalState
    triggers: List[Trigger]
    responses: List[Response] = field(default_factory=list)
    context: EmotionalSituation = field(default_factory=EmotionalSituation)
    duration: Optional[float] = None
    resolution: Optional[str] = None
    insights: List[str] = field(default_factory=list)
    episodic_memory_id: Optional[str] = None
    pattern_id: Optional[str] = None

    # -- record hooks -------------------------------------------------------

    def validation_errors(self) -> List[str]:
        errors = []
        state = self.state
        if state is None or not state.primary_emotion:
            errors.append("primary emotion is required")
            return errors
        if not 0.0 <= state.intensity <= 1.0:
            errors.append(f"intensity {state.intensity} outside [0, 1]")
        if not -1.0 <= state.valence <= 1.0:
            errors.append(f"valence {state.valence} outside [-1, 1]")
        if not 0.0 <= state.arousal <= 1.0:
            errors.append(f"arousal {state.arousal} outside [0, 1]")
        if not self.triggers:
            errors.append("at least one trigger is required")
        return errors

    def implied_tags(self) -> List[str]:
        return [self.state.primary_emotion, *self.state.secondary_emotions]

    def implied_entities(self) -> List[str]:
        entities = [t.entity for t in self.triggers if t.entity]
        entities.extend(self.context.people_present)
        return entities

    # -- similarity ---------------------------------------------------------

    def similarity(self, other: "EmotionalContent") -> float:
        score = 0.0
        if self.state.primary_emotion == other.state.primary_emotion:
            score += 0.3
        score += max(0.0, 1 - abs(self.state.valence - other.state.valence)) * 0.2
        score += (1 - abs(self.state.intensity - other.state.intensity)) * 0.1

        mine = {(t.type, t.description) for t in self.triggers}
        theirs = {(t.type, t.description) for t in other.triggers}
        longest = max(len(self.triggers), len(other.triggers))
        if longest:
            score += len(mine & theirs) / longest * 0.4
        return min(1.0, score)

    # -- queries ------------------------------------------------------------

    def has_trigger(self, trigger_type: TriggerType) -> bool:
        return any(t.type == TriggerType(trigger_type) for t in self.triggers)

    def involves_entity(self, entity: str) -> bool:
        return entity in self.implied_entities()

    def dominant_trigger(self) -> Optional[Trigger]:
        if not self.triggers:
            return None
        return max(self.triggers, key=lambda t: t.strength)

    def weighted_intensity(self) -> float:
        return self.state.intensity * abs(self.state.valence)

    def is_positive(self) -> bool:
        return self.state.valence > POSITIVE_VALENCE

    def is_negative(self) -> bool:
        return self.state.valence < NEGATIVE_VALENCE

    def most_effective_response(self) -> Optional[Response]:
        rated = [r for r in self.responses if r.effectiveness is not None]
        if not rated:
            return None
        return max(rated, key=lambda r: r.effectiveness)

    def add_insight(self, insight: str) -> None:
        if insight and insight not in self.insights:
            self.insights.append(insight)

    def link_to_pattern(self, pattern_id: str) -> None:
        self.pattern_id = pattern_id

    # -- serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.to_dict(),
            "triggers": [t.to_dict() for t in self.triggers],
            "responses": [r.to_dict() for r in self.responses],
            "context": self.context.to_dict(),
            "duration": self.duration,
            "resolution": self.resolution,
            "insights": list(self.insights),
            "episodic_memory_id": self.episodic_memory_id,
            "pattern_id": self.pattern_id,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EmotionalContent":
        return cls(
            state=EmotionalState.from_dict(d.get("state") or {}),
            triggers=[Trigger.from_dict(t) for t in d.get("triggers", [])],
            responses=[Response.from_dict(r) for r in d.get("responses", [])],
            context=EmotionalSituation.from_dict(d.get("context") or {}),
            duration=d.get("duration"),
            resolution=d.get("resolution"),
            insights=list(d.get("insights", [])),
            episodic_memory_id=d.get("episodic_memory_id"),
            pattern_id=d.get("pattern_id"),
        )
