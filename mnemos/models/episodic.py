"""
mnemos.models.episodic — Episodic memory: something that happened.

Participants become entity references and topics become tags when the
record is created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from mnemos.core.types import MemoryKind, Privacy, parse_ts, to_iso


@dataclass
class Participant:
    id: str
    name: str
    role: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "role": self.role}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Participant":
        return cls(id=d["id"], name=d.get("name", d["id"]), role=d.get("role"))


@dataclass
class TemporalInfo:
    """When the episode happened.  ``duration`` is in seconds."""

    start_time: Optional[datetime]
    end_time: Optional[datetime] = None
    duration: Optional[float] = None
    time_of_day: Optional[str] = None
    day_of_week: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": to_iso(self.start_time) if self.start_time else None,
            "end_time": to_iso(self.end_time) if self.end_time else None,
            "duration": self.duration,
            "time_of_day": self.time_of_day,
            "day_of_week": self.day_of_week,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TemporalInfo":
        return cls(
            start_time=parse_ts(d.get("start_time")),
            end_time=parse_ts(d.get("end_time")),
            duration=d.get("duration"),
            time_of_day=d.get("time_of_day"),
            day_of_week=d.get("day_of_week"),
        )


@dataclass
class TranscriptLine:
    speaker: str
    text: str
    timestamp: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speaker": self.speaker,
            "text": self.text,
            "timestamp": to_iso(self.timestamp) if self.timestamp else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TranscriptLine":
        return cls(
            speaker=d.get("speaker", ""),
            text=d.get("text", ""),
            timestamp=parse_ts(d.get("timestamp")),
        )


@dataclass
class EpisodicContent:
    """Payload of an episodic record."""

    KIND: ClassVar[MemoryKind] = MemoryKind.EPISODIC
    DEFAULT_PRIVACY: ClassVar[Privacy] = Privacy.PRIVATE

    description: str
    participants: List[Participant]
    temporal: TemporalInfo
    title: Optional[str] = None
    transcript: List[TranscriptLine] = field(default_factory=list)
    # location / coordinates / device
    spatial: Dict[str, Any] = field(default_factory=dict)
    emotional_tone: List[str] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    related_memories: List[str] = field(default_factory=list)

    # -- record hooks -------------------------------------------------------

    def validation_errors(self) -> List[str]:
        errors = []
        if not self.description:
            errors.append("description is required")
        if not self.participants:
            errors.append("at least one participant is required")
        if self.temporal is None or self.temporal.start_time is None:
            errors.append("start time is required")
        return errors

    def implied_tags(self) -> List[str]:
        return list(self.topics)

    def implied_entities(self) -> List[str]:
        return [p.id for p in self.participants]

    # -- queries ------------------------------------------------------------

    def duration(self) -> Optional[float]:
        """Seconds the episode lasted, or None when unknown."""
        if self.temporal.duration:
            return float(self.temporal.duration)
        if self.temporal.end_time and self.temporal.start_time:
            return (self.temporal.end_time - self.temporal.start_time).total_seconds()
        return None

    def occurred_during(self, start: datetime, end: datetime) -> bool:
        """True when the episode interval overlaps ``[start, end]``."""
        ep_start = self.temporal.start_time
        ep_end = self.temporal.end_time or ep_start
        return (
            start <= ep_start <= end
            or start <= ep_end <= end
            or (ep_start <= start and ep_end >= end)
        )

    def has_participant(self, participant_id: str) -> bool:
        return any(p.id == participant_id for p in self.participants)

    # -- serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "participants": [p.to_dict() for p in self.participants],
            "temporal": self.temporal.to_dict(),
            "transcript": [t.to_dict() for t in self.transcript],
            "spatial": dict(self.spatial),
            "emotional_tone": list(self.emotional_tone),
            "topics": list(self.topics),
            "related_memories": list(self.related_memories),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EpisodicContent":
        return cls(
            title=d.get("title"),
            description=d.get("description", ""),
            participants=[Participant.from_dict(p) for p in d.get("participants", [])],
            temporal=TemporalInfo.from_dict(d.get("temporal") or {}),
            transcript=[TranscriptLine.from_dict(t) for t in d.get("transcript", [])],
            spatial=dict(d.get("spatial") or {}),
            emotional_tone=list(d.get("emotional_tone", [])),
            topics=list(d.get("topics", [])),
            related_memories=list(d.get("related_memories", [])),
        )
