"""mnemos.models — Memory records and their per-kind payloads."""

from mnemos.models.codec import record_from_dict
from mnemos.models.emotional import (
    EmotionalContent,
    EmotionalSituation,
    EmotionalState,
    Response,
    ResponseType,
    Trigger,
    TriggerType,
)
from mnemos.models.episodic import (
    EpisodicContent,
    Participant,
    TemporalInfo,
    TranscriptLine,
)
from mnemos.models.procedural import (
    Effectiveness,
    ProceduralContent,
    ProcedureContext,
    ProcedureStep,
    Variation,
    record_failure,
    record_success,
)
from mnemos.models.record import MemoryMetadata, MemoryRecord, VersionInfo
from mnemos.models.semantic import (
    KnowledgeType,
    Relationship,
    SemanticContent,
    merge_semantic,
)

__all__ = [
    "Effectiveness",
    "EmotionalContent",
    "EmotionalSituation",
    "EmotionalState",
    "EpisodicContent",
    "KnowledgeType",
    "MemoryMetadata",
    "MemoryRecord",
    "Participant",
    "ProceduralContent",
    "ProcedureContext",
    "ProcedureStep",
    "Relationship",
    "Response",
    "ResponseType",
    "SemanticContent",
    "TemporalInfo",
    "TranscriptLine",
    "Trigger",
    "TriggerType",
    "Variation",
    "VersionInfo",
    "merge_semantic",
    "record_failure",
    "record_success",
    "record_from_dict",
]
