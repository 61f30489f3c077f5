"""
mnemos — Memory engine for conversational agents.

    from mnemos import MemoryService, RetrievalContext

    with MemoryService() as memory:
        memory.store_memory(record)
        hits = memory.retrieve_contextual(RetrievalContext(entities=["john"]))
"""

from mnemos.core.config import Config
from mnemos.core.errors import (
    MnemosError,
    NotFoundError,
    ValidationError,
)
from mnemos.core.types import MemoryKind, Privacy
from mnemos.models import (
    EmotionalContent,
    EpisodicContent,
    MemoryMetadata,
    MemoryRecord,
    ProceduralContent,
    SemanticContent,
)
from mnemos.retrieval import RetrievalContext, RetrievalOptions, RetrievedMemory
from mnemos.service import MemoryService

__version__ = "0.1.0"

__all__ = [
    "Config",
    "EmotionalContent",
    "EpisodicContent",
    "MemoryKind",
    "MemoryMetadata",
    "MemoryRecord",
    "MemoryService",
    "MnemosError",
    "NotFoundError",
    "Privacy",
    "ProceduralContent",
    "RetrievalContext",
    "RetrievalOptions",
    "RetrievedMemory",
    "SemanticContent",
    "ValidationError",
]
