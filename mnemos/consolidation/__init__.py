"""mnemos.consolidation — Short-term buffer, consolidation, pattern mining and attention."""

from mnemos.consolidation.attention import AttentionComponents, AttentionMechanism
from mnemos.consolidation.buffer import ShortTermBuffer
from mnemos.consolidation.consolidator import ConsolidationEngine, ConsolidationResult
from mnemos.consolidation.patterns import DetectedPattern, PatternMiner, PatternType

__all__ = [
    "AttentionComponents",
    "AttentionMechanism",
    "ConsolidationEngine",
    "ConsolidationResult",
    "DetectedPattern",
    "PatternMiner",
    "PatternType",
    "ShortTermBuffer",
]
