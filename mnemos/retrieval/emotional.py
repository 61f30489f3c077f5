"""
mnemos.retrieval.emotional — Mood-congruent recall.

    emotional records  0.6   primary match 0.5, secondary match 0.2,
                             intensity closeness 0.3
    emotion tags       0.3   any tag containing the current emotion
    intensity boost    0.1   effective importance * current intensity

Without emotional context every record scores 0.
"""

from __future__ import annotations

from typing import List, Optional

from mnemos.core.types import MemoryKind
from mnemos.models.record import MemoryRecord
from mnemos.retrieval.base import (
    RetrievalContext,
    RetrievalOptions,
    RetrievalStrategy,
    RetrievedMemory,
    WeightedScore,
)
from mnemos.storage.base import MemoryStore

HIGH_INTENSITY = 0.7


def _has_emotion_tag(record: MemoryRecord, emotion: str) -> bool:
    needle = emotion.lower()
    return any(needle in tag.lower() for tag in record.metadata.tags)


class EmotionalRetrieval(RetrievalStrategy):
    name = "emotional"

    def retrieve(
        self,
        context: RetrievalContext,
        options: RetrievalOptions,
        store: MemoryStore,
    ) -> List[RetrievedMemory]:
        scored = [
            RetrievedMemory(r, self.calculate_relevance(r, context), self.reason(r, context))
            for r in store.get_all()
        ]
        return self.filter_and_sort(scored, options)

    def calculate_relevance(self, record: MemoryRecord, context: RetrievalContext) -> float:
        emo = context.emotional
        if emo is None:
            return 0.0
        score = WeightedScore()
        if record.kind == MemoryKind.EMOTIONAL:
            score.add(
                self.state_similarity(record, emo.current_emotion, emo.emotional_intensity),
                0.6,
            )
        if emo.current_emotion:
            score.add(1.0 if _has_emotion_tag(record, emo.current_emotion) else 0.0, 0.3)
        if emo.emotional_intensity is not None:
            score.add(record.effective_importance * emo.emotional_intensity, 0.1)
        return min(1.0, score.result())

    @staticmethod
    def state_similarity(
        record: MemoryRecord,
        emotion: Optional[str],
        intensity: Optional[float],
    ) -> float:
        if not emotion:
            return 0.0
        state = record.content.state
        wanted = emotion.lower()
        score = 0.0
        if state.primary_emotion.lower() == wanted:
            score += 0.5
        if any(e.lower() == wanted for e in state.secondary_emotions):
            score += 0.2
        if intensity is not None:
            score += (1 - abs(state.intensity - intensity)) * 0.3
        return score

    @staticmethod
    def reason(record: MemoryRecord, context: RetrievalContext) -> str:
        emo = context.emotional
        reasons = []
        if emo and emo.current_emotion:
            if record.kind == MemoryKind.EMOTIONAL:
                if record.content.state.primary_emotion.lower() == emo.current_emotion.lower():
                    reasons.append(f"Similar emotion: {emo.current_emotion}")
            elif _has_emotion_tag(record, emo.current_emotion):
                reasons.append(f"Related to {emo.current_emotion}")
        if emo and emo.emotional_intensity and emo.emotional_intensity > HIGH_INTENSITY:
            reasons.append("High emotional intensity")
        return "; ".join(reasons) or "Emotionally relevant"
