"""Shared fixtures for mnemos tests."""

from datetime import datetime, timezone

import pytest

from mnemos.core.config import Config
from mnemos.models import (
    EmotionalContent,
    EmotionalState,
    EpisodicContent,
    MemoryRecord,
    Participant,
    ProceduralContent,
    ProcedureContext,
    ProcedureStep,
    SemanticContent,
    TemporalInfo,
    Trigger,
)
from mnemos.service import MemoryService
from mnemos.storage import InMemoryStore

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """A fixed 'current time' (Saturday 2024-06-15 12:00 UTC)."""
    return NOW


@pytest.fixture
def clock():
    """Clock callable that always returns ``NOW``."""
    return lambda: NOW


@pytest.fixture
def make_episodic():
    """Build an episodic record; participants default to one 'user'."""

    def _make(
        id="e1",
        description="Talked about the weekend",
        entities=(),
        tags=(),
        topics=(),
        participants=("user",),
        created_at=NOW,
        start_time=None,
        importance=0.5,
        confidence=0.8,
    ):
        content = EpisodicContent(
            description=description,
            participants=[Participant(id=p, name=p.title()) for p in participants],
            temporal=TemporalInfo(start_time=start_time or created_at),
            topics=list(topics),
        )
        return MemoryRecord.create(
            id,
            content,
            importance=importance,
            confidence=confidence,
            tags=tags,
            entities=entities,
            created_at=created_at,
        )

    return _make


@pytest.fixture
def make_semantic():
    """Build a semantic fact about *subject*."""

    def _make(
        id="s1",
        subject="John",
        property="favoriteColor",
        value="blue",
        created_at=NOW,
        importance=0.5,
        confidence=0.8,
        knowledge_type="preference",
        tags=(),
    ):
        content = SemanticContent(
            knowledge_type=knowledge_type,
            subject=subject,
            property=property,
            value=value,
        )
        return MemoryRecord.create(
            id,
            content,
            importance=importance,
            confidence=confidence,
            created_at=created_at,
            tags=tags,
        )

    return _make


@pytest.fixture
def make_procedural():
    """Build a two-step procedure for *activity*."""

    def _make(id="p1", activity="cooking", environment="kitchen", importance=0.5):
        content = ProceduralContent(
            name=f"{activity} routine",
            description=f"How to do {activity}",
            context=ProcedureContext(activity=activity, environment=environment),
            steps=[
                ProcedureStep(order=2, description="finish"),
                ProcedureStep(order=1, description="start"),
            ],
        )
        return MemoryRecord.create(id, content, importance=importance, created_at=NOW)

    return _make


@pytest.fixture
def make_emotional():
    """Build an emotional record with a single trigger."""

    def _make(
        id="m1",
        emotion="joy",
        intensity=0.7,
        valence=0.8,
        arousal=0.5,
        trigger="good news",
        entity=None,
        created_at=NOW,
        importance=0.5,
    ):
        content = EmotionalContent(
            state=EmotionalState(
                primary_emotion=emotion,
                intensity=intensity,
                valence=valence,
                arousal=arousal,
            ),
            triggers=[Trigger(type="event", description=trigger, entity=entity)],
        )
        return MemoryRecord.create(id, content, importance=importance, created_at=created_at)

    return _make


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def config():
    """Config with timers off."""
    return Config(auto_consolidate=False, auto_decay=False)


@pytest.fixture
def service(config, clock):
    """A MemoryService on the fixed clock, disposed after the test."""
    svc = MemoryService(config, clock=clock)
    yield svc
    svc.dispose()