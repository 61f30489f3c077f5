"""
mnemos.core.types — Shared enums and time helpers.

Timestamps are timezone-aware UTC ``datetime`` objects in memory and
ISO-8601 strings with a ``Z`` suffix on the wire.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class MemoryKind(str, Enum):
    """Discriminant for the four memory record variants."""

    EPISODIC = "episodic"
    SEMANTIC = "semantic"
    PROCEDURAL = "procedural"
    EMOTIONAL = "emotional"


class Privacy(str, Enum):
    """Privacy level of a record, ordered from least to most restricted."""

    PUBLIC = "public"
    PRIVATE = "private"
    SENSITIVE = "sensitive"
    CONFIDENTIAL = "confidential"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def generate_id() -> str:
    """12-hex-char unique identifier."""
    return uuid.uuid4().hex[:12]


def now() -> datetime:
    """Current UTC time."""
    return datetime.now(timezone.utc)


def to_iso(ts: datetime) -> str:
    """Serialise *ts* as ISO-8601 with a Z suffix."""
    return ensure_utc(ts).isoformat().replace("+00:00", "Z")


def ensure_utc(ts: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_ts(value: Union[str, datetime, float, int, None]) -> Optional[datetime]:
    """Revive a timestamp from its wire form.

    Accepts ISO-8601 strings (with or without ``Z``), datetimes, and
    epoch seconds.  Returns None for None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def jaccard(a, b) -> float:
    """Jaccard index of two iterables; 0.0 when both are empty."""
    sa, sb = set(a), set(b)
    union = sa | sb
    if not union:
        return 0.0
    return len(sa & sb) / len(union)


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))
