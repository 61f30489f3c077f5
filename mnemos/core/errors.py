"""
mnemos.core.errors — Exception taxonomy.

Every error raised by the engine derives from :class:`MnemosError` so
callers can catch the whole family in one clause.
"""

from __future__ import annotations

from typing import Optional


class MnemosError(Exception):
    """Base class for all mnemos errors."""


class ValidationError(MnemosError):
    """A record failed its kind-specific validation."""

    def __init__(self, message: str, record_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class NotFoundError(MnemosError, KeyError):
    """No record with the given id exists."""

    def __init__(self, record_id: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Memory not found: {record_id}")
        self.record_id = record_id

    def __str__(self) -> str:
        return str(self.args[0])


class MemoryImportError(MnemosError):
    """An import payload could not be parsed at all."""


class DeserializationError(MnemosError, ValueError):
    """A serialised record could not be turned back into a typed record."""


class UnknownStrategyError(MnemosError, KeyError):
    """A retrieval strategy name is not registered."""

    def __str__(self) -> str:
        return str(self.args[0])


class ConfigError(MnemosError, ValueError):
    """Configuration is missing or out of range."""


class ServiceDisposedError(MnemosError):
    """A mutating call was made on a disposed service."""
