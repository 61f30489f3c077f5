"""mnemos.core — Shared types, configuration, errors and logging."""

from mnemos.core.config import Config
from mnemos.core.errors import (
    ConfigError,
    DeserializationError,
    MemoryImportError,
    MnemosError,
    NotFoundError,
    ServiceDisposedError,
    UnknownStrategyError,
    ValidationError,
)
from mnemos.core.types import MemoryKind, Privacy, generate_id, now

__all__ = [
    "Config",
    "ConfigError",
    "DeserializationError",
    "MemoryImportError",
    "MemoryKind",
    "MnemosError",
    "NotFoundError",
    "Privacy",
    "ServiceDisposedError",
    "UnknownStrategyError",
    "ValidationError",
    "generate_id",
    "now",
]
