"""
mnemos.core.logging — JSON log lines carrying memory context.

Engine log points attach the record they are about through ``extra``::

    log.warning("Skipping import entry %d: %s", i, exc, extra={"entry_index": i})
    log.debug("Buffer full; evicted %s", rid, extra={"record_id": rid})

:class:`StructuredFormatter` lifts those keys into top-level JSON fields
so a log shipper can filter on ``record_id`` without parsing messages.
Enable it with::

    from mnemos.core.logging import configure_logging

    configure_logging(structured=True, level="DEBUG")

or ``Config(structured_logging=True)``.  With ``structured=False`` only
the level is set and the host application's handlers stay in charge.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from mnemos.core.types import to_iso

# ``extra`` keys promoted to top-level fields when present on a record.
CONTEXT_FIELDS = (
    "record_id",
    "target_id",
    "kind",
    "entry_index",
    "task",
    "count",
)


def memory_context(record) -> Dict[str, Any]:
    """``extra`` mapping describing a :class:`MemoryRecord`."""
    return {"record_id": record.id, "kind": record.kind.value}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Always emits ``ts`` (UTC, ``Z`` suffix), ``level``, ``logger``,
    ``msg``, ``func`` and ``line``, plus any of :data:`CONTEXT_FIELDS`
    found on the record and ``exception`` when a traceback is attached.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": to_iso(datetime.fromtimestamp(record.created, tz=timezone.utc)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "func": record.funcName,
            "line": record.lineno,
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    structured: bool = False,
    level: str = "INFO",
    logger_name: str = "mnemos",
) -> logging.Logger:
    """Set the package logger's level, optionally switching it to JSON.

    Unknown level names fall back to INFO.  Returns the logger.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if structured:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        logger.handlers[:] = [handler]
        logger.propagate = False
    return logger
