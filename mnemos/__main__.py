"""
mnemos.__main__ — CLI entry point.

Every command loads a JSON export (as written by ``MemoryService.export``)
into a fresh in-memory service.

Usage:
    mnemos stats FILE
    mnemos mine FILE [--min-support N]
    mnemos search FILE QUERY [--limit N] [--min-similarity X]
    mnemos consolidate FILE [--out PATH]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mnemos",
        description="mnemos -- inspect and maintain agent memory exports",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--config", default=None, help="Path to mnemos.yaml config")

    sub = parser.add_subparsers(dest="command")

    # -- stats -------------------------------------------------------------
    stats_p = sub.add_parser("stats", help="Show statistics for an export")
    stats_p.add_argument("file", help="JSON export file")

    # -- mine --------------------------------------------------------------
    mine_p = sub.add_parser("mine", help="Mine recurring patterns")
    mine_p.add_argument("file", help="JSON export file")
    mine_p.add_argument(
        "--min-support", type=int, default=None, help="Occurrences needed per pattern"
    )

    # -- search ------------------------------------------------------------
    search_p = sub.add_parser("search", help="Semantic search over an export")
    search_p.add_argument("file", help="JSON export file")
    search_p.add_argument("query", help="Search text")
    search_p.add_argument("--limit", type=int, default=10, help="Max results")
    search_p.add_argument(
        "--min-similarity", type=float, default=0.3, help="Cosine similarity cutoff"
    )

    # -- consolidate -------------------------------------------------------
    cons_p = sub.add_parser("consolidate", help="Consolidate every record in an export")
    cons_p.add_argument("file", help="JSON export file")
    cons_p.add_argument("--out", default=None, help="Write the result here (default stdout)")

    args = parser.parse_args(argv)

    # -- Logging -----------------------------------------------------------
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    if args.command is None:
        parser.print_help()
        return 1

    # -- Dispatch ----------------------------------------------------------
    from mnemos.core.errors import MnemosError

    handlers = {
        "stats": _cmd_stats,
        "mine": _cmd_mine,
        "search": _cmd_search,
        "consolidate": _cmd_consolidate,
    }
    try:
        handlers[args.command](args)
    except (MnemosError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_service(args: argparse.Namespace, **overrides):
    """Build a service from ``--config`` and load ``args.file`` into it."""
    from mnemos.core.config import Config
    from mnemos.service import MemoryService

    config = Config.from_yaml(args.config) if args.config else Config()
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    # One-shot commands never run timers.
    config.auto_consolidate = False
    config.auto_decay = False

    service = MemoryService(config)
    data = Path(args.file).read_text(encoding="utf-8")
    loaded = service.import_(data)
    logging.getLogger("mnemos.cli").info("Loaded %d memories from %s", loaded, args.file)
    return service


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------


def _cmd_stats(args: argparse.Namespace) -> None:
    """Print service statistics for the export."""
    with _load_service(args) as service:
        print(json.dumps(service.stats(), indent=2, default=str))


def _cmd_mine(args: argparse.Namespace) -> None:
    """Mine the export and print the detected patterns."""
    with _load_service(args, min_support=args.min_support) as service:
        patterns = service.mine_patterns()
        print(json.dumps([p.to_dict() for p in patterns], indent=2))


def _cmd_search(args: argparse.Namespace) -> None:
    """Print the records most similar to the query text."""
    with _load_service(args) as service:
        hits = service.indexes.semantic.search(
            args.query, limit=args.limit, min_similarity=args.min_similarity
        )
        if not hits:
            print("No results found.")
            return
        results = []
        for record_id, similarity in hits:
            record = service.store.retrieve(record_id)
            if record is None:
                continue
            results.append(
                {
                    "id": record.id,
                    "kind": record.kind.value,
                    "similarity": round(similarity, 4),
                    "tags": record.metadata.tags,
                }
            )
        print(json.dumps(results, indent=2))


def _cmd_consolidate(args: argparse.Namespace) -> None:
    """Push every unconsolidated record through consolidation."""
    with _load_service(args) as service:
        consolidated = integrated = 0
        for record in service.store.get_all():
            if record.is_consolidated or not service.store.exists(record.id):
                continue
            service.buffer.add(record)
            service.consolidate_memory(record.id)
            if service.store.exists(record.id):
                consolidated += 1
            else:
                integrated += 1

        output = service.export()
        if args.out:
            Path(args.out).write_text(output, encoding="utf-8")
        else:
            print(output)
        print(
            f"Consolidated {consolidated}, integrated {integrated}",
            file=sys.stderr,
        )


if __name__ == "__main__":
    sys.exit(main())
