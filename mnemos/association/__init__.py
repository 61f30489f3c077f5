"""mnemos.association — Weighted association graph and the engine that grows it."""

from mnemos.association.engine import AssociationEngine
from mnemos.association.graph import Association, AssociationGraph, AssociationType

__all__ = [
    "Association",
    "AssociationEngine",
    "AssociationGraph",
    "AssociationType",
]
