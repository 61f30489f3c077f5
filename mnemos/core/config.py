"""
mnemos.core.config — Configuration for the memory engine.

Supports loading from YAML and programmatic construction.  Optional
dependencies (PyYAML, sentence-transformers) are imported only when
the feature that needs them is used.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple, Union

from mnemos.core.errors import ConfigError

if TYPE_CHECKING:
    from mnemos.indexing.semantic import EmbeddingFunc


@dataclass
class Config:
    """
    Central configuration object.

    Construct directly or via ``Config.from_yaml(path)``.  Intervals and
    windows are in seconds.
    """

    # -- service timers -----------------------------------------------------
    auto_consolidate: bool = False
    consolidation_interval_s: float = 300.0
    auto_decay: bool = False
    decay_interval_s: float = 3600.0
    decay_rate: float = 0.01
    prune_threshold: float = 0.1

    # -- short-term buffer --------------------------------------------------
    buffer_capacity: int = 50
    buffer_window_s: float = 3600.0
    auto_consolidate_threshold: float = 0.8

    # -- associations -------------------------------------------------------
    min_similarity_threshold: float = 0.3
    auto_form_associations: bool = True
    max_associations_per_memory: int = 20
    temporal_proximity_window_s: float = 3600.0
    strong_association_threshold: float = 0.7

    # -- pattern mining -----------------------------------------------------
    min_support: int = 3
    min_confidence: float = 0.6
    max_pattern_size: int = 5
    temporal_window_s: float = 86400.0

    # -- attention ----------------------------------------------------------
    recency_weight: float = 0.25
    frequency_weight: float = 0.2
    connectivity_weight: float = 0.2
    emotional_weight: float = 0.15
    interaction_weight: float = 0.2
    enable_self_attention: bool = True
    attention_blend: float = 0.3

    # -- embeddings ---------------------------------------------------------
    # When empty the semantic index uses its hashed bag-of-words vectors.
    # Set to a sentence-transformers model name to embed with it instead.
    # Requires: pip install mnemos[embeddings]
    embedding_model: str = ""
    embedding_dimensions: int = 100
    embedding_func: Optional[Callable[[str], Any]] = field(default=None, repr=False)

    # -- encryption at rest -------------------------------------------------
    encryption_enabled: bool = False
    encrypt_levels: Tuple[str, ...] = ("sensitive", "confidential")

    # -- logging ------------------------------------------------------------
    structured_logging: bool = False
    log_level: str = "INFO"

    # -----------------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------------

    def validate(self) -> "Config":
        """Raise ConfigError on out-of-range values; return self."""
        for name in (
            "consolidation_interval_s",
            "decay_interval_s",
            "buffer_window_s",
            "temporal_proximity_window_s",
            "temporal_window_s",
        ):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        for name in (
            "decay_rate",
            "prune_threshold",
            "auto_consolidate_threshold",
            "min_similarity_threshold",
            "strong_association_threshold",
            "min_confidence",
            "attention_blend",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1], got {value}")
        if self.buffer_capacity <= 0:
            raise ConfigError("buffer_capacity must be positive")
        if self.min_support < 1:
            raise ConfigError("min_support must be at least 1")
        if self.embedding_dimensions <= 0:
            raise ConfigError("embedding_dimensions must be positive")
        weights = (
            self.recency_weight,
            self.frequency_weight,
            self.connectivity_weight,
            self.emotional_weight,
            self.interaction_weight,
        )
        if any(w < 0 for w in weights):
            raise ConfigError("attention weights must be non-negative")
        return self

    # -----------------------------------------------------------------------
    # Embeddings
    # -----------------------------------------------------------------------

    def get_embedding_func(self) -> Optional["EmbeddingFunc"]:
        """Return the embedding function to inject into the semantic index.

        Priority: an explicit ``embedding_func``, then a lazily loaded
        sentence-transformers model when ``embedding_model`` is set,
        else None (hashed bag-of-words fallback).
        """
        if self.embedding_func is not None:
            return self.embedding_func
        if not self.embedding_model:
            return None
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as exc:
            raise ConfigError(
                "embedding_model requires sentence-transformers. "
                "Install with: pip install mnemos[embeddings]"
            ) from exc

        model = SentenceTransformer(self.embedding_model)

        def _embed(text: str):
            return model.encode(text, normalize_embeddings=True)

        return _embed

    # -----------------------------------------------------------------------
    # Factories
    # -----------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "Config":
        """Load config from a YAML file.

        The file may hold the settings at top level or under a
        ``mnemos:`` key.  Unknown keys are ignored.
        """
        import yaml  # lazy: only needed when loading config files

        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        if not isinstance(raw, dict):
            raise ConfigError(f"Config file must contain a mapping: {path}")

        section = raw.get("mnemos", raw)
        if not isinstance(section, dict):
            raise ConfigError("'mnemos' section must be a mapping")

        known = {f.name for f in fields(cls)} - {"embedding_func"}
        kwargs: Dict[str, Any] = {k: v for k, v in section.items() if k in known}
        if "encrypt_levels" in kwargs:
            kwargs["encrypt_levels"] = tuple(kwargs["encrypt_levels"])

        return cls(**kwargs).validate()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.pop("embedding_func", None)
        d["encrypt_levels"] = list(self.encrypt_levels)
        return d
