"""
MindSplit configuration.

Defaults can be overridden per instance or through environment variables:
    MINDSPLIT_SIMILARITY_THRESHOLD: Minimum cosine similarity for an edge (default: 0.3)
    MINDSPLIT_SEED: Seed for all randomness (default: 42)
    MINDSPLIT_CHUNK_METHOD: paragraph | bullet | sentence (default: paragraph)
    MINDSPLIT_ALGORITHM: stoer_wagner | karger (default: stoer_wagner)
    MINDSPLIT_KARGER_TRIALS: Independent contraction runs per Karger cut (default: 1)
"""

import os
import logging
from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, Mapping, Optional, Union

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

CHUNK_METHODS = ('paragraph', 'bullet', 'sentence')
ALGORITHMS = ('stoer_wagner', 'karger')

DEFAULT_SIMILARITY_THRESHOLD = 0.3
DEFAULT_SEED = 42
DEFAULT_CHUNK_METHOD = 'paragraph'
DEFAULT_ALGORITHM = 'stoer_wagner'
DEFAULT_KARGER_TRIALS = 1


@dataclass(frozen=True)
class SplitConfig:
    """
    Settings for a MindSplit instance.

    Args:
        similarity_threshold: Minimum cosine similarity to create an edge, in [0, 1]
        seed: Seed threaded into every random choice
        chunk_method: How input text is cut into chunks
        algorithm: Two-way cut used by the N-way partitioner
        karger_trials: Contraction runs per Karger cut; 1 is a single-pass heuristic
    """
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    seed: int = DEFAULT_SEED
    chunk_method: str = DEFAULT_CHUNK_METHOD
    algorithm: str = DEFAULT_ALGORITHM
    karger_trials: int = DEFAULT_KARGER_TRIALS

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Check every field.

        Raises:
            ValidationError: If a value is out of range or unknown
        """
        threshold = self.similarity_threshold
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ValidationError(f"similarity_threshold must be a number, got {threshold!r}")
        if not 0.0 <= threshold <= 1.0:
            raise ValidationError(f"similarity_threshold must be within [0, 1], got {threshold}")

        if isinstance(self.seed, bool) or not isinstance(self.seed, int) or self.seed < 0:
            raise ValidationError(f"seed must be a non-negative integer, got {self.seed!r}")

        if self.chunk_method not in CHUNK_METHODS:
            raise ValidationError(
                f"Unsupported chunk_method: {self.chunk_method}. "
                f"Choose one of {', '.join(CHUNK_METHODS)}"
            )

        if self.algorithm not in ALGORITHMS:
            raise ValidationError(
                f"Unsupported algorithm: {self.algorithm}. "
                f"Choose one of {', '.join(ALGORITHMS)}"
            )

        trials = self.karger_trials
        if isinstance(trials, bool) or not isinstance(trials, int) or trials < 1:
            raise ValidationError(f"karger_trials must be an integer >= 1, got {trials!r}")

    def with_overrides(self, **overrides: Any) -> 'SplitConfig':
        """Return a validated copy with some fields replaced."""
        unknown = set(overrides) - set(asdict(self))
        if unknown:
            raise ValidationError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SplitConfig':
        """
        Build a config from MINDSPLIT_* environment variables.

        Malformed numbers fall back to the default with a warning; values that
        parse but are out of range still raise ValidationError.
        """
        env = os.environ if environ is None else environ

        return cls(
            similarity_threshold=_env_number(
                env, 'MINDSPLIT_SIMILARITY_THRESHOLD', float, DEFAULT_SIMILARITY_THRESHOLD
            ),
            seed=_env_number(env, 'MINDSPLIT_SEED', int, DEFAULT_SEED),
            chunk_method=env.get('MINDSPLIT_CHUNK_METHOD', DEFAULT_CHUNK_METHOD).strip().lower(),
            algorithm=env.get('MINDSPLIT_ALGORITHM', DEFAULT_ALGORITHM).strip().lower(),
            karger_trials=_env_number(env, 'MINDSPLIT_KARGER_TRIALS', int, DEFAULT_KARGER_TRIALS),
        )


def _env_number(env: Mapping[str, str], name: str, cast, default):
    raw = env.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using default {default}")
        return default


def resolve_config(config: Union['SplitConfig', Mapping[str, Any], None]) -> SplitConfig:
    """
    Normalise the config argument accepted by MindSplit.

    Args:
        config: A SplitConfig, a mapping of field overrides, or None for defaults

    Returns:
        Validated SplitConfig
    """
    if config is None:
        return SplitConfig()
    if isinstance(config, SplitConfig):
        return config
    if isinstance(config, Mapping):
        return SplitConfig().with_overrides(**dict(config))
    raise ValidationError(f"Unsupported config type: {type(config).__name__}")
