"""Typed configuration for the translation pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from puretrans.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PURITY_FLOOR = 0.70
SUPPORTED_ENGINES = ("openai", "anthropic")


@dataclass
class PureTransConfig:
    """Complete configuration for the gateway and its collaborators."""

    # Purity
    purity_threshold: float = 0.90  # Never effectively below PURITY_FLOOR
    min_cleaning_confidence: float = 0.30  # Below this a primary output goes to fallback
    max_foreign_share: float = 0.40  # Above this share of removed foreign text, fallback
    max_clean_passes: int = 5

    # Engine
    engine: str = "openai"  # openai, anthropic
    model_name: Optional[str] = None
    api_key: Optional[str] = None
    engine_timeout: float = 30.0  # Seconds per engine call
    engine_retries: int = 1  # At most one retry, never after a timeout
    temperature: float = 0.2

    # Input limits
    max_text_length: int = 50_000

    # Cache
    cache_shards: int = 16
    cache_shard_capacity: int = 256
    cache_dir: Optional[Path] = None  # Enables diskcache write-through

    # Fallback
    fallback_min_confidence: float = 0.5

    # Concurrency
    max_concurrency: int = 8

    # Monitoring
    metrics_window: int = 1000
    spike_threshold: float = 0.5
    spike_min_samples: int = 10

    # Feedback loop
    feedback_interval: float = 300.0  # Seconds between background cycles
    systemic_min_reports: int = 2
    regression_capacity: int = 500

    # Terminology
    terminology_path: Optional[Path] = None  # Defaults to the bundled legal_ar_fr.json

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PureTransConfig:
        """Build a config from a (possibly nested) dictionary, e.g. parsed YAML."""
        flat: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            if isinstance(value, dict) and key != "extra":
                flat.update(value)
            else:
                flat[key] = value

        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in flat.items() if k in known}
        extra = {k: v for k, v in flat.items() if k not in known}
        if extra:
            kwargs.setdefault("extra", {}).update(extra)

        for path_key in ("cache_dir", "terminology_path"):
            if kwargs.get(path_key):
                kwargs[path_key] = Path(kwargs[path_key])

        config = cls(**kwargs)
        config.validate()
        return config

    def validate(self) -> PureTransConfig:
        """Check ranges, clamping the purity threshold and retry count."""
        if not 0.0 < self.purity_threshold <= 1.0:
            raise ConfigurationError(
                f"purity_threshold must be in (0, 1], got {self.purity_threshold}",
                config_key="purity_threshold",
                invalid_value=self.purity_threshold,
            )
        if self.purity_threshold < PURITY_FLOOR:
            logger.warning(
                "purity_threshold %.2f is below the %.2f floor; clamping",
                self.purity_threshold, PURITY_FLOOR,
            )
            self.purity_threshold = PURITY_FLOOR

        if self.engine_retries > 1:
            logger.warning("engine_retries %d capped at 1", self.engine_retries)
            self.engine_retries = 1
        if self.engine_retries < 0:
            self.engine_retries = 0

        if self.engine not in SUPPORTED_ENGINES:
            raise ConfigurationError(
                f"Unknown engine: {self.engine}",
                config_key="engine",
                invalid_value=self.engine,
                valid_values=list(SUPPORTED_ENGINES),
            )
        if self.engine_timeout <= 0:
            raise ConfigurationError(
                "engine_timeout must be positive",
                config_key="engine_timeout",
                invalid_value=self.engine_timeout,
            )
        if self.cache_shards < 1 or self.cache_shard_capacity < 1:
            raise ConfigurationError("cache_shards and cache_shard_capacity must be >= 1",
                                     config_key="cache_shards")
        if self.max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be >= 1",
                                     config_key="max_concurrency",
                                     invalid_value=self.max_concurrency)
        if not 0.0 <= self.min_cleaning_confidence <= 1.0:
            raise ConfigurationError("min_cleaning_confidence must be in [0, 1]",
                                     config_key="min_cleaning_confidence",
                                     invalid_value=self.min_cleaning_confidence)
        if not 0.0 < self.max_foreign_share <= 1.0:
            raise ConfigurationError("max_foreign_share must be in (0, 1]",
                                     config_key="max_foreign_share",
                                     invalid_value=self.max_foreign_share)
        return self
