"""Configuration loading and management."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from puretrans.core.config import PureTransConfig


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file (defaults to configs/default.yaml)

    Returns:
        Configuration dictionary, overridden by environment variables
    """
    load_dotenv()

    if config_path is None:
        possible_paths = [
            Path("configs/default.yaml"),
            Path(__file__).parent.parent.parent / "configs" / "default.yaml"
        ]
        for path in possible_paths:
            if path.exists():
                config_path = str(path)
                break
        else:
            return override_with_env(get_default_config())

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    return override_with_env(config)


def load_pipeline_config(config_path: Optional[str] = None) -> PureTransConfig:
    """Load and validate a typed PureTransConfig."""
    return PureTransConfig.from_dict(load_config(config_path))


def save_config(config: Dict[str, Any], config_path: str) -> None:
    """Save configuration to YAML file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


def override_with_env(config: Dict[str, Any]) -> Dict[str, Any]:
    """Override config with environment variables."""
    env_mappings = {
        "PURETRANS_PURITY_THRESHOLD": (["purity", "purity_threshold"], float),
        "PURETRANS_ENGINE_TIMEOUT": (["engine", "engine_timeout"], float),
        "PURETRANS_ENGINE": (["engine", "engine"], str),
        "PURETRANS_CACHE_DIR": (["cache", "cache_dir"], str),
        "PURETRANS_LOG_LEVEL": (["logging", "log_level"], str),
    }

    for env_var, (path, cast) in env_mappings.items():
        value = os.getenv(env_var)
        if value:
            _set_path(config, path, cast(value))

    # API keys only fill in when no key is configured explicitly
    engine_section = config.get("engine") if isinstance(config.get("engine"), dict) else {}
    engine_name = engine_section.get("engine", "openai")
    key_var = "ANTHROPIC_API_KEY" if engine_name == "anthropic" else "OPENAI_API_KEY"
    key = os.getenv(key_var)
    if key and not engine_section.get("api_key"):
        _set_path(config, ["engine", "api_key"], key)

    return config


def _set_path(config: Dict[str, Any], path, value) -> None:
    current = config
    for key in path[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[path[-1]] = value


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        "purity": {
            "purity_threshold": 0.90,
            "min_cleaning_confidence": 0.30,
            "max_foreign_share": 0.40,
            "max_clean_passes": 5,
        },
        "engine": {
            "engine": "openai",
            "model_name": None,
            "engine_timeout": 30.0,
            "engine_retries": 1,
            "temperature": 0.2,
        },
        "limits": {
            "max_text_length": 50000,
            "max_concurrency": 8,
        },
        "cache": {
            "cache_shards": 16,
            "cache_shard_capacity": 256,
            "cache_dir": None,
        },
        "fallback": {
            "fallback_min_confidence": 0.5,
        },
        "monitoring": {
            "metrics_window": 1000,
            "spike_threshold": 0.5,
            "spike_min_samples": 10,
        },
        "feedback": {
            "feedback_interval": 300.0,
            "systemic_min_reports": 2,
            "regression_capacity": 500,
        },
        "logging": {
            "log_level": "INFO",
            "log_file": None,
        },
    }
