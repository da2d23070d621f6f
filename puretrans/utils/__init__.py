"""Utility functions and helpers."""

from .logger import setup_logger, get_logger
from .cache import TranslationCache
from .config_loader import load_config, save_config, load_pipeline_config

__all__ = [
    'setup_logger',
    'get_logger',
    'TranslationCache',
    'load_config',
    'save_config',
    'load_pipeline_config'
]
