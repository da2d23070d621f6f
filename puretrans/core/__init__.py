"""Core models, configuration, validation and the translation gateway."""

from puretrans.core.models import (
    Language,
    PatternKind,
    Severity,
    TranslationMethod,
    TranslationRequest,
    TranslationResult,
    ProblematicPattern,
    CleaningReport,
    PurityScore,
)
from puretrans.core.exceptions import (
    PureTransError,
    InvalidInputError,
    EngineTimeoutError,
    EngineUnavailableError,
    PurityFailure,
    ConfigurationError,
)
from puretrans.core.config import PureTransConfig

__all__ = [
    'Language',
    'PatternKind',
    'Severity',
    'TranslationMethod',
    'TranslationRequest',
    'TranslationResult',
    'ProblematicPattern',
    'CleaningReport',
    'PurityScore',
    'PureTransError',
    'InvalidInputError',
    'EngineTimeoutError',
    'EngineUnavailableError',
    'PurityFailure',
    'ConfigurationError',
    'PureTransConfig',
]
