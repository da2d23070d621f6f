"""
PureTrans: purity-enforcing Arabic/French legal translation.

Every result returned by the gateway is written entirely in the target
script: engine output is cleaned of interface artifacts, foreign-script
words and stray fragments, then validated, and anything that cannot pass
is replaced by legal fallback content written in the target language.

Usage:
    from puretrans import TranslationGateway, PureTransConfig
    from puretrans.engines import create_engine

    config = PureTransConfig()
    gateway = TranslationGateway.from_config(config, create_engine("openai"))
    result = await gateway.translate_text("عقد البيع", "ar", "fr")
"""

__version__ = "1.0.0"
__license__ = "MIT"

from puretrans.core.config import PureTransConfig
from puretrans.core.exceptions import InvalidInputError, PureTransError
from puretrans.core.models import (
    Language,
    PurityScore,
    TranslationMethod,
    TranslationRequest,
    TranslationResult,
)
from puretrans.core.gateway import TranslationGateway
from puretrans.feedback.loop import FeedbackLoop

__all__ = [
    "__version__",
    "PureTransConfig",
    "PureTransError",
    "InvalidInputError",
    "Language",
    "PurityScore",
    "TranslationMethod",
    "TranslationRequest",
    "TranslationResult",
    "TranslationGateway",
    "FeedbackLoop",
]
