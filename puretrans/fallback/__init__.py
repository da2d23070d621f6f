"""Intent classification and target-language fallback content."""

from puretrans.fallback.intents import IntentClassifier, IntentMatch
from puretrans.fallback.generator import FallbackContentGenerator

__all__ = ['IntentClassifier', 'IntentMatch', 'FallbackContentGenerator']
