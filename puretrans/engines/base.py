"""
Base translation engine interface.
All external engines must inherit from TranslationEngine.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from puretrans.core.models import Language


@dataclass
class EnginePrompt:
    """Prompt sent to an engine: instructions in ``system``, the text in ``user``."""
    system: str
    user: str
    source_language: Language
    target_language: Language
    temperature: float = 0.2
    max_tokens: int = 4096


class TranslationEngine(ABC):
    """Abstract base class for external translation/generation engines."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key
        self.model = model
        self.name = self.__class__.__name__

    @abstractmethod
    async def generate_or_translate(self, prompt: EnginePrompt) -> str:
        """
        Return the engine's raw text for ``prompt``.

        Raises:
            EngineUnavailableError: when the engine cannot be reached or rejects the call
        """
        pass

    def is_available(self) -> bool:
        """Check if engine is configured."""
        return self.api_key is not None

    def get_info(self) -> Dict:
        return {
            "name": self.name,
            "model": self.model,
            "available": self.is_available()
        }
