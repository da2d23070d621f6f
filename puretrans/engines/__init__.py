"""External translation engines."""

from typing import Optional

from puretrans.core.exceptions import ConfigurationError
from puretrans.engines.base import EnginePrompt, TranslationEngine
from puretrans.engines.openai_engine import OpenAIEngine
from puretrans.engines.anthropic_engine import AnthropicEngine
from puretrans.engines.prompts import PromptLibrary, PromptTemplate

ENGINES = {
    "openai": OpenAIEngine,
    "anthropic": AnthropicEngine,
}


def create_engine(name: str, api_key: Optional[str] = None, model: Optional[str] = None) -> TranslationEngine:
    """Instantiate an engine by name."""
    try:
        engine_cls = ENGINES[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown engine: {name}",
            config_key="engine",
            invalid_value=name,
            valid_values=list(ENGINES),
        ) from None
    return engine_cls(api_key=api_key, model=model)


__all__ = [
    'EnginePrompt',
    'TranslationEngine',
    'OpenAIEngine',
    'AnthropicEngine',
    'PromptLibrary',
    'PromptTemplate',
    'create_engine',
]
