"""OpenAI translation engine."""

import logging
import os
from typing import Optional

import openai
from openai import AsyncOpenAI

from puretrans.core.exceptions import EngineUnavailableError
from puretrans.engines.base import EnginePrompt, TranslationEngine

logger = logging.getLogger(__name__)


class OpenAIEngine(TranslationEngine):
    """OpenAI chat-completions engine."""

    MODELS = {
        "gpt-4o": {"max_tokens": 128000},
        "gpt-4o-mini": {"max_tokens": 128000},
        "gpt-4-turbo": {"max_tokens": 128000},
    }

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, base_url: Optional[str] = None):
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        super().__init__(api_key, model or "gpt-4o")
        self.async_client = None
        if self.api_key:
            client_kwargs = {"api_key": self.api_key}
            base_url = base_url or os.getenv("OPENAI_BASE_URL")
            if base_url:
                client_kwargs["base_url"] = base_url
            # Retries are owned by the gateway
            self.async_client = AsyncOpenAI(max_retries=0, **client_kwargs)

    def is_available(self) -> bool:
        return self.async_client is not None

    async def generate_or_translate(self, prompt: EnginePrompt) -> str:
        if not self.async_client:
            raise EngineUnavailableError("openai", "API key not configured")

        messages = [
            {"role": "system", "content": prompt.system},
            {"role": "user", "content": prompt.user},
        ]
        try:
            response = await self.async_client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=prompt.temperature,
                max_tokens=prompt.max_tokens,
            )
        except openai.OpenAIError as e:
            raise EngineUnavailableError("openai", str(e), original_error=e) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise EngineUnavailableError("openai", "empty response")
        logger.debug("OpenAI returned %d characters (finish=%s)",
                     len(content), response.choices[0].finish_reason)
        return content.strip()
