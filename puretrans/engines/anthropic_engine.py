"""Anthropic Claude translation engine."""

import logging
import os
from typing import Optional

import anthropic
from anthropic import AsyncAnthropic

from puretrans.core.exceptions import EngineUnavailableError
from puretrans.engines.base import EnginePrompt, TranslationEngine

logger = logging.getLogger(__name__)


class AnthropicEngine(TranslationEngine):
    """Anthropic messages-API engine. All instructions go in the system prompt."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, base_url: Optional[str] = None):
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        base_url = base_url or os.getenv("ANTHROPIC_API_BASE_URL")
        super().__init__(api_key, model or "claude-3-5-sonnet-20241022")
        self.async_client = None

        if self.api_key:
            client_kwargs = {"api_key": self.api_key}
            if base_url:
                # The SDK appends /v1 itself
                if base_url.endswith("/v1/"):
                    base_url = base_url[:-4]
                elif base_url.endswith("/v1"):
                    base_url = base_url[:-3]
                client_kwargs["base_url"] = base_url
                logger.info("Using custom Anthropic API endpoint: %s", base_url)
            self.async_client = AsyncAnthropic(max_retries=0, **client_kwargs)

    def is_available(self) -> bool:
        return self.async_client is not None

    async def generate_or_translate(self, prompt: EnginePrompt) -> str:
        if not self.async_client:
            raise EngineUnavailableError("anthropic", "API key not configured")

        try:
            response = await self.async_client.messages.create(
                model=self.model,
                max_tokens=prompt.max_tokens,
                temperature=prompt.temperature,
                system=prompt.system,
                messages=[{"role": "user", "content": prompt.user}],
            )
        except anthropic.AnthropicError as e:
            raise EngineUnavailableError("anthropic", str(e), original_error=e) from e

        parts = [block.text for block in response.content if getattr(block, "type", "") == "text"]
        text = "".join(parts).strip()
        if not text:
            raise EngineUnavailableError("anthropic", "empty response")
        logger.debug("Anthropic returned %d characters (stop=%s)", len(text), response.stop_reason)
        return text
