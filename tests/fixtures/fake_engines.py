"""Fake translation engines for pipeline tests."""

import asyncio

from puretrans.core.exceptions import EngineUnavailableError
from puretrans.engines.base import EnginePrompt, TranslationEngine


class FakeEngine(TranslationEngine):
    """Engine returning a fixed reply, or ``reply(prompt)`` when reply is callable."""

    def __init__(self, reply="Le contrat de vente est valable.", delay: float = 0.0):
        super().__init__(api_key="test-key", model="fake")
        self.reply = reply
        self.delay = delay
        self.calls = 0
        self.prompts = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.cancelled = False

    async def generate_or_translate(self, prompt: EnginePrompt) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return self.reply(prompt) if callable(self.reply) else self.reply
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        finally:
            self.in_flight -= 1


class FlakyEngine(FakeEngine):
    """Fails ``failures`` times before answering."""

    def __init__(self, failures: int = 1, error: Exception = None, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures
        self.error = error

    async def generate_or_translate(self, prompt: EnginePrompt) -> str:
        if self.failures > 0:
            self.failures -= 1
            self.calls += 1
            raise self.error or EngineUnavailableError("fake", "service unavailable")
        return await super().generate_or_translate(prompt)


class BrokenEngine(FlakyEngine):
    def __init__(self, **kwargs):
        super().__init__(failures=10 ** 6, **kwargs)

