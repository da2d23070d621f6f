"""
Translation gateway.

The single entry point for translation requests and the only caller of the
external engine. Every request follows a fixed state machine:

    RECEIVED -> CACHE_CHECK -> CACHE_HIT -> DONE
                            -> PRE_CLEAN -> PRIMARY_TRANSLATE -> VALIDATE -> PASS -> CACHE_WRITE -> DONE
                                                                          -> FAIL -> FALLBACK_GENERATE -> CACHE_WRITE -> DONE

Malformed input raises InvalidInputError before the engine is touched. Any
other failure degrades to fallback content, and the text about to be returned
is always validated one last time. Whatever passes that check is cached,
fallback content included; the cache and the caller never share an object.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from puretrans.cleaning.cleaner import ContentCleaner
from puretrans.cleaning.output_cleaner import clean_engine_output
from puretrans.core.config import PureTransConfig
from puretrans.core.exceptions import (
    EngineError,
    EngineTimeoutError,
    EngineUnavailableError,
    InvalidInputError,
    InvalidTransitionError,
    PurityFailure,
)
from puretrans.core.models import (
    Language,
    TranslationMethod,
    TranslationRequest,
    TranslationResult,
)
from puretrans.core.validator import PurityValidator
from puretrans.detection.detector import PatternDetector
from puretrans.engines.base import TranslationEngine
from puretrans.engines.prompts import PromptLibrary
from puretrans.fallback.generator import FallbackContentGenerator
from puretrans.feedback.regression import RegressionSuite
from puretrans.monitoring.metrics import QualityMonitor
from puretrans.terminology.reference import JsonReferenceDataset
from puretrans.terminology.store import TerminologyStore
from puretrans.utils.cache import TranslationCache, make_key

logger = logging.getLogger(__name__)

MIN_PRIMARY_QUALITY = 0.6


class TranslationState(Enum):
    RECEIVED = "RECEIVED"
    CACHE_CHECK = "CACHE_CHECK"
    CACHE_HIT = "CACHE_HIT"
    PRE_CLEAN = "PRE_CLEAN"
    PRIMARY_TRANSLATE = "PRIMARY_TRANSLATE"
    VALIDATE = "VALIDATE"
    PASS = "PASS"
    FAIL = "FAIL"
    CACHE_WRITE = "CACHE_WRITE"
    FALLBACK_GENERATE = "FALLBACK_GENERATE"
    DONE = "DONE"


S = TranslationState
TRANSITIONS = {
    S.RECEIVED: {S.CACHE_CHECK},
    S.CACHE_CHECK: {S.CACHE_HIT, S.PRE_CLEAN},
    S.CACHE_HIT: {S.DONE},
    S.PRE_CLEAN: {S.PRIMARY_TRANSLATE, S.FAIL},
    S.PRIMARY_TRANSLATE: {S.VALIDATE, S.FAIL},
    S.VALIDATE: {S.PASS, S.FAIL},
    S.PASS: {S.CACHE_WRITE},
    S.CACHE_WRITE: {S.DONE},
    S.FAIL: {S.FALLBACK_GENERATE},
    S.FALLBACK_GENERATE: {S.CACHE_WRITE},
    S.DONE: set(),
}


class RequestTrace:
    """Per-request state machine; illegal moves raise InvalidTransitionError."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.state = S.RECEIVED
        self.history: List[TranslationState] = [S.RECEIVED]

    def advance(self, new_state: TranslationState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidTransitionError("TranslationGateway", self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)

    def as_list(self) -> List[str]:
        return [state.value for state in self.history]


class TranslationGateway:
    """Orchestrates cache, cleaning, engine, validation and fallback."""

    def __init__(
        self,
        engine: TranslationEngine,
        detector: PatternDetector,
        cleaner: ContentCleaner,
        validator: PurityValidator,
        terminology: TerminologyStore,
        fallback: FallbackContentGenerator,
        cache: TranslationCache,
        monitor: Optional[QualityMonitor] = None,
        regression_suite: Optional[RegressionSuite] = None,
        config: Optional[PureTransConfig] = None,
        prompts: Optional[PromptLibrary] = None,
    ):
        self.engine = engine
        self.detector = detector
        self.cleaner = cleaner
        self.validator = validator
        self.terminology = terminology
        self.fallback = fallback
        self.cache = cache
        self.monitor = monitor
        self.regression_suite = regression_suite
        self.config = config or PureTransConfig()
        self.prompts = prompts or PromptLibrary()

    @classmethod
    def from_config(
        cls,
        config: PureTransConfig,
        engine: TranslationEngine,
        terminology: Optional[TerminologyStore] = None,
    ) -> TranslationGateway:
        """Build a gateway and all its collaborators from configuration."""
        detector = PatternDetector()
        validator = PurityValidator(detector, config.purity_threshold)
        cleaner = ContentCleaner(detector, max_passes=config.max_clean_passes)
        if terminology is None:
            terminology = TerminologyStore(JsonReferenceDataset(config.terminology_path))
        fallback = FallbackContentGenerator(
            validator, terminology, min_confidence=config.fallback_min_confidence
        )
        fallback.verify_templates()
        cache = TranslationCache(
            validator=validator,
            shards=config.cache_shards,
            shard_capacity=config.cache_shard_capacity,
            persist_dir=str(config.cache_dir) if config.cache_dir else None,
        )
        monitor = QualityMonitor(
            window=config.metrics_window,
            spike_threshold=config.spike_threshold,
            spike_min_samples=config.spike_min_samples,
        )
        regression_suite = RegressionSuite(validator, capacity=config.regression_capacity)
        return cls(
            engine=engine,
            detector=detector,
            cleaner=cleaner,
            validator=validator,
            terminology=terminology,
            fallback=fallback,
            cache=cache,
            monitor=monitor,
            regression_suite=regression_suite,
            config=config,
        )

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def validate_request(self, request: TranslationRequest) -> None:
        """Raise InvalidInputError for input the pipeline must not process."""
        if not isinstance(request.source_language, Language) or not isinstance(request.target_language, Language):
            raise InvalidInputError(
                "Unsupported language pair",
                field_name="language",
                valid_values=[lang.value for lang in Language],
            )
        if not request.source_text or not request.source_text.strip():
            raise InvalidInputError("Source text is empty", field_name="source_text")
        if request.source_language is request.target_language:
            raise InvalidInputError(
                f"Source and target language are both {request.source_language.value}",
                field_name="target_language",
                valid_values=[request.source_language.other.value],
            )
        if len(request.source_text) > self.config.max_text_length:
            raise InvalidInputError(
                f"Source text exceeds {self.config.max_text_length} characters",
                field_name="source_text",
            )

    async def translate(self, request: TranslationRequest) -> TranslationResult:
        """
        Translate one request.

        Returns:
            A result whose text passed purity validation

        Raises:
            InvalidInputError: for empty text, unsupported or identical languages,
                or oversized input
        """
        try:
            self.validate_request(request)
        except InvalidInputError:
            if self.monitor is not None:
                self.monitor.record_rejection("invalid_input")
            raise

        started = time.perf_counter()
        trace = RequestTrace(request.id)
        try:
            result, key = await self._run(request, trace)
        except asyncio.CancelledError:
            logger.info("Request %s cancelled in state %s", request.id, trace.state.value)
            raise

        result = self._final_check(result, request)
        if trace.state is not S.CACHE_HIT:
            trace.advance(S.CACHE_WRITE)
            self.cache.put(key, replace(result, request_id=None, trace=[]), request.target_language)
        trace.advance(S.DONE)
        result = replace(result, request_id=request.id, trace=trace.as_list())

        if self.monitor is not None:
            self.monitor.record(result, time.perf_counter() - started,
                                domain=request.domain_hint or result.intent)
        return result

    async def translate_text(
        self,
        text: str,
        source_language: Any,
        target_language: Any,
        domain_hint: Optional[str] = None,
    ) -> TranslationResult:
        """Convenience wrapper taking language codes."""
        request = TranslationRequest.create(text, source_language, target_language, domain_hint)
        return await self.translate(request)

    async def translate_many(self, requests: Sequence[TranslationRequest]) -> List[TranslationResult]:
        """Translate independent requests with at most ``max_concurrency`` in flight."""
        for request in requests:
            self.validate_request(request)
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def _bounded(request: TranslationRequest) -> TranslationResult:
            async with semaphore:
                return await self.translate(request)

        return list(await asyncio.gather(*[_bounded(r) for r in requests]))

    def update_threshold(self, threshold: float) -> float:
        """Change the purity threshold (clamped to the floor). Cached entries re-validate lazily."""
        effective = self.validator.update_threshold(threshold)
        self.config.purity_threshold = effective
        return effective

    def close(self) -> None:
        self.cache.close()

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #

    async def _run(self, request: TranslationRequest, trace: RequestTrace) -> Tuple[TranslationResult, str]:
        src, tgt = request.source_language, request.target_language

        trace.advance(S.CACHE_CHECK)
        key = make_key(request.source_text, src, tgt)
        cached = self.cache.get(key)
        if cached is not None:
            trace.advance(S.CACHE_HIT)
            logger.debug("Cache hit for request %s", request.id)
            return replace(cached, method=TranslationMethod.CACHE_HIT, request_id=None, trace=[]), key

        trace.advance(S.PRE_CLEAN)
        source_report = self.cleaner.clean(request.source_text, src)
        if self.monitor is not None:
            self.monitor.record_patterns(source_report.removed)
        if not source_report.cleaned_text:
            trace.advance(S.FAIL)
            return self._fallback(request, trace, "source empty after cleaning"), key

        trace.advance(S.PRIMARY_TRANSLATE)
        glossary = self.terminology.generate_prompt_section(source_report.cleaned_text, src, tgt)
        prompt = self.prompts.build_prompt(
            source_report.cleaned_text, src, tgt,
            glossary_section=glossary,
            domain_hint=request.domain_hint,
            temperature=self.config.temperature,
        )
        try:
            raw = await self._call_engine(prompt)
        except EngineError as e:
            logger.warning("Primary translation failed for %s: %s", request.id, e.message)
            trace.advance(S.FAIL)
            return self._fallback(request, trace, type(e).__name__), key

        trace.advance(S.VALIDATE)
        try:
            result = self._accept(raw, request)
        except PurityFailure as e:
            logger.info("Request %s rejected: %s", request.id, e.message)
            trace.advance(S.FAIL)
            return self._fallback(request, trace, "purity failure"), key

        trace.advance(S.PASS)
        if self.regression_suite is not None:
            self.regression_suite.add(result.text, tgt)
        return result, key

    async def _call_engine(self, prompt) -> str:
        """One engine call under the timeout, plus at most one retry when unavailable."""
        timeout = self.config.engine_timeout
        attempts = 1 + min(max(self.config.engine_retries, 0), 1)
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(self.engine.generate_or_translate(prompt), timeout)
            except asyncio.TimeoutError:
                raise EngineTimeoutError(self.engine.name, timeout) from None
            except EngineUnavailableError as e:
                if attempt >= attempts:
                    raise
                logger.info("Engine unavailable (%s), retrying once", e.message)
            except EngineError:
                raise
            except Exception as e:
                if attempt >= attempts:
                    raise EngineUnavailableError(self.engine.name, str(e), original_error=e) from e
                logger.info("Engine error (%s), retrying once", e)
        raise EngineUnavailableError(self.engine.name, "no attempts made")

    def _accept(self, raw: str, request: TranslationRequest) -> TranslationResult:
        """Post-process an engine answer; raise PurityFailure if it cannot be returned."""
        src, tgt = request.source_language, request.target_language
        text = clean_engine_output(raw)
        text = self.terminology.bulk_apply(text, src, tgt)
        report = self.cleaner.clean(text, tgt)
        if self.monitor is not None:
            self.monitor.record_patterns(report.removed)

        if not report.cleaned_text:
            raise PurityFailure("Nothing left after cleaning")
        if report.confidence < self.config.min_cleaning_confidence:
            raise PurityFailure(
                f"Cleaning confidence {report.confidence:.2f} below "
                f"{self.config.min_cleaning_confidence:.2f} ({len(report.removed)} removals)"
            )
        if report.foreign_share > self.config.max_foreign_share:
            raise PurityFailure(
                f"Cleaning removed {report.foreign_share:.0%} of the output as foreign-language "
                f"text (limit {self.config.max_foreign_share:.0%})"
            )

        purity = self.validator.validate(report.cleaned_text, tgt)
        if not purity.passes:
            raise PurityFailure(
                f"Target script ratio {purity.target_script_ratio:.3f}, "
                f"{purity.critical_patterns} critical patterns",
                target_ratio=purity.target_script_ratio,
                threshold=purity.threshold,
            )

        quality = min(1.0, max(MIN_PRIMARY_QUALITY, purity.target_script_ratio * report.confidence))
        return TranslationResult(
            text=report.cleaned_text,
            method=TranslationMethod.PRIMARY,
            purity=purity,
            quality_score=quality,
            intent=request.domain_hint,
        )

    def _fallback(self, request: TranslationRequest, trace: RequestTrace, reason: str) -> TranslationResult:
        trace.advance(S.FALLBACK_GENERATE)
        return self.fallback.generate(
            request.source_text,
            request.target_language,
            domain_hint=request.domain_hint,
            source_language=request.source_language,
            reason=reason,
        )

    def _final_check(self, result: TranslationResult, request: TranslationRequest) -> TranslationResult:
        purity = self.validator.validate(result.text, request.target_language)
        if purity.passes:
            return replace(result, purity=purity)
        logger.error(
            "Result for %s failed final validation (method=%s); returning emergency content",
            request.id, result.method.value,
        )
        return self.fallback.emergency(request.target_language, result.intent)

    def stats(self) -> Dict[str, Any]:
        return {
            "cache": self.cache.stats(),
            "cleaner": self.cleaner.stats(),
            "terminology": self.terminology.stats(),
            "detector_version": self.detector.version,
            "purity_threshold": self.validator.threshold,
        }
