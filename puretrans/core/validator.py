"""
Purity validator.

Measures how much of a text is written in the target script and enforces the
acceptance rule every returned translation must meet:
1. target-script share >= effective threshold (never below the 0.70 floor)
2. at least one target-script letter
3. no CRITICAL finding on a fresh detector scan
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Tuple

from puretrans.core.config import PURITY_FLOOR
from puretrans.core.models import Language, PurityScore, Severity
from puretrans.core.scripts import LETTER_SCRIPTS, Script, classify_char
from puretrans.detection.detector import PatternDetector

logger = logging.getLogger(__name__)


def clamp_threshold(threshold: float) -> float:
    if threshold < PURITY_FLOOR:
        logger.warning("Purity threshold %.2f below floor, using %.2f", threshold, PURITY_FLOOR)
        return PURITY_FLOOR
    return min(threshold, 1.0)


def script_shares(text: str, target: Script) -> Tuple[int, int, int, int]:
    """Count (target+neutral, foreign letters, other, target letters) over visible characters."""
    target_count = foreign = other = target_letters = 0
    for ch in text:
        script = classify_char(ch)
        if script is Script.SPACE:
            continue
        if script is target:
            target_count += 1
            target_letters += 1
        elif script is Script.NEUTRAL:
            target_count += 1
        elif script in LETTER_SCRIPTS:
            foreign += 1
        else:
            other += 1
    return target_count, foreign, other, target_letters


class PurityValidator:
    """Score and accept or reject candidate texts."""

    def __init__(self, detector: PatternDetector, threshold: float = 0.90):
        self.detector = detector
        self._threshold = clamp_threshold(threshold)
        self._lock = threading.Lock()

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def fingerprint(self) -> Tuple[float, int]:
        """Identifies the acceptance rules a cached result was checked under."""
        return (self._threshold, self.detector.version)

    def update_threshold(self, threshold: float) -> float:
        with self._lock:
            self._threshold = clamp_threshold(threshold)
        logger.info("Purity threshold set to %.2f", self._threshold)
        return self._threshold

    def validate(
        self,
        text: str,
        target_language: Language,
        threshold: Optional[float] = None,
    ) -> PurityScore:
        """
        Compute the purity score of ``text`` for ``target_language``.

        Args:
            text: Candidate text
            target_language: Language the text must be written in
            threshold: Optional per-call threshold, clamped to the floor

        Returns:
            PurityScore whose ratios sum to 1.0 for any text with a visible character
        """
        effective = clamp_threshold(threshold) if threshold is not None else self._threshold
        target_count, foreign, other, target_letters = script_shares(text or "", target_language.script)
        visible = target_count + foreign + other

        if visible == 0:
            return PurityScore(
                target_script_ratio=0.0,
                foreign_script_ratio=0.0,
                other_ratio=0.0,
                passes=False,
                threshold=effective,
            )

        target_ratio = target_count / visible
        foreign_ratio = foreign / visible
        other_ratio = other / visible

        critical = sum(
            1 for finding in self.detector.detect(text, target_language)
            if finding.severity is Severity.CRITICAL
        )
        passes = target_ratio >= effective and target_letters > 0 and critical == 0

        return PurityScore(
            target_script_ratio=target_ratio,
            foreign_script_ratio=foreign_ratio,
            other_ratio=other_ratio,
            passes=passes,
            threshold=effective,
            critical_patterns=critical,
            target_letters=target_letters,
        )

    def recheck(self, text: str, target_language: Language) -> bool:
        """Stricter check for cached results: must pass and carry no findings at all."""
        if not self.validate(text, target_language).passes:
            return False
        return not self.detector.detect(text, target_language)
