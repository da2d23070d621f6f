"""
Regression suite for rule changes.

Holds texts the pipeline has accepted, each with the verdict it received when
it was added. A candidate rule set regresses if any sample that was clean now
produces a finding, or any sample that passed now carries a CRITICAL finding.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional

from puretrans.core.models import Language, Severity
from puretrans.core.validator import PurityValidator
from puretrans.detection.rules import RuleSet

logger = logging.getLogger(__name__)

SEED_SAMPLES = (
    ("Le tribunal a rendu son jugement en audience publique.", Language.FRENCH),
    ("Le contrat de vente est parfait dès l’échange des consentements.", Language.FRENCH),
    ("Toute personne a droit à un procès équitable devant une juridiction indépendante.", Language.FRENCH),
    ("Le juge peut ordonner une expertise aux frais avancés du demandeur.", Language.FRENCH),
    ("La société par actions est administrée par un conseil d’administration.", Language.FRENCH),
    ("Le délai d’appel est d’un mois à compter de la signification du jugement.", Language.FRENCH),
    ("أصدرت المحكمة حكمها في جلسة علنية.", Language.ARABIC),
    ("ينعقد عقد البيع بمجرد تبادل الرضا بين الطرفين.", Language.ARABIC),
    ("لكل شخص الحق في محاكمة عادلة أمام جهة قضائية مستقلة.", Language.ARABIC),
    ("يجوز للقاضي أن يأمر بإجراء خبرة على نفقة المدعي.", Language.ARABIC),
    ("أجل الاستئناف شهر واحد من تاريخ التبليغ الرسمي للحكم.", Language.ARABIC),
)


@dataclass(frozen=True)
class RegressionSample:
    text: str
    language: Language
    clean: bool  # No findings when added
    passed: bool  # Passed validation when added


class RegressionSuite:
    """Bounded collection of accepted samples used to dry-run enhancements."""

    def __init__(self, validator: PurityValidator, capacity: int = 500, seed: bool = True):
        self.validator = validator
        self._lock = threading.Lock()
        self._seeds: List[RegressionSample] = []
        self._accepted: Deque[RegressionSample] = deque(maxlen=capacity)
        if seed:
            for text, language in SEED_SAMPLES:
                sample = self._baseline(text, language)
                if sample.clean and sample.passed:
                    self._seeds.append(sample)
                else:
                    logger.warning("Seed regression sample is not clean: %r", text)

    def _baseline(self, text: str, language: Language) -> RegressionSample:
        return RegressionSample(
            text=text,
            language=language,
            clean=not self.validator.detector.detect(text, language),
            passed=self.validator.validate(text, language).passes,
        )

    def add(self, text: str, language: Language) -> Optional[RegressionSample]:
        """Record an accepted output. Texts already present are skipped."""
        with self._lock:
            if any(s.text == text and s.language is language for s in self._accepted):
                return None
        sample = self._baseline(text, language)
        with self._lock:
            self._accepted.append(sample)
        return sample

    def discard(self, text: str) -> int:
        """Drop accepted samples with this text (seeds are kept). Returns the number removed."""
        with self._lock:
            kept = [s for s in self._accepted if s.text != text]
            removed = len(self._accepted) - len(kept)
            self._accepted.clear()
            self._accepted.extend(kept)
        return removed

    def samples(self) -> List[RegressionSample]:
        with self._lock:
            return self._seeds + list(self._accepted)

    def __len__(self) -> int:
        with self._lock:
            return len(self._seeds) + len(self._accepted)

    def dry_run(self, candidate: RuleSet, exclude: Iterable[str] = ()) -> List[str]:
        """
        Evaluate ``candidate`` against every sample.

        Args:
            candidate: Rule snapshot to evaluate
            exclude: Texts to skip, typically the reported outputs being fixed

        Returns:
            Descriptions of the samples that regress; empty when the change is safe
        """
        detector = self.validator.detector
        failures = []
        skipped = set(exclude)
        for sample in self.samples():
            if sample.text in skipped:
                continue
            findings = detector.detect(sample.text, sample.language, rules=candidate)
            if sample.clean and findings:
                failures.append(
                    f"[{sample.language.value}] now flags {[f.pattern for f in findings]} in {sample.text[:60]!r}"
                )
            elif sample.passed and any(f.severity is Severity.CRITICAL for f in findings):
                failures.append(f"[{sample.language.value}] would now fail: {sample.text[:60]!r}")
        return failures
