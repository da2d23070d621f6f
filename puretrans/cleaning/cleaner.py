"""
Content cleaner.

Removes every span the detector reports, replacing it with a single space so
that words on either side never fuse, then normalizes whitespace. Cleaning
repeats until the detector reports nothing, which makes it idempotent.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Dict, List, Optional, Sequence, Tuple

from puretrans.core.models import CleaningReport, Language, PatternKind, ProblematicPattern, Severity
from puretrans.detection.detector import PatternDetector

logger = logging.getLogger(__name__)

SEVERITY_WEIGHTS: Dict[Severity, float] = {
    Severity.LOW: 0.02,
    Severity.MEDIUM: 0.05,
    Severity.HIGH: 0.10,
    Severity.CRITICAL: 0.20,
}

_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")

# Kinds whose removal means the engine wrote in the wrong language
FOREIGN_KINDS = frozenset({
    PatternKind.FOREIGN_SCRIPT,
    PatternKind.FOREIGN_FRAGMENT,
    PatternKind.MIXED_SCRIPT_TOKEN,
})


def normalize_whitespace(text: str) -> str:
    """Collapse horizontal whitespace, trim line edges, cap blank lines at one."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_WS.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


def merge_spans(findings: Sequence[ProblematicPattern]) -> List[Tuple[int, int]]:
    spans = sorted((f.position, f.end) for f in findings)
    merged: List[Tuple[int, int]] = []
    for start, end in spans:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def blank_spans(text: str, findings: Sequence[ProblematicPattern]) -> str:
    """Replace each (merged) finding span with one space."""
    pieces = []
    cursor = 0
    for start, end in merge_spans(findings):
        pieces.append(text[cursor:start])
        pieces.append(" ")
        cursor = end
    pieces.append(text[cursor:])
    return "".join(pieces)


def visible_length(text: str) -> int:
    return sum(1 for ch in text if not ch.isspace())


def foreign_removed_length(text: str, findings: Sequence[ProblematicPattern]) -> int:
    """Visible characters covered by foreign-language findings in ``text``."""
    foreign = [f for f in findings if f.kind in FOREIGN_KINDS]
    return sum(visible_length(text[start:end]) for start, end in merge_spans(foreign))


def cleaning_confidence(removed: Sequence[ProblematicPattern]) -> float:
    penalty = sum(SEVERITY_WEIGHTS[f.severity] for f in removed)
    return max(0.0, 1.0 - penalty)


class ContentCleaner:
    """Strip detector findings from text."""

    def __init__(self, detector: PatternDetector, max_passes: int = 5):
        self.detector = detector
        self.max_passes = max(1, max_passes)
        self._stats_lock = threading.Lock()
        self._stats = {"total_cleaned": 0, "texts_modified": 0, "patterns_removed": 0}
        self._by_kind: Dict[str, int] = {kind.value: 0 for kind in PatternKind}

    def clean(self, text: str, language: Optional[Language] = None) -> CleaningReport:
        """
        Clean ``text`` for ``language``.

        Args:
            text: Text to clean
            language: Language whose script is allowed; None allows both

        Returns:
            CleaningReport with the cleaned text, every removed finding and a
            confidence in [0, 1] (exactly 1.0 when nothing was removed)
        """
        text = text or ""
        current = text
        removed: List[ProblematicPattern] = []
        foreign_removed = 0
        passes = 0

        while passes < self.max_passes:
            findings = self.detector.detect(current, language)
            if not findings:
                break
            passes += 1
            removed.extend(findings)
            foreign_removed += foreign_removed_length(current, findings)
            current = normalize_whitespace(blank_spans(current, findings))
        else:
            leftover = self.detector.detect(current, language)
            if leftover:
                logger.warning(
                    "Cleaning stopped after %d passes with %d findings left",
                    self.max_passes, len(leftover),
                )

        current = normalize_whitespace(current)
        report = CleaningReport(
            cleaned_text=current,
            removed=removed,
            original_length=len(text),
            cleaned_length=len(current),
            confidence=cleaning_confidence(removed),
            passes=passes,
            foreign_removed=foreign_removed,
            original_visible=visible_length(text),
        )
        self._record(report)
        if removed:
            logger.debug(
                "Removed %d patterns (%s), confidence %.2f",
                len(removed),
                ", ".join(sorted({f.kind.value for f in removed})),
                report.confidence,
            )
        return report

    def _record(self, report: CleaningReport) -> None:
        with self._stats_lock:
            self._stats["total_cleaned"] += 1
            if report.removed:
                self._stats["texts_modified"] += 1
                self._stats["patterns_removed"] += len(report.removed)
                for finding in report.removed:
                    self._by_kind[finding.kind.value] += 1

    def stats(self) -> Dict[str, object]:
        with self._stats_lock:
            return {**self._stats, "removed_by_kind": dict(self._by_kind)}
