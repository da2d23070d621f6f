"""
Pattern detector.

Finds contamination in a piece of text: leaked interface tokens, letters of a
disallowed script, function words of the wrong language, tokens that glue two
scripts together and mis-decoded byte sequences. Detection is a pure function
of (text, language, rule snapshot); the rule snapshot is swapped atomically
when the feedback loop deploys a new rule.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Dict, List, Optional, Sequence, Tuple

from puretrans.core.models import Language, PatternKind, ProblematicPattern, Severity
from puretrans.core.scripts import (
    LETTER_SCRIPTS,
    SUPPORTED_SCRIPTS,
    Script,
    classify_char,
    iter_runs,
)
from puretrans.detection.rules import FUNCTION_WORDS, Rule, RuleSet, default_rules

logger = logging.getLogger(__name__)

# Tie-break order for same-span findings of equal severity
KIND_PRIORITY: Dict[PatternKind, int] = {
    PatternKind.UI_ARTIFACT: 0,
    PatternKind.MIXED_SCRIPT_TOKEN: 1,
    PatternKind.FOREIGN_FRAGMENT: 2,
    PatternKind.FOREIGN_SCRIPT: 3,
    PatternKind.ENCODING_CORRUPTION: 4,
}

_TOKEN_RE = re.compile(r"\S+")


class PatternDetector:
    """Detect problematic patterns against the current rule snapshot."""

    def __init__(self, rules: Optional[RuleSet] = None):
        self._rules = rules if rules is not None else default_rules()
        self._write_lock = threading.Lock()

    @property
    def version(self) -> int:
        return self._rules.version

    def snapshot(self) -> RuleSet:
        """Current immutable rule snapshot. Reading it never blocks."""
        return self._rules

    # ------------------------------------------------------------------ #
    # Rule maintenance
    # ------------------------------------------------------------------ #

    def publish(self, candidate: RuleSet, expected_version: int) -> bool:
        """Swap in ``candidate`` if the live version is still ``expected_version``."""
        with self._write_lock:
            if self._rules.version != expected_version:
                logger.warning(
                    "Rule publish rejected: expected v%d, live v%d",
                    expected_version, self._rules.version,
                )
                return False
            self._rules = candidate
        logger.info("Published detector rules v%d (%d rules)", candidate.version, len(candidate))
        return True

    def add_rule(self, rule: Rule) -> RuleSet:
        with self._write_lock:
            self._rules = self._rules.with_rule(rule)
            current = self._rules
        logger.info("Added rule %s (%r), rules now v%d", rule.rule_id, rule.pattern, current.version)
        return current

    def retire_rule(self, rule_id: str) -> RuleSet:
        with self._write_lock:
            self._rules = self._rules.without_rule(rule_id)
            current = self._rules
        logger.info("Retired rule %s, rules now v%d", rule_id, current.version)
        return current

    def denylist(self, family: PatternKind = PatternKind.UI_ARTIFACT) -> List[str]:
        return [rule.pattern for rule in self._rules.by_family(family)]

    # ------------------------------------------------------------------ #
    # Detection
    # ------------------------------------------------------------------ #

    def detect(
        self,
        text: str,
        language: Optional[Language] = None,
        rules: Optional[RuleSet] = None,
    ) -> List[ProblematicPattern]:
        """
        Return every finding in ``text``.

        Args:
            text: Text to scan
            language: Expected language; None allows both supported scripts
            rules: Rule snapshot to use instead of the live one

        Returns:
            Findings sorted by (position, -length, kind)
        """
        if not text:
            return []
        snapshot = rules if rules is not None else self._rules

        findings: List[ProblematicPattern] = []
        findings.extend(self._scan_rules(text, language, snapshot))
        findings.extend(self._scan_scripts(text, language))
        if language is None:
            findings.extend(self._scan_fused_tokens(text))
        findings.extend(self._scan_control_chars(text))
        return self._resolve(findings)

    def has_critical(self, text: str, language: Optional[Language] = None) -> bool:
        return any(f.severity is Severity.CRITICAL for f in self.detect(text, language))

    def _scan_rules(
        self, text: str, language: Optional[Language], snapshot: RuleSet
    ) -> List[ProblematicPattern]:
        findings = []
        for rule, regex in snapshot.compiled:
            if not rule.applies_to(language):
                continue
            for match in regex.finditer(text):
                if match.end() == match.start():
                    continue
                findings.append(ProblematicPattern(
                    pattern=match.group(0),
                    kind=rule.family,
                    position=match.start(),
                    length=match.end() - match.start(),
                    severity=rule.severity,
                    rule_id=rule.rule_id,
                ))
        return findings

    def _scan_scripts(self, text: str, language: Optional[Language]) -> List[ProblematicPattern]:
        allowed = {language.script} if language else set(SUPPORTED_SCRIPTS)
        findings = []
        for start, end, script in self._foreign_segments(text, allowed):
            segment = text[start:end]
            before = classify_char(text[start - 1]) if start > 0 else None
            after = classify_char(text[end]) if end < len(text) else None

            if before in allowed or after in allowed:
                kind, severity, rule_id = PatternKind.MIXED_SCRIPT_TOKEN, Severity.CRITICAL, "script:mixed-token"
            elif language is not None and self._is_embedded_function_word(text, start, end, segment, language):
                kind, severity, rule_id = PatternKind.FOREIGN_FRAGMENT, Severity.MEDIUM, "script:function-word"
            else:
                kind = PatternKind.FOREIGN_SCRIPT
                if script in SUPPORTED_SCRIPTS:
                    severity, rule_id = Severity.HIGH, "script:other-supported"
                else:
                    severity, rule_id = Severity.CRITICAL, "script:unsupported"

            findings.append(ProblematicPattern(
                pattern=segment,
                kind=kind,
                position=start,
                length=end - start,
                severity=severity,
                rule_id=rule_id,
            ))
        return findings

    @staticmethod
    def _foreign_segments(text: str, allowed) -> List[Tuple[int, int, Script]]:
        """
        Maximal runs of disallowed letters. Two runs of the same script joined
        only by punctuation inside one token (``AUTO-TRANSLATE``) form a single
        segment.
        """
        runs = list(iter_runs(text))
        segments: List[Tuple[int, int, Script]] = []
        index = 0
        while index < len(runs):
            start, end, script = runs[index]
            if script not in LETTER_SCRIPTS or script in allowed:
                index += 1
                continue
            cursor = index
            while (
                cursor + 2 < len(runs)
                and runs[cursor + 1][2] is Script.NEUTRAL
                and runs[cursor + 2][2] is script
            ):
                cursor += 2
            segments.append((start, runs[cursor][1], script))
            index = cursor + 1
        return segments

    @staticmethod
    def _nearest_letter_script(text: str, index: int, step: int) -> Optional[Script]:
        while 0 <= index < len(text):
            script = classify_char(text[index])
            if script in LETTER_SCRIPTS:
                return script
            index += step
        return None

    def _is_embedded_function_word(
        self, text: str, start: int, end: int, segment: str, language: Language
    ) -> bool:
        if segment.lower() not in FUNCTION_WORDS[language.other]:
            return False
        left = self._nearest_letter_script(text, start - 1, -1)
        right = self._nearest_letter_script(text, end, 1)
        return left is language.script and right is language.script

    @staticmethod
    def _scan_fused_tokens(text: str) -> List[ProblematicPattern]:
        findings = []
        for match in _TOKEN_RE.finditer(text):
            scripts = {classify_char(ch) for ch in match.group(0)}
            if Script.ARABIC in scripts and Script.LATIN in scripts:
                findings.append(ProblematicPattern(
                    pattern=match.group(0),
                    kind=PatternKind.MIXED_SCRIPT_TOKEN,
                    position=match.start(),
                    length=match.end() - match.start(),
                    severity=Severity.CRITICAL,
                    rule_id="script:fused-token",
                ))
        return findings

    @staticmethod
    def _scan_control_chars(text: str) -> List[ProblematicPattern]:
        findings = []
        for start, end, script in iter_runs(text):
            if script is not Script.OTHER:
                continue
            findings.append(ProblematicPattern(
                pattern=text[start:end],
                kind=PatternKind.ENCODING_CORRUPTION,
                position=start,
                length=end - start,
                severity=Severity.HIGH,
                rule_id="encoding:control-char",
            ))
        return findings

    @staticmethod
    def _resolve(findings: Sequence[ProblematicPattern]) -> List[ProblematicPattern]:
        best: Dict[Tuple[int, int], ProblematicPattern] = {}
        for finding in findings:
            key = (finding.position, finding.length)
            current = best.get(key)
            if current is None or _outranks(finding, current):
                best[key] = finding
        return sorted(
            best.values(),
            key=lambda f: (f.position, -f.length, KIND_PRIORITY[f.kind]),
        )


def _outranks(candidate: ProblematicPattern, current: ProblematicPattern) -> bool:
    if candidate.severity.value != current.severity.value:
        return candidate.severity.value > current.severity.value
    return KIND_PRIORITY[candidate.kind] < KIND_PRIORITY[current.kind]
