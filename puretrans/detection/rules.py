"""
Versioned rule sets for the pattern detector.

A RuleSet is an immutable snapshot. Adding or retiring a rule returns a new
snapshot with a higher version; retired rules are kept so that any deployed
change can be rolled back.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple
import re
import uuid

from puretrans.core.models import Language, PatternKind, Severity

LATIN_CLASS = "A-Za-z\\u00C0-\\u024F"
ARABIC_CLASS = "\\u0600-\\u06FF\\u0750-\\u077F\\u08A0-\\u08FF\\uFB50-\\uFDFF\\uFE70-\\uFEFC"


def _boundary_class(ch: str) -> Optional[str]:
    """Character class a token edge must not touch, or None for no boundary."""
    if re.match(f"[{LATIN_CLASS}0-9]", ch):
        return f"{LATIN_CLASS}0-9"
    if re.match(f"[{ARABIC_CLASS}]", ch):
        return ARABIC_CLASS
    return None


def literal_to_regex(token: str) -> str:
    """Escape a literal token and guard its edges against longer words."""
    body = re.escape(token)
    # Internal whitespace in multi-word tokens matches any whitespace run
    body = re.sub(r"(\\ )+", r"\\s+", body)
    head = _boundary_class(token[0])
    tail = _boundary_class(token[-1])
    prefix = f"(?<![{head}])" if head else ""
    suffix = f"(?![{tail}])" if tail else ""
    return f"{prefix}{body}{suffix}"


@dataclass(frozen=True)
class Rule:
    """A single denylist rule."""
    rule_id: str
    family: PatternKind
    pattern: str
    severity: Severity
    is_regex: bool = False
    case_sensitive: bool = True
    languages: FrozenSet[Language] = frozenset()
    description: str = ""
    origin: str = "builtin"
    added_at: datetime = field(default_factory=datetime.now, compare=False)

    def applies_to(self, language: Optional[Language]) -> bool:
        if not self.languages:
            return True
        return language is not None and language in self.languages

    def compile(self) -> "re.Pattern[str]":
        source = self.pattern if self.is_regex else literal_to_regex(self.pattern)
        flags = 0 if self.case_sensitive else re.IGNORECASE
        return re.compile(source, flags)

    @classmethod
    def create(
        cls,
        family: PatternKind,
        pattern: str,
        severity: Severity = Severity.HIGH,
        origin: str = "manual",
        description: str = "",
        **kwargs
    ) -> Rule:
        """Build a rule with a generated id."""
        rule_id = f"{family.value}:{origin}:{uuid.uuid4().hex[:8]}"
        return cls(
            rule_id=rule_id,
            family=family,
            pattern=pattern,
            severity=severity,
            origin=origin,
            description=description or f"{family.value} pattern {pattern!r}",
            **kwargs
        )


@dataclass(frozen=True)
class RuleSet:
    """Immutable, versioned collection of active rules plus retired history."""
    version: int
    rules: Tuple[Rule, ...]
    retired: Tuple[Rule, ...] = ()

    def __post_init__(self):
        compiled = tuple((rule, rule.compile()) for rule in self.rules)
        object.__setattr__(self, "_compiled", compiled)

    @property
    def compiled(self) -> Tuple[Tuple[Rule, "re.Pattern[str]"], ...]:
        return self._compiled  # type: ignore[attr-defined]

    def with_rule(self, rule: Rule) -> RuleSet:
        return RuleSet(self.version + 1, self.rules + (rule,), self.retired)

    def without_rule(self, rule_id: str) -> RuleSet:
        removed = tuple(r for r in self.rules if r.rule_id == rule_id)
        if not removed:
            return self
        kept = tuple(r for r in self.rules if r.rule_id != rule_id)
        return RuleSet(self.version + 1, kept, self.retired + removed)

    def find(self, rule_id: str) -> Optional[Rule]:
        for rule in self.rules:
            if rule.rule_id == rule_id:
                return rule
        return None

    def by_family(self, family: PatternKind) -> List[Rule]:
        return [rule for rule in self.rules if rule.family is family]

    def contains_pattern(self, pattern: str, family: Optional[PatternKind] = None) -> bool:
        for rule in self.rules:
            if family is not None and rule.family is not family:
                continue
            if rule.pattern == pattern:
                return True
        return False

    def __len__(self) -> int:
        return len(self.rules)


# Function words of each language, used to tell embedded fragments apart from
# arbitrary foreign-script words.
FUNCTION_WORDS: Dict[Language, FrozenSet[str]] = {
    Language.FRENCH: frozenset({
        "de", "la", "le", "les", "du", "des", "et", "en", "au", "aux", "un",
        "une", "à", "par", "pour", "sur", "dans", "ou", "est", "sont",
        "the", "of", "and", "in", "to", "for", "with", "on", "by", "is",
    }),
    Language.ARABIC: frozenset({
        "في", "من", "على", "إلى", "الى", "عن", "مع", "أو", "او", "و", "ال",
        "هذا", "هذه", "التي", "الذي", "ذلك", "كل", "بين",
    }),
}

# English words that never occur in French legal prose
ENGLISH_FRAGMENTS = ("the", "of", "and", "with", "shall", "which", "hereby", "whereas")

_UI_ARTIFACTS = (
    ("AUTO-TRANSLATE", Severity.CRITICAL, False),
    ("JuristDZ", Severity.CRITICAL, False),
    ("[object Object]", Severity.CRITICAL, False),
    ("Pro", Severity.HIGH, False),
    ("Defined", Severity.HIGH, False),
    ("undefined", Severity.HIGH, False),
    ("null", Severity.HIGH, False),
    ("NaN", Severity.HIGH, False),
    (r"(?<![A-Za-z0-9])[Vv]\d+(?:\.\d+)*(?![A-Za-z0-9])", Severity.HIGH, True),
    (r"(?<![A-Za-z])(?:version|build)\s*\d+(?:\.\d+)*(?![A-Za-z0-9])", Severity.HIGH, True),
)

_ENCODING_SEQUENCES = (
    "Ã©", "Ã¨", "Ãª", "Ã«", "Ã§", "Ã´", "Ã®", "Ã¢", "Ã¹",
    "â€™", "â€œ", "â€˜", "â€“",
    "Ø§", "Ø¨", "Ø©", "Ù„", "Ù…", "Ù†",
)


def default_rules() -> RuleSet:
    """Build the built-in rule set (version 1)."""
    rules: List[Rule] = []

    for index, (pattern, severity, is_regex) in enumerate(_UI_ARTIFACTS, start=1):
        rules.append(Rule(
            rule_id=f"ui_artifact:builtin:{index}",
            family=PatternKind.UI_ARTIFACT,
            pattern=pattern,
            severity=severity,
            is_regex=is_regex,
            description="Interface artifact",
        ))

    for index, word in enumerate(ENGLISH_FRAGMENTS, start=1):
        rules.append(Rule(
            rule_id=f"foreign_fragment:builtin:{index}",
            family=PatternKind.FOREIGN_FRAGMENT,
            pattern=word,
            severity=Severity.MEDIUM,
            case_sensitive=False,
            languages=frozenset({Language.FRENCH}),
            description="English function word in French text",
        ))

    for index, sequence in enumerate(_ENCODING_SEQUENCES, start=1):
        rules.append(Rule(
            rule_id=f"encoding_corruption:builtin:{index}",
            family=PatternKind.ENCODING_CORRUPTION,
            pattern=re.escape(sequence),
            severity=Severity.HIGH,
            is_regex=True,
            description="Mis-decoded UTF-8 sequence",
        ))

    return RuleSet(version=1, rules=tuple(rules))
