"""
Core data models for PureTrans.

This module defines the records exchanged between the pipeline components:
requests, detector findings, cleaning reports, purity scores, results,
terminology entries, cache entries and feedback-loop records.
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Dict, Optional, Any, Tuple
from datetime import datetime
import uuid

from puretrans.core.exceptions import InvalidInputError
from puretrans.core.scripts import Script


class Language(Enum):
    """Supported languages. Arabic is written in Arabic script, French in Latin."""
    ARABIC = "ar"
    FRENCH = "fr"

    @property
    def script(self) -> Script:
        return Script.ARABIC if self is Language.ARABIC else Script.LATIN

    @property
    def other(self) -> Language:
        return Language.FRENCH if self is Language.ARABIC else Language.ARABIC

    @classmethod
    def parse(cls, value: Any) -> Language:
        """Parse a language code or member, raising InvalidInputError otherwise."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            code = value.strip().lower()
            aliases = {"ar": cls.ARABIC, "arabic": cls.ARABIC, "ara": cls.ARABIC,
                       "fr": cls.FRENCH, "french": cls.FRENCH, "fra": cls.FRENCH}
            if code in aliases:
                return aliases[code]
        raise InvalidInputError(
            f"Unsupported language: {value!r}",
            field_name="language",
            valid_values=[lang.value for lang in cls],
        )


class PatternKind(Enum):
    """Kinds of contamination reported by the pattern detector."""
    UI_ARTIFACT = "ui_artifact"
    FOREIGN_SCRIPT = "foreign_script"
    FOREIGN_FRAGMENT = "foreign_fragment"
    MIXED_SCRIPT_TOKEN = "mixed_script_token"
    ENCODING_CORRUPTION = "encoding_corruption"


class Severity(Enum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def parse(cls, value: Any) -> Severity:
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            return cls.MEDIUM


class TranslationMethod(Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    CACHE_HIT = "cache_hit"


class LegalDomain(Enum):
    """Legal sub-domains used for terminology tags and fallback intents."""
    CIVIL = "civil"
    CRIMINAL = "criminal"
    COMMERCIAL = "commercial"
    ADMINISTRATIVE = "administrative"
    FAMILY = "family"
    PROCEDURAL = "procedural"
    GENERAL = "general"

    @classmethod
    def parse(cls, value: Any) -> Optional[LegalDomain]:
        """Lenient parse used for free-form domain hints; None when unknown."""
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for domain in cls:
            if text == domain.value or text == domain.name.lower():
                return domain
        aliases = {
            "contract": cls.CIVIL, "contracts": cls.CIVIL, "obligations": cls.CIVIL,
            "penal": cls.CRIMINAL, "criminal_law": cls.CRIMINAL,
            "business": cls.COMMERCIAL, "company": cls.COMMERCIAL,
            "public": cls.ADMINISTRATIVE,
            "family_law": cls.FAMILY, "personal_status": cls.FAMILY,
            "procedure": cls.PROCEDURAL, "litigation": cls.PROCEDURAL,
        }
        return aliases.get(text)


@dataclass(frozen=True)
class TranslationRequest:
    """A single inbound translation call. Immutable once created."""
    id: str
    source_text: str
    source_language: Language
    target_language: Language
    domain_hint: Optional[str] = None

    @classmethod
    def create(
        cls,
        source_text: str,
        source_language: Any,
        target_language: Any,
        domain_hint: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> TranslationRequest:
        """Build a request, parsing language codes."""
        return cls(
            id=request_id or uuid.uuid4().hex,
            source_text=source_text,
            source_language=Language.parse(source_language),
            target_language=Language.parse(target_language),
            domain_hint=domain_hint,
        )


@dataclass(frozen=True)
class ProblematicPattern:
    """A positioned detector finding."""
    pattern: str
    kind: PatternKind
    position: int
    length: int
    severity: Severity
    rule_id: str = ""

    @property
    def end(self) -> int:
        return self.position + self.length

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.pattern,
            "kind": self.kind.value,
            "position": self.position,
            "length": self.length,
            "severity": self.severity.name,
            "rule_id": self.rule_id,
        }


@dataclass
class CleaningReport:
    """Outcome of one cleaning call."""
    cleaned_text: str
    removed: List[ProblematicPattern] = field(default_factory=list)
    original_length: int = 0
    cleaned_length: int = 0
    confidence: float = 1.0
    passes: int = 0
    foreign_removed: int = 0  # Visible characters removed as foreign-language content
    original_visible: int = 0

    @property
    def was_modified(self) -> bool:
        return bool(self.removed)

    @property
    def foreign_share(self) -> float:
        """Share of the visible input characters removed as foreign-language content."""
        if not self.original_visible:
            return 0.0
        return self.foreign_removed / self.original_visible

    def removed_by_kind(self) -> Dict[PatternKind, int]:
        counts: Dict[PatternKind, int] = {}
        for finding in self.removed:
            counts[finding.kind] = counts.get(finding.kind, 0) + 1
        return counts


@dataclass(frozen=True)
class PurityScore:
    """Script composition of a candidate text relative to a target language."""
    target_script_ratio: float
    foreign_script_ratio: float
    other_ratio: float
    passes: bool
    threshold: float = 0.90
    critical_patterns: int = 0
    target_letters: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TranslationResult:
    """The only artifact returned to callers of the gateway."""
    text: str
    method: TranslationMethod
    purity: PurityScore
    quality_score: float
    request_id: Optional[str] = None
    intent: Optional[str] = None
    trace: List[str] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return self.method is TranslationMethod.FALLBACK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "method": self.method.value,
            "purity": self.purity.to_dict(),
            "quality_score": self.quality_score,
            "request_id": self.request_id,
            "intent": self.intent,
            "trace": list(self.trace),
        }


@dataclass(frozen=True)
class TerminologyEntry:
    """One versioned dictionary mapping for a language direction."""
    source_term: str
    target_term: str
    domain: LegalDomain
    source_language: Language
    target_language: Language
    version: int = 1
    origin: str = "seed"
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def direction(self) -> Tuple[Language, Language]:
        return (self.source_language, self.target_language)


@dataclass
class CacheEntry:
    """Cached accepted translation, owned by the translation cache."""
    key: str
    value: TranslationResult
    target_language: Language
    created_at: float
    last_accessed: float
    hit_count: int = 0
    fingerprint: Optional[Tuple[float, int]] = None

    @property
    def low_quality(self) -> bool:
        return self.value.method is TranslationMethod.FALLBACK or self.value.quality_score < 0.5


class FeedbackStatus(Enum):
    NEW = "new"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    MONITORING = "monitoring"
    CLOSED = "closed"


class IssueKind(Enum):
    MIXED_CONTENT = "mixed_content"
    UI_ARTIFACT = "ui_artifact"
    FOREIGN_SCRIPT = "foreign_script"
    ENCODING = "encoding"
    TERMINOLOGY = "terminology"
    OTHER = "other"


@dataclass
class FeedbackReport:
    """A user report of a bad translation."""
    id: str
    reported_text: str
    issue_kind: IssueKind
    severity: Severity
    status: FeedbackStatus = FeedbackStatus.NEW
    original_text: str = ""
    reported_issue: str = ""
    target_language: Language = Language.FRENCH
    suspect_pattern: Optional[str] = None
    correction: Optional[str] = None
    domain: Optional[LegalDomain] = None
    created_at: datetime = field(default_factory=datetime.now)


class TargetComponent(Enum):
    PATTERN_DETECTOR = "PatternDetector"
    CONTENT_CLEANER = "ContentCleaner"
    TERMINOLOGY_STORE = "TerminologyStore"
    PURITY_VALIDATOR = "PurityValidator"


class EnhancementStatus(Enum):
    PROPOSED = "proposed"
    TESTED = "tested"
    DEPLOYED = "deployed"
    ROLLED_BACK = "rolled_back"


@dataclass
class Enhancement:
    """A proposed change to a rule set or dictionary, with a rollback path."""
    id: str
    target_component: TargetComponent
    description: str
    status: EnhancementStatus = EnhancementStatus.PROPOSED
    payload: Dict[str, Any] = field(default_factory=dict)
    source_reports: List[str] = field(default_factory=list)
    regression_failures: List[str] = field(default_factory=list)
    requires_manual_review: bool = False
    rollback_token: Optional[Any] = None
    created_at: datetime = field(default_factory=datetime.now)
    deployed_at: Optional[datetime] = None


class InvestigationStage(Enum):
    INITIATED = "initiated"
    IN_PROGRESS = "in_progress"
    FINDINGS_ANALYZED = "findings_analyzed"
    RESOLUTION_PLANNED = "resolution_planned"
    RESOLUTION_IMPLEMENTED = "resolution_implemented"
    MONITORING = "monitoring"
    CLOSED = "closed"


@dataclass
class RootCause:
    """Which rule family missed which pattern."""
    component: TargetComponent
    family: Optional[PatternKind]
    pattern: str
    explanation: str
    reproduced: bool = True


@dataclass
class Investigation:
    """One run of the investigation workflow, for one or more reports."""
    id: str
    report_ids: List[str]
    stage: InvestigationStage = InvestigationStage.INITIATED
    root_causes: List[RootCause] = field(default_factory=list)
    enhancement_ids: List[str] = field(default_factory=list)
    outcome: str = "pending"
    priority: int = 0
    history: List[str] = field(default_factory=list)
