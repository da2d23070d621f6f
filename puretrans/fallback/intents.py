"""
Legal intent classification for the fallback generator.

Each legal domain has a ranked signature of French and Arabic keywords.
Multi-word phrases weigh 2, single words weigh 1; terminology-store domain
votes and an explicit domain hint add to the score.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from puretrans.core.models import Language, LegalDomain
from puretrans.detection.rules import LATIN_CLASS

PHRASE_WEIGHT = 2
WORD_WEIGHT = 1
HINT_BONUS = 2


@dataclass(frozen=True)
class IntentSignature:
    domain: LegalDomain
    rank: int  # Lower wins ties
    french: Tuple[str, ...]
    arabic: Tuple[str, ...]


@dataclass
class IntentMatch:
    domain: LegalDomain
    confidence: float
    score: int = 0
    matched: List[str] = field(default_factory=list)


SIGNATURES: Tuple[IntentSignature, ...] = (
    IntentSignature(
        LegalDomain.CIVIL, 1,
        french=("contrat", "obligation", "responsabilité", "dommage", "indemnisation",
                "propriété", "droit réel", "code civil", "bail", "créancier", "débiteur"),
        arabic=("عقد", "التزام", "مسؤولية", "ضرر", "تعويض", "ملكية", "حق عيني",
                "القانون المدني", "إيجار", "دائن", "مدين"),
    ),
    IntentSignature(
        LegalDomain.CRIMINAL, 2,
        french=("crime", "délit", "contravention", "peine", "accusé", "victime", "procès",
                "code pénal", "infraction", "ministère public", "détention"),
        arabic=("جريمة", "جنحة", "مخالفة", "عقوبة", "متهم", "ضحية", "محاكمة",
                "قانون العقوبات", "النيابة العامة", "حبس"),
    ),
    IntentSignature(
        LegalDomain.COMMERCIAL, 3,
        french=("société", "commerçant", "faillite", "registre du commerce", "registre de commerce",
                "acte de commerce", "concurrence", "code de commerce", "chèque", "fonds de commerce"),
        arabic=("شركة", "تاجر", "إفلاس", "سجل تجاري", "السجل التجاري", "عمل تجاري", "منافسة",
                "القانون التجاري", "شيك"),
    ),
    IntentSignature(
        LegalDomain.ADMINISTRATIVE, 4,
        french=("décision administrative", "recours", "conseil d'état", "administration",
                "service public", "tribunal administratif", "décret", "fonctionnaire", "marché public"),
        arabic=("قرار إداري", "طعن", "مجلس الدولة", "إدارة", "خدمة عمومية",
                "المحكمة الإدارية", "مرسوم", "موظف", "صفقة عمومية"),
    ),
    IntentSignature(
        LegalDomain.FAMILY, 5,
        french=("mariage", "divorce", "pension alimentaire", "garde", "succession", "testament",
                "code de la famille", "filiation", "tutelle"),
        arabic=("زواج", "طلاق", "نفقة", "حضانة", "ميراث", "وصية", "قانون الأسرة", "نسب"),
    ),
    IntentSignature(
        LegalDomain.PROCEDURAL, 6,
        french=("action en justice", "jugement", "arrêt", "appel", "cassation", "exécution",
                "procédure", "audience", "huissier", "requête", "délai"),
        arabic=("دعوى", "حكم", "استئناف", "نقض", "تنفيذ", "إجراءات", "جلسة", "محضر قضائي",
                "عريضة", "أجل"),
    ),
)


def _keyword_weight(keyword: str) -> int:
    return PHRASE_WEIGHT if " " in keyword.strip() else WORD_WEIGHT


def _compile_french(keywords: Tuple[str, ...]) -> "re.Pattern[str]":
    alternatives = "|".join(re.escape(k).replace("\\ ", r"\s+") for k in sorted(keywords, key=len, reverse=True))
    # Left boundary only, so plurals and feminine forms still match
    return re.compile(f"(?<![{LATIN_CLASS}])(?:{alternatives})", re.IGNORECASE)


class IntentClassifier:
    """Score legal domains for a text."""

    def __init__(self, signatures: Tuple[IntentSignature, ...] = SIGNATURES, min_confidence: float = 0.5):
        self.signatures = tuple(sorted(signatures, key=lambda s: s.rank))
        self.min_confidence = min_confidence
        self._french = {s.domain: _compile_french(s.french) for s in self.signatures}

    def keyword_scores(self, text: str) -> Dict[LegalDomain, Tuple[int, List[str]]]:
        scores: Dict[LegalDomain, Tuple[int, List[str]]] = {}
        for signature in self.signatures:
            matched = []
            for match in self._french[signature.domain].finditer(text):
                keyword = re.sub(r"\s+", " ", match.group(0).casefold())
                if keyword not in matched:
                    matched.append(keyword)
            # Arabic keywords carry attached prefixes (ال, و, ب), so substring match
            matched.extend(k for k in signature.arabic if k in text)
            scores[signature.domain] = (sum(_keyword_weight(k) for k in matched), matched)
        return scores

    def classify(
        self,
        text: str,
        domain_votes: Optional[Dict[LegalDomain, int]] = None,
        domain_hint: Optional[str] = None,
    ) -> IntentMatch:
        """
        Pick the best-scoring domain.

        Args:
            text: Source text
            domain_votes: Terminology-store term counts per domain
            domain_hint: Caller-supplied domain name

        Returns:
            IntentMatch; GENERAL when no domain reaches min_confidence
        """
        hint = LegalDomain.parse(domain_hint)
        votes = domain_votes or {}
        best: Optional[IntentMatch] = None
        scores = self.keyword_scores(text)

        for signature in self.signatures:
            score, matched = scores[signature.domain]
            score += votes.get(signature.domain, 0)
            if hint is signature.domain:
                score += HINT_BONUS
            confidence = score / (score + 1)
            if best is None or score > best.score:
                best = IntentMatch(signature.domain, confidence, score, list(matched))

        if best is None or best.confidence < self.min_confidence:
            return IntentMatch(LegalDomain.GENERAL, best.confidence if best else 0.0,
                               best.score if best else 0, [])
        return best
