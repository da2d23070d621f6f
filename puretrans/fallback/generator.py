"""
Fallback content generator.

When a primary translation cannot be validated, the gateway returns a
pre-authored, professionally worded paragraph in the target language that
matches the legal intent of the source. The paragraph does not carry the
specific facts of the source text; results are tagged with the detected
intent so callers can tell them apart.
"""

from __future__ import annotations

import hashlib
import logging
import unicodedata
from typing import Dict, List, Optional, Tuple

from puretrans.core.exceptions import ConfigurationError
from puretrans.core.models import Language, LegalDomain, TranslationMethod, TranslationResult
from puretrans.core.validator import PurityValidator
from puretrans.fallback.intents import IntentClassifier, IntentMatch
from puretrans.terminology.store import TerminologyStore

logger = logging.getLogger(__name__)

TEMPLATES: Dict[LegalDomain, Dict[Language, Tuple[str, ...]]] = {
    LegalDomain.CIVIL: {
        Language.FRENCH: (
            "Cette question relève des dispositions du Code civil algérien relatives aux "
            "obligations et aux contrats. Les engagements librement consentis tiennent lieu "
            "de loi à ceux qui les ont faits.",
            "Conformément au Code civil, toute inexécution d’une obligation contractuelle peut "
            "engager la responsabilité de son auteur et ouvrir droit à réparation du préjudice subi.",
            "En matière civile, les droits des parties s’apprécient au regard des stipulations "
            "du contrat et des règles supplétives prévues par la loi.",
        ),
        Language.ARABIC: (
            "تخضع هذه المسألة لأحكام القانون المدني الجزائري المتعلقة بالالتزامات والعقود، "
            "والعقد شريعة المتعاقدين.",
            "وفقاً لأحكام القانون المدني، يترتب على الإخلال بالالتزام التعاقدي قيام مسؤولية "
            "المدين والتزامه بتعويض الضرر الناتج عنه.",
            "في المسائل المدنية، تقدر حقوق الأطراف بالرجوع إلى بنود العقد والقواعد المكملة "
            "التي ينص عليها القانون.",
        ),
    },
    LegalDomain.CRIMINAL: {
        Language.FRENCH: (
            "Cette question relève du droit pénal algérien. Nul ne peut être puni pour un fait "
            "qui n’était pas qualifié d’infraction par la loi au moment où il a été commis.",
            "Conformément au Code de procédure pénale, toute personne poursuivie bénéficie de la "
            "présomption d’innocence et des garanties d’un procès équitable.",
            "En matière pénale, la qualification des faits détermine la juridiction compétente "
            "ainsi que la peine encourue.",
        ),
        Language.ARABIC: (
            "تخضع هذه المسألة لأحكام القانون الجزائي الجزائري، ولا جريمة ولا عقوبة إلا بنص.",
            "وفقاً لقانون الإجراءات الجزائية، يتمتع كل شخص متابع بقرينة البراءة وبضمانات "
            "المحاكمة العادلة.",
            "في المادة الجزائية، يحدد التكييف القانوني للوقائع الجهة القضائية المختصة "
            "والعقوبة المقررة.",
        ),
    },
    LegalDomain.COMMERCIAL: {
        Language.FRENCH: (
            "Cette question relève du Code de commerce algérien, qui régit les actes de "
            "commerce, les commerçants et les sociétés commerciales.",
            "Conformément au Code de commerce, tout commerçant est tenu de s’immatriculer au "
            "registre du commerce et de respecter ses obligations professionnelles.",
            "En matière commerciale, la preuve est libre et les usages de la profession "
            "complètent les dispositions légales.",
        ),
        Language.ARABIC: (
            "تخضع هذه المسألة لأحكام القانون التجاري الجزائري الذي ينظم الأعمال التجارية "
            "والتجار والشركات التجارية.",
            "وفقاً للقانون التجاري، يلتزم كل تاجر بالقيد في السجل التجاري وباحترام التزاماته "
            "المهنية.",
            "في المادة التجارية، يكون الإثبات حراً وتكمل الأعراف المهنية الأحكام القانونية.",
        ),
    },
    LegalDomain.ADMINISTRATIVE: {
        Language.FRENCH: (
            "Cette question relève du droit administratif algérien et des principes qui "
            "gouvernent l’action de l’administration publique.",
            "Conformément aux règles du contentieux administratif, les décisions de "
            "l’administration peuvent faire l’objet d’un recours devant la juridiction compétente.",
            "En matière administrative, l’administration est tenue au respect du principe de "
            "légalité et de la continuité du service public.",
        ),
        Language.ARABIC: (
            "تخضع هذه المسألة لأحكام القانون الإداري الجزائري والمبادئ التي تحكم نشاط "
            "الإدارة العمومية.",
            "وفقاً لقواعد المنازعات الإدارية، يجوز الطعن في قرارات الإدارة أمام الجهة "
            "القضائية المختصة.",
            "في المادة الإدارية، تلتزم الإدارة باحترام مبدأ المشروعية واستمرارية المرفق العام.",
        ),
    },
    LegalDomain.FAMILY: {
        Language.FRENCH: (
            "Cette question relève du Code de la famille algérien, qui régit le mariage, sa "
            "dissolution et leurs effets.",
            "Conformément au Code de la famille, l’intérêt de l’enfant guide toute décision "
            "relative à la garde et à la pension alimentaire.",
            "En matière de statut personnel, les droits successoraux sont déterminés selon les "
            "règles prévues par le Code de la famille.",
        ),
        Language.ARABIC: (
            "تخضع هذه المسألة لأحكام قانون الأسرة الجزائري الذي ينظم الزواج وانحلاله "
            "وآثارهما.",
            "وفقاً لقانون الأسرة، تراعى مصلحة المحضون في كل ما يتعلق بالحضانة والنفقة.",
            "في مسائل الأحوال الشخصية، تحدد الحقوق في الميراث وفق القواعد المنصوص عليها في "
            "قانون الأسرة.",
        ),
    },
    LegalDomain.PROCEDURAL: {
        Language.FRENCH: (
            "Cette question relève du Code de procédure civile et administrative, qui fixe les "
            "règles applicables devant les juridictions.",
            "Conformément aux règles de procédure, les délais de recours doivent être "
            "strictement observés sous peine d’irrecevabilité.",
            "En matière de procédure, le respect des droits de la défense et du principe du "
            "contradictoire s’impose à toutes les parties.",
        ),
        Language.ARABIC: (
            "تخضع هذه المسألة لأحكام قانون الإجراءات المدنية والإدارية الذي يحدد القواعد "
            "المتبعة أمام الجهات القضائية.",
            "وفقاً للقواعد الإجرائية، يجب احترام آجال الطعن تحت طائلة عدم القبول.",
            "في المسائل الإجرائية، يتعين على جميع الأطراف احترام حقوق الدفاع ومبدأ الوجاهية.",
        ),
    },
    LegalDomain.GENERAL: {
        Language.FRENCH: (
            "Ce contenu porte sur une question juridique régie par la législation algérienne en "
            "vigueur.",
            "Pour une analyse précise de cette situation, il convient de se référer aux textes "
            "légaux applicables et de consulter un professionnel du droit.",
        ),
        Language.ARABIC: (
            "يتعلق هذا المحتوى بمسألة قانونية يحكمها التشريع الجزائري الساري المفعول.",
            "للحصول على تحليل دقيق لهذه الوضعية، يرجى الرجوع إلى النصوص القانونية المعمول "
            "بها واستشارة مختص في القانون.",
        ),
    },
}

EMERGENCY: Dict[Language, str] = {
    Language.FRENCH: "Contenu juridique disponible en français. Veuillez vous référer aux textes légaux originaux.",
    Language.ARABIC: "المحتوى القانوني متاح باللغة العربية. يرجى الرجوع إلى النصوص القانونية الأصلية.",
}

EMERGENCY_QUALITY = 0.05


def source_digest(text: str) -> int:
    normalized = " ".join(unicodedata.normalize("NFC", text or "").casefold().split())
    return int(hashlib.sha256(normalized.encode("utf-8")).hexdigest(), 16)


class FallbackContentGenerator:
    """Produce guaranteed-pure substitute content for a legal intent."""

    def __init__(
        self,
        validator: PurityValidator,
        terminology: Optional[TerminologyStore] = None,
        classifier: Optional[IntentClassifier] = None,
        min_confidence: float = 0.5,
        templates: Optional[Dict[LegalDomain, Dict[Language, Tuple[str, ...]]]] = None,
    ):
        self.validator = validator
        self.terminology = terminology
        self.classifier = classifier or IntentClassifier(min_confidence=min_confidence)
        self.templates = templates or TEMPLATES

    def verify_templates(self) -> int:
        """
        Check that every paragraph passes the validator with no findings.

        Returns:
            Number of paragraphs checked

        Raises:
            ConfigurationError: if any paragraph fails
        """
        failures: List[str] = []
        checked = 0
        paragraphs = [
            (domain.value, language, text)
            for domain, by_language in self.templates.items()
            for language, texts in by_language.items()
            for text in texts
        ]
        paragraphs.extend(("emergency", language, text) for language, text in EMERGENCY.items())

        for label, language, text in paragraphs:
            checked += 1
            if not self.validator.recheck(text, language):
                score = self.validator.validate(text, language)
                findings = self.validator.detector.detect(text, language)
                failures.append(
                    f"{label}/{language.value}: ratio={score.target_script_ratio:.3f} "
                    f"findings={[f.pattern for f in findings]}"
                )

        for domain in LegalDomain:
            for language in Language:
                if not self.templates.get(domain, {}).get(language):
                    failures.append(f"{domain.value}/{language.value}: no paragraph")

        if failures:
            raise ConfigurationError(
                "Fallback paragraphs failed purity validation: " + "; ".join(failures),
                config_key="fallback.templates",
            )
        logger.info("Verified %d fallback paragraphs", checked)
        return checked

    def classify(
        self,
        source_text: str,
        source_language: Optional[Language] = None,
        domain_hint: Optional[str] = None,
    ) -> IntentMatch:
        votes = None
        if self.terminology is not None and source_language is not None:
            votes = self.terminology.domain_votes(source_text, source_language)
        return self.classifier.classify(source_text, votes, domain_hint)

    def select_paragraph(self, source_text: str, domain: LegalDomain, target_language: Language) -> str:
        paragraphs = self.templates[domain][target_language]
        return paragraphs[source_digest(source_text) % len(paragraphs)]

    def generate(
        self,
        source_text: str,
        target_language: Language,
        domain_hint: Optional[str] = None,
        source_language: Optional[Language] = None,
        reason: str = "unspecified",
    ) -> TranslationResult:
        """
        Generate fallback content for ``source_text``.

        Args:
            source_text: Original text (used for intent and paragraph choice only)
            target_language: Language of the returned paragraph
            domain_hint: Optional caller-supplied domain
            source_language: Language of the source, for terminology votes
            reason: Why the primary path was abandoned, for logging

        Returns:
            TranslationResult with method FALLBACK and quality below 0.5
        """
        if source_language is None:
            source_language = target_language.other
        intent = self.classify(source_text, source_language, domain_hint)
        text = self.select_paragraph(source_text, intent.domain, target_language)
        purity = self.validator.validate(text, target_language)

        if not purity.passes:
            logger.error("Fallback paragraph for %s failed validation; using emergency content",
                         intent.domain.value)
            return self.emergency(target_language, intent.domain.value)

        logger.warning(
            "Fallback content returned (intent=%s, confidence=%.2f, reason=%s); "
            "source facts are not carried over",
            intent.domain.value, intent.confidence, reason,
        )
        return TranslationResult(
            text=text,
            method=TranslationMethod.FALLBACK,
            purity=purity,
            quality_score=0.5 * intent.confidence,
            intent=intent.domain.value,
        )

    def emergency(self, target_language: Language, intent: Optional[str] = None) -> TranslationResult:
        """Last-resort generic paragraph."""
        text = EMERGENCY[target_language]
        return TranslationResult(
            text=text,
            method=TranslationMethod.FALLBACK,
            purity=self.validator.validate(text, target_language),
            quality_score=EMERGENCY_QUALITY,
            intent=intent or LegalDomain.GENERAL.value,
        )
