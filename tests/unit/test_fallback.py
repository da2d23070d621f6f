"""
Tests for intent classification and fallback content generation.
"""

import pytest

from puretrans.core.exceptions import ConfigurationError
from puretrans.core.models import Language, LegalDomain, TranslationMethod
from puretrans.fallback.generator import (
    EMERGENCY,
    EMERGENCY_QUALITY,
    TEMPLATES,
    FallbackContentGenerator,
    source_digest,
)
from puretrans.fallback.intents import IntentClassifier


@pytest.fixture
def generator(validator, store):
    return FallbackContentGenerator(validator, store)


class TestIntentClassifier:
    """Test IntentClassifier.classify."""

    def test_french_criminal(self):
        match = IntentClassifier().classify("Le prévenu encourt une peine pour ce délit.")
        assert match.domain is LegalDomain.CRIMINAL
        assert match.score == 2
        assert set(match.matched) == {"peine", "délit"}

    def test_arabic_substring_match(self):
        match = IntentClassifier().classify("ارتكب المتهم جنحة")
        assert match.domain is LegalDomain.CRIMINAL

    def test_phrase_weighs_more(self):
        match = IntentClassifier().classify("Le code de la famille")
        assert match.domain is LegalDomain.FAMILY
        assert match.score == 2

    def test_no_signal_is_general(self):
        match = IntentClassifier().classify("Bonjour à tous")
        assert match.domain is LegalDomain.GENERAL
        assert match.matched == []

    def test_hint_alone_reaches_confidence(self):
        match = IntentClassifier().classify("Bonjour à tous", domain_hint="family")
        assert match.domain is LegalDomain.FAMILY
        assert match.confidence == pytest.approx(2 / 3)

    def test_votes_add_to_score(self):
        match = IntentClassifier().classify("texte", domain_votes={LegalDomain.COMMERCIAL: 3})
        assert match.domain is LegalDomain.COMMERCIAL
        assert match.score == 3

    def test_ties_go_to_lower_rank(self):
        match = IntentClassifier().classify("contrat et divorce")
        assert match.domain is LegalDomain.CIVIL


class TestFallbackGenerator:
    """Test FallbackContentGenerator."""

    def test_every_paragraph_is_pure(self, generator):
        expected = sum(len(texts) for by_lang in TEMPLATES.values() for texts in by_lang.values())
        assert generator.verify_templates() == expected + len(EMERGENCY)

    def test_impure_template_rejected(self, validator):
        templates = {domain: dict(by_lang) for domain, by_lang in TEMPLATES.items()}
        templates[LegalDomain.CIVIL] = {
            Language.FRENCH: ("Le contrat AUTO-TRANSLATE est valable.",),
            Language.ARABIC: TEMPLATES[LegalDomain.CIVIL][Language.ARABIC],
        }
        with pytest.raises(ConfigurationError) as exc_info:
            FallbackContentGenerator(validator, templates=templates).verify_templates()
        assert "civil/fr" in str(exc_info.value)

    def test_missing_language_rejected(self, validator):
        templates = {domain: dict(by_lang) for domain, by_lang in TEMPLATES.items()}
        templates[LegalDomain.FAMILY] = {Language.FRENCH: TEMPLATES[LegalDomain.FAMILY][Language.FRENCH]}
        with pytest.raises(ConfigurationError):
            FallbackContentGenerator(validator, templates=templates).verify_templates()

    def test_generate_matches_intent(self, generator):
        result = generator.generate("ارتكب المتهم جنحة", Language.FRENCH, source_language=Language.ARABIC)
        assert result.method is TranslationMethod.FALLBACK
        assert result.intent == "criminal"
        assert result.text in TEMPLATES[LegalDomain.CRIMINAL][Language.FRENCH]
        assert result.purity.passes
        assert 0.0 < result.quality_score < 0.5

    def test_generate_arabic_target(self, generator):
        result = generator.generate("Le divorce et la garde des enfants", Language.ARABIC)
        assert result.intent == "family"
        assert result.text in TEMPLATES[LegalDomain.FAMILY][Language.ARABIC]
        assert result.purity.passes

    def test_choice_is_deterministic(self, generator):
        first = generator.generate("عقد البيع باطل", Language.FRENCH)
        second = generator.generate("  عقد   البيع باطل ", Language.FRENCH)
        assert first.text == second.text
        assert source_digest("Le Contrat") == source_digest("le   contrat")

    def test_hint_used_without_keywords(self, generator):
        result = generator.generate("نص", Language.FRENCH, domain_hint="commercial")
        assert result.intent == "commercial"

    def test_general_when_nothing_matches(self, generator):
        result = generator.generate("نص", Language.FRENCH)
        assert result.intent == "general"
        assert result.text in TEMPLATES[LegalDomain.GENERAL][Language.FRENCH]

    def test_failing_paragraph_falls_back_to_emergency(self, validator):
        templates = {LegalDomain.GENERAL: {Language.FRENCH: ("Texte AUTO-TRANSLATE",)}}
        generator = FallbackContentGenerator(validator, templates=templates)
        result = generator.generate("نص", Language.FRENCH)
        assert result.text == EMERGENCY[Language.FRENCH]
        assert result.quality_score == EMERGENCY_QUALITY
        assert result.intent == "general"

    @pytest.mark.parametrize("language", [Language.FRENCH, Language.ARABIC])
    def test_emergency_content_is_pure(self, generator, language):
        result = generator.emergency(language)
        assert result.purity.passes
        assert result.is_fallback
