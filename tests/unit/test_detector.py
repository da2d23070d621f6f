"""
Tests for script classification, rule sets and the pattern detector.

These tests verify:
1. Character classification into letter scripts, neutral and other
2. Built-in UI artifact, English fragment and encoding rules
3. Script findings (foreign words, fused tokens, function words)
4. Same-span resolution and ordering
5. Rule set versioning and compare-and-swap publishing
"""

import pytest

from puretrans.core.models import Language, PatternKind, Severity
from puretrans.core.scripts import Script, classify_char, dominant_letter_script, iter_runs
from puretrans.detection.detector import PatternDetector
from puretrans.detection.rules import Rule, default_rules, literal_to_regex


class TestScripts:
    """Test Unicode script classification."""

    @pytest.mark.parametrize("ch,expected", [
        ("a", Script.LATIN),
        ("é", Script.LATIN),
        ("ع", Script.ARABIC),
        ("п", Script.CYRILLIC),
        ("法", Script.CJK),
        ("α", Script.GREEK),
        ("7", Script.NEUTRAL),
        ("٣", Script.NEUTRAL),
        (",", Script.NEUTRAL),
        ("،", Script.NEUTRAL),
        ("«", Script.NEUTRAL),
        ("\u200c", Script.NEUTRAL),
        (" ", Script.SPACE),
        ("\n", Script.SPACE),
        ("�", Script.OTHER),
        ("\x07", Script.OTHER),
    ])
    def test_classify_char(self, ch, expected):
        assert classify_char(ch) is expected

    def test_iter_runs_covers_text(self):
        text = "Le عقد 12"
        runs = list(iter_runs(text))
        assert runs[0] == (0, 2, Script.LATIN)
        assert "".join(text[s:e] for s, e, _ in runs) == text

    def test_dominant_letter_script(self):
        assert dominant_letter_script("عقد البيع contrat") is Script.ARABIC
        assert dominant_letter_script("123 !") is Script.NEUTRAL


class TestRules:
    """Test rule construction and rule set versioning."""

    def test_literal_regex_respects_word_boundaries(self):
        import re
        pattern = re.compile(literal_to_regex("Pro"))
        assert pattern.search("Avocat Pro")
        assert not pattern.search("Procédure")
        assert not pattern.search("Appro")

    def test_default_rules_version(self):
        rules = default_rules()
        assert rules.version == 1
        assert rules.contains_pattern("AUTO-TRANSLATE", PatternKind.UI_ARTIFACT)
        assert len(rules.by_family(PatternKind.FOREIGN_FRAGMENT)) == 8

    def test_with_and_without_rule_bump_version(self):
        rules = default_rules()
        rule = Rule.create(PatternKind.UI_ARTIFACT, "LEXI-DRAFT", Severity.CRITICAL, origin="test")
        added = rules.with_rule(rule)
        assert added.version == 2
        assert added.find(rule.rule_id) is rule
        assert rules.find(rule.rule_id) is None

        removed = added.without_rule(rule.rule_id)
        assert removed.version == 3
        assert removed.find(rule.rule_id) is None
        assert rule in removed.retired

    def test_without_unknown_rule_is_noop(self):
        rules = default_rules()
        assert rules.without_rule("missing") is rules

    def test_rule_id_carries_family_and_origin(self):
        rule = Rule.create(PatternKind.ENCODING_CORRUPTION, "Ã©", origin="feedback")
        assert rule.rule_id.startswith("encoding_corruption:feedback:")


class TestDetector:
    """Test PatternDetector.detect."""

    def test_clean_french_has_no_findings(self, detector):
        assert detector.detect("Le tribunal a rendu son jugement en audience publique.", Language.FRENCH) == []

    def test_clean_arabic_has_no_findings(self, detector):
        assert detector.detect("أصدرت المحكمة حكمها في جلسة علنية.", Language.ARABIC) == []

    def test_empty_text(self, detector):
        assert detector.detect("", Language.FRENCH) == []

    def test_ui_artifacts(self, detector):
        findings = detector.detect("Avocat Pro V2 AUTO-TRANSLATE", Language.FRENCH)
        by_pattern = {f.pattern: f for f in findings}
        assert set(by_pattern) == {"Pro", "V2", "AUTO-TRANSLATE"}
        assert by_pattern["AUTO-TRANSLATE"].severity is Severity.CRITICAL
        assert by_pattern["Pro"].severity is Severity.HIGH
        assert all(f.kind is PatternKind.UI_ARTIFACT for f in findings)

    def test_ui_artifacts_are_case_sensitive(self, detector):
        assert detector.detect("Il est pro bono.", Language.FRENCH) == []

    def test_english_fragment_in_french(self, detector):
        findings = detector.detect("Le contrat of vente est conclu.", Language.FRENCH)
        assert len(findings) == 1
        assert findings[0].kind is PatternKind.FOREIGN_FRAGMENT
        assert findings[0].severity is Severity.MEDIUM
        assert findings[0].pattern == "of"

    def test_english_fragment_rules_only_apply_to_french(self, detector):
        findings = detector.detect("العقد the", Language.ARABIC)
        assert [f.kind for f in findings] == [PatternKind.FOREIGN_SCRIPT]

    def test_cyrillic_word_in_french_is_critical(self, detector):
        text = "Le tribunal a statué процедура sur la demande."
        findings = detector.detect(text, Language.FRENCH)
        assert len(findings) == 1
        finding = findings[0]
        assert finding.kind is PatternKind.FOREIGN_SCRIPT
        assert finding.severity is Severity.CRITICAL
        assert text[finding.position:finding.end] == "процедура"

    def test_latin_word_in_arabic_is_high(self, detector):
        findings = detector.detect("هذا العقد contract صحيح", Language.ARABIC)
        assert len(findings) == 1
        assert findings[0].kind is PatternKind.FOREIGN_SCRIPT
        assert findings[0].severity is Severity.HIGH
        assert findings[0].pattern == "contract"

    def test_mixed_script_token(self, detector):
        findings = detector.detect("Le contratعقد est signé.", Language.FRENCH)
        assert len(findings) == 1
        assert findings[0].kind is PatternKind.MIXED_SCRIPT_TOKEN
        assert findings[0].severity is Severity.CRITICAL
        assert findings[0].pattern == "عقد"

    def test_embedded_arabic_function_word_in_french(self, detector):
        findings = detector.detect("Le contrat في vente", Language.FRENCH)
        assert len(findings) == 1
        assert findings[0].kind is PatternKind.FOREIGN_FRAGMENT
        assert findings[0].severity is Severity.MEDIUM

    def test_embedded_french_function_word_in_arabic(self, detector):
        findings = detector.detect("العقد de البيع", Language.ARABIC)
        assert len(findings) == 1
        assert findings[0].kind is PatternKind.FOREIGN_FRAGMENT

    def test_fused_tokens_without_language(self, detector):
        findings = detector.detect("contrat عقد contratعقد", None)
        assert [f.pattern for f in findings] == ["contratعقد"]
        assert findings[0].kind is PatternKind.MIXED_SCRIPT_TOKEN

    def test_control_characters(self, detector):
        findings = detector.detect("Le contrat\x07 est nul.", Language.FRENCH)
        assert len(findings) == 1
        assert findings[0].kind is PatternKind.ENCODING_CORRUPTION
        assert findings[0].rule_id == "encoding:control-char"

    def test_mojibake(self, detector):
        findings = detector.detect("La sociÃ©tÃ© est dissoute.", Language.FRENCH)
        assert findings
        assert all(f.kind is PatternKind.ENCODING_CORRUPTION for f in findings)

    def test_same_span_keeps_highest_severity(self, detector):
        findings = detector.detect("عقد AUTO-TRANSLATE", Language.ARABIC)
        assert len(findings) == 1
        assert findings[0].kind is PatternKind.UI_ARTIFACT
        assert findings[0].severity is Severity.CRITICAL

    def test_findings_sorted_by_position(self, detector):
        findings = detector.detect("NaN Le contrat Pro", Language.FRENCH)
        positions = [f.position for f in findings]
        assert positions == sorted(positions)

    def test_has_critical(self, detector):
        assert detector.has_critical("Texte AUTO-TRANSLATE", Language.FRENCH)
        assert not detector.has_critical("Texte Pro", Language.FRENCH)


class TestRulePublishing:
    """Test runtime rule changes."""

    def test_add_rule_takes_effect(self, detector):
        assert detector.detect("Résilié LEXI-DRAFT.", Language.FRENCH) == []
        detector.add_rule(Rule.create(PatternKind.UI_ARTIFACT, "LEXI-DRAFT", Severity.CRITICAL))
        assert detector.version == 2
        findings = detector.detect("Résilié LEXI-DRAFT.", Language.FRENCH)
        assert [f.pattern for f in findings] == ["LEXI-DRAFT"]

    def test_retire_rule(self, detector):
        rule = Rule.create(PatternKind.UI_ARTIFACT, "LEXI-DRAFT", Severity.CRITICAL)
        detector.add_rule(rule)
        detector.retire_rule(rule.rule_id)
        assert detector.detect("Résilié LEXI-DRAFT.", Language.FRENCH) == []
        assert detector.version == 3

    def test_publish_compare_and_swap(self, detector):
        base = detector.snapshot()
        candidate = base.with_rule(Rule.create(PatternKind.UI_ARTIFACT, "BTN-OK"))
        detector.add_rule(Rule.create(PatternKind.UI_ARTIFACT, "BTN-CANCEL"))

        assert detector.publish(candidate, base.version) is False
        assert "BTN-OK" not in detector.denylist()

        rebased = detector.snapshot().with_rule(Rule.create(PatternKind.UI_ARTIFACT, "BTN-OK"))
        assert detector.publish(rebased, detector.version) is True
        assert {"BTN-OK", "BTN-CANCEL"} <= set(detector.denylist())

    def test_detect_with_explicit_snapshot(self, detector):
        candidate = detector.snapshot().with_rule(Rule.create(PatternKind.UI_ARTIFACT, "LEXI-DRAFT"))
        assert detector.detect("LEXI-DRAFT", Language.FRENCH, rules=candidate)
        assert detector.detect("LEXI-DRAFT", Language.FRENCH) == []

    def test_language_scoped_rule(self):
        detector = PatternDetector()
        detector.add_rule(Rule.create(
            PatternKind.FOREIGN_FRAGMENT, "hereinafter", Severity.MEDIUM,
            case_sensitive=False, languages=frozenset({Language.FRENCH}),
        ))
        assert detector.detect("La société HEREINAFTER dénommée", Language.FRENCH)
