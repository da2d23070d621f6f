"""
Tests for the regression suite used to dry-run rule changes.
"""

from puretrans.core.models import Language, PatternKind, Severity
from puretrans.detection.rules import Rule
from puretrans.feedback.regression import SEED_SAMPLES, RegressionSuite


def _candidate(detector, pattern, severity=Severity.CRITICAL):
    return detector.snapshot().with_rule(Rule.create(PatternKind.UI_ARTIFACT, pattern, severity))


class TestRegressionSuite:
    """Test RegressionSuite."""

    def test_seeds_are_clean(self, validator):
        suite = RegressionSuite(validator)
        assert len(suite) == len(SEED_SAMPLES)
        assert all(s.clean and s.passed for s in suite.samples())

    def test_safe_rule(self, validator, detector):
        suite = RegressionSuite(validator)
        assert suite.dry_run(_candidate(detector, "LEXI-DRAFT")) == []

    def test_rule_flagging_a_seed_regresses(self, validator, detector):
        suite = RegressionSuite(validator)
        failures = suite.dry_run(_candidate(detector, "contrat"))
        assert failures
        assert "contrat" in failures[0]

    def test_accepted_sample_and_exclusion(self, validator, detector):
        suite = RegressionSuite(validator)
        text = "Le contrat est résilié LEXI-DRAFT."
        suite.add(text, Language.FRENCH)
        candidate = _candidate(detector, "LEXI-DRAFT")

        assert len(suite.dry_run(candidate)) == 1
        assert suite.dry_run(candidate, exclude=[text]) == []

    def test_discard_keeps_seeds(self, validator):
        suite = RegressionSuite(validator)
        suite.add("Le contrat est résilié.", Language.FRENCH)
        assert suite.discard("Le contrat est résilié.") == 1
        assert suite.discard(SEED_SAMPLES[0][0]) == 0
        assert len(suite) == len(SEED_SAMPLES)

    def test_duplicates_skipped(self, validator):
        suite = RegressionSuite(validator, seed=False)
        assert suite.add("Le contrat est résilié.", Language.FRENCH) is not None
        assert suite.add("Le contrat est résilié.", Language.FRENCH) is None
        assert len(suite) == 1

    def test_capacity(self, validator):
        suite = RegressionSuite(validator, capacity=2, seed=False)
        for text in ("Un.", "Deux.", "Trois."):
            suite.add(text, Language.FRENCH)
        assert [s.text for s in suite.samples()] == ["Deux.", "Trois."]

    def test_passing_sample_with_findings_only_fails_on_critical(self, validator, detector):
        suite = RegressionSuite(validator, seed=False)
        # Accepted with a HIGH finding, so not clean but passing
        suite.add("Le tribunal a rendu son jugement en audience publique avec Pro.", Language.FRENCH)
        assert suite.dry_run(_candidate(detector, "audience", Severity.HIGH)) == []
        assert suite.dry_run(_candidate(detector, "audience", Severity.CRITICAL))
