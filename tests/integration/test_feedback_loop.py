"""
Integration tests for the feedback and improvement loop.

These tests verify:
1. A reported leaked token becomes a deployed rule and stops reaching callers
2. Enhancements that break regression samples are held for manual review
3. Reports already handled by the detector close with no action
4. Systemic grouping and spike prioritization in bulk cycles
5. Terminology corrections and rollback
"""

import asyncio
import time

import pytest

from puretrans.core.exceptions import InvalidTransitionError
from puretrans.core.models import (
    EnhancementStatus,
    FeedbackStatus,
    InvestigationStage,
    IssueKind,
    Language,
    Severity,
    TargetComponent,
    TranslationMethod,
)
from puretrans.feedback.loop import FeedbackLoop, extract_suspects
from tests.fixtures.fake_engines import FakeEngine

LEAKED = "Le contrat est résilié LEXI-DRAFT."


@pytest.fixture
def gateway(make_gateway):
    return make_gateway(FakeEngine(LEAKED))


@pytest.fixture
def loop(gateway):
    return FeedbackLoop.for_gateway(gateway)


class TestSuspectExtraction:

    def test_extract_suspects(self):
        text = "Voir LexiPro et Beta2 puis BTN_OK, sans toucher au Code civil."
        assert extract_suspects(text) == ["LexiPro", "Beta2", "BTN_OK"]

    def test_plain_prose_has_no_suspects(self):
        assert extract_suspects("Le tribunal a rendu son jugement.") == []


class TestInvestigation:
    """Test the single-report investigation workflow."""

    @pytest.mark.asyncio
    async def test_report_is_queued(self, loop):
        report_id = loop.report_bad_translation("فسخ العقد", LEAKED, "label leaked into the output")
        report = loop.get_report(report_id)
        assert report_id.startswith("fb-")
        assert report.status is FeedbackStatus.NEW
        assert [r.id for r in loop.pending_reports()] == [report_id]

    @pytest.mark.asyncio
    async def test_leaked_token_is_fixed_end_to_end(self, gateway, loop):
        first = await gateway.translate_text("فسخ العقد", "ar", "fr")
        assert first.method is TranslationMethod.PRIMARY
        assert "LEXI-DRAFT" in first.text

        version = gateway.detector.version
        report_id = loop.report_bad_translation(
            "فسخ العقد", first.text, "label leaked into the output",
            issue_kind=IssueKind.UI_ARTIFACT, severity=Severity.HIGH,
        )
        investigation = await loop.investigate(report_id)

        assert investigation.outcome == "resolved"
        assert investigation.stage is InvestigationStage.CLOSED
        assert investigation.history == [
            "initiated", "in_progress", "findings_analyzed", "resolution_planned",
            "resolution_implemented", "monitoring", "closed",
        ]
        assert [c.pattern for c in investigation.root_causes] == ["LEXI-DRAFT"]
        assert gateway.detector.version == version + 1
        assert loop.get_report(report_id).status is FeedbackStatus.CLOSED

        enhancement = loop.get_enhancement(investigation.enhancement_ids[0])
        assert enhancement.status is EnhancementStatus.DEPLOYED
        assert enhancement.target_component is TargetComponent.PATTERN_DETECTOR
        assert enhancement.rollback_token.startswith("ui_artifact:feedback:")

        # The cached entry no longer passes and the retranslation is cleaned
        second = await gateway.translate_text("فسخ العقد", "ar", "fr")
        assert second.method is TranslationMethod.PRIMARY
        assert "LEXI-DRAFT" not in second.text
        assert gateway.engine.calls == 2
        assert gateway.cache.stats()["invalidated"] == 1

    @pytest.mark.asyncio
    async def test_regression_blocks_deployment(self, gateway, loop):
        version = gateway.detector.version
        report_id = loop.report_bad_translation(
            "عقد البيع", "Le contrat de vente est valable.", "wrong word",
            suspect_pattern="contrat",
        )
        investigation = await loop.investigate(report_id)

        assert investigation.outcome == "manual_review"
        assert investigation.stage is InvestigationStage.RESOLUTION_PLANNED
        assert gateway.detector.version == version

        enhancement = loop.get_enhancement(investigation.enhancement_ids[0])
        assert enhancement.requires_manual_review
        assert enhancement.status is EnhancementStatus.PROPOSED
        assert enhancement.regression_failures
        assert loop.get_report(report_id).status is FeedbackStatus.INVESTIGATING

    @pytest.mark.asyncio
    async def test_already_detected_pattern_needs_no_action(self, loop):
        report_id = loop.report_bad_translation("محامي", "Avocat AUTO-TRANSLATE", "label leaked")
        investigation = await loop.investigate(report_id)

        assert investigation.outcome == "no_action"
        assert investigation.stage is InvestigationStage.CLOSED
        assert investigation.enhancement_ids == []
        assert loop.get_report(report_id).status is FeedbackStatus.CLOSED

    @pytest.mark.asyncio
    async def test_closed_report_cannot_be_reinvestigated(self, loop):
        report_id = loop.report_bad_translation("محامي", "Avocat AUTO-TRANSLATE", "label leaked")
        await loop.investigate(report_id)
        with pytest.raises(InvalidTransitionError):
            await loop.investigate(report_id)

    @pytest.mark.asyncio
    async def test_unknown_report(self, loop):
        with pytest.raises(KeyError):
            await loop.investigate("fb-missing")

    @pytest.mark.asyncio
    async def test_mixed_content_becomes_language_scoped_fragment_rule(self, gateway, loop):
        report_id = loop.report_bad_translation(
            "العقد باطل", "Le contrat herein est nul.", "English word left in",
            issue_kind=IssueKind.MIXED_CONTENT, suspect_pattern="herein",
        )
        investigation = await loop.investigate(report_id)

        assert investigation.outcome == "resolved"
        assert gateway.detector.detect("Le contrat HEREIN est nul.", Language.FRENCH)
        rule_id = loop.get_enhancement(investigation.enhancement_ids[0]).rollback_token
        rule = gateway.detector.snapshot().find(rule_id)
        assert rule.languages == frozenset({Language.FRENCH})
        assert rule.severity is Severity.MEDIUM


class TestRollback:

    @pytest.mark.asyncio
    async def test_rule_rollback(self, gateway, loop):
        report_id = loop.report_bad_translation("فسخ العقد", LEAKED, "label leaked")
        investigation = await loop.investigate(report_id)
        enhancement_id = investigation.enhancement_ids[0]
        assert gateway.detector.detect(LEAKED, Language.FRENCH)

        enhancement = loop.rollback_enhancement(enhancement_id)
        assert enhancement.status is EnhancementStatus.ROLLED_BACK
        assert gateway.detector.detect(LEAKED, Language.FRENCH) == []
        assert loop.enhancements(EnhancementStatus.DEPLOYED) == []

        with pytest.raises(InvalidTransitionError):
            loop.rollback_enhancement(enhancement_id)


class TestTerminologyFeedback:

    @pytest.mark.asyncio
    async def test_correction_deployed_and_rolled_back(self, gateway, loop):
        assert gateway.terminology.lookup("عقد", Language.ARABIC, Language.FRENCH) == "contrat"
        report_id = loop.report_bad_translation(
            "عقد البيع", "Le contrat de vente.", "should read convention",
            issue_kind=IssueKind.TERMINOLOGY, suspect_pattern="عقد", correction="convention",
            domain="civil",
        )
        investigation = await loop.investigate(report_id)

        assert investigation.outcome == "resolved"
        assert gateway.terminology.lookup("عقد", Language.ARABIC, Language.FRENCH) == "convention"
        enhancement = loop.get_enhancement(investigation.enhancement_ids[0])
        assert enhancement.target_component is TargetComponent.TERMINOLOGY_STORE
        assert enhancement.payload["domain"] == "civil"

        loop.rollback_enhancement(enhancement.id)
        assert gateway.terminology.lookup("عقد", Language.ARABIC, Language.FRENCH) == "contrat"

    @pytest.mark.asyncio
    async def test_impure_correction_rejected(self, gateway, loop):
        report_id = loop.report_bad_translation(
            "عقد البيع", "Le contrat de vente.", "bad term",
            issue_kind=IssueKind.TERMINOLOGY, suspect_pattern="عقد", correction="convention عقد",
        )
        investigation = await loop.investigate(report_id)
        assert investigation.outcome == "manual_review"
        assert gateway.terminology.lookup("عقد", Language.ARABIC, Language.FRENCH) == "contrat"

    @pytest.mark.asyncio
    async def test_missing_correction_is_no_action(self, loop):
        report_id = loop.report_bad_translation(
            "عقد البيع", "Le contrat de vente.", "bad term",
            issue_kind=IssueKind.TERMINOLOGY, suspect_pattern="عقد",
        )
        investigation = await loop.investigate(report_id)
        assert investigation.outcome == "no_action"


class TestBulkCycle:
    """Test run_cycle ordering."""

    @pytest.mark.asyncio
    async def test_systemic_pattern_grouped_first(self, loop):
        single = loop.report_bad_translation("", "Le délai est expiré Beta7.", "label", severity=Severity.CRITICAL)
        first = loop.report_bad_translation("", "La requête est rejetée BTN-OK.", "label")
        second = loop.report_bad_translation("", "Le jugement est confirmé BTN-OK.", "label")

        investigations = await loop.run_cycle()

        assert len(investigations) == 2
        grouped = investigations[0]
        assert grouped.report_ids == [first, second]
        assert grouped.priority == 2
        assert [c.pattern for c in grouped.root_causes] == ["BTN-OK"]
        assert grouped.outcome == "resolved"
        assert investigations[1].report_ids == [single]
        assert loop.pending_reports() == []

    @pytest.mark.asyncio
    async def test_spiking_domain_goes_first(self, loop):
        calm = loop.report_bad_translation("", "Le contrat est nul Alpha1.", "label",
                                           severity=Severity.CRITICAL, domain="civil")
        urgent = loop.report_bad_translation("", "La peine est prononcée Gamma2.", "label",
                                             severity=Severity.LOW, domain="criminal")
        loop.on_spike("criminal", 0.8)

        investigations = await loop.run_cycle()

        assert [inv.report_ids for inv in investigations] == [[urgent], [calm]]
        assert investigations[0].priority == 1

    @pytest.mark.asyncio
    async def test_severity_orders_remaining_reports(self, loop):
        low = loop.report_bad_translation("", "Le contrat est nul Alpha1.", "label", severity=Severity.LOW)
        high = loop.report_bad_translation("", "La peine est prononcée Gamma2.", "label", severity=Severity.HIGH)
        investigations = await loop.run_cycle()
        assert [inv.report_ids for inv in investigations] == [[high], [low]]

    @pytest.mark.asyncio
    async def test_empty_cycle(self, loop):
        assert await loop.run_cycle() == []

    @pytest.mark.asyncio
    async def test_background_task(self, loop):
        report_id = loop.report_bad_translation("فسخ العقد", LEAKED, "label leaked")
        loop.start(interval=0.01)
        assert loop.running
        for _ in range(50):
            if loop.get_report(report_id).status is FeedbackStatus.CLOSED:
                break
            await asyncio.sleep(0.01)
        await loop.stop()

        assert loop.get_report(report_id).status is FeedbackStatus.CLOSED
        assert not loop.running

    @pytest.mark.asyncio
    async def test_group_keeps_each_reports_own_suspects(self, gateway, loop):
        with_button = loop.report_bad_translation("", "Le contrat LexiPro est signé BTN_OK.", "label")
        plain = loop.report_bad_translation("", "Le jugement LexiPro est rendu.", "label")

        investigations = await loop.run_cycle()

        assert len(investigations) == 1
        assert investigations[0].report_ids == [with_button, plain]
        assert [c.pattern for c in investigations[0].root_causes] == ["LexiPro", "BTN_OK"]
        assert investigations[0].outcome == "resolved"
        assert {"LexiPro", "BTN_OK"} <= set(gateway.detector.denylist())
        cleaned = gateway.cleaner.clean("Le contrat LexiPro est signé BTN_OK.", Language.FRENCH)
        assert cleaned.cleaned_text == "Le contrat est signé ."


class TestImmediateInvestigation:
    """Urgent reports are handled on receipt while the background task runs."""

    @pytest.mark.asyncio
    async def test_critical_report_handled_without_waiting_for_cycle(self, loop):
        loop.start(interval=60.0)
        await asyncio.sleep(0.01)  # let the first, empty cycle run

        urgent = loop.report_bad_translation("فسخ العقد", LEAKED, "label leaked", severity=Severity.CRITICAL)
        routine = loop.report_bad_translation("", "Le contrat est nul Alpha1.", "label")
        for _ in range(50):
            if loop.get_report(urgent).status is FeedbackStatus.CLOSED:
                break
            await asyncio.sleep(0.01)

        assert loop.get_report(urgent).status is FeedbackStatus.CLOSED
        assert loop.get_report(routine).status is FeedbackStatus.NEW
        assert [r.id for r in loop.pending_reports()] == [routine]
        await loop.stop()

    @pytest.mark.asyncio
    async def test_mixed_content_report_handled_on_receipt(self, gateway, loop):
        loop.start(interval=60.0)
        await asyncio.sleep(0.01)

        report_id = loop.report_bad_translation(
            "العقد باطل", "Le contrat herein est nul.", "English word left in",
            issue_kind=IssueKind.MIXED_CONTENT, suspect_pattern="herein",
        )
        for _ in range(50):
            if loop.get_report(report_id).status is FeedbackStatus.CLOSED:
                break
            await asyncio.sleep(0.01)
        await loop.stop()

        assert loop.get_report(report_id).status is FeedbackStatus.CLOSED
        assert gateway.detector.detect("Le contrat herein est nul.", Language.FRENCH)

    @pytest.mark.asyncio
    async def test_nothing_scheduled_when_loop_stopped(self, loop):
        report_id = loop.report_bad_translation("فسخ العقد", LEAKED, "label leaked", severity=Severity.CRITICAL)
        await asyncio.sleep(0.01)
        assert loop.get_report(report_id).status is FeedbackStatus.NEW

    @pytest.mark.asyncio
    async def test_dry_run_does_not_block_event_loop(self, loop, monkeypatch):
        def slow_dry_run(candidate, exclude=()):
            time.sleep(0.2)
            return []

        monkeypatch.setattr(loop.regression_suite, "dry_run", slow_dry_run)
        report_id = loop.report_bad_translation("فسخ العقد", LEAKED, "label leaked")
        task = asyncio.create_task(loop.investigate(report_id))
        ticks = 0
        while not task.done():
            await asyncio.sleep(0.01)
            ticks += 1

        assert (await task).outcome == "resolved"
        assert ticks >= 5
