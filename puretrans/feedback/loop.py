"""
Feedback and improvement loop.

Turns user reports of bad translations into rule or dictionary changes:

    report -> reproduce -> root cause -> enhancement -> regression dry-run
           -> atomic deploy -> verify -> close

Reports are accepted immediately and processed later, either one at a time
with ``investigate`` or in bulk by ``run_cycle``, which the background task
calls periodically. While the background task runs, critical and
mixed-content reports are investigated as soon as they arrive. Deployment works on a rule snapshot and publishes with
compare-and-swap, so the request path never waits on the loop.
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple

from puretrans.cleaning.cleaner import ContentCleaner
from puretrans.core.exceptions import EnhancementRegressionDetected, InvalidTransitionError
from puretrans.core.models import (
    Enhancement,
    EnhancementStatus,
    FeedbackReport,
    FeedbackStatus,
    Investigation,
    InvestigationStage,
    IssueKind,
    Language,
    LegalDomain,
    PatternKind,
    RootCause,
    Severity,
    TargetComponent,
)
from puretrans.core.validator import PurityValidator
from puretrans.detection.detector import PatternDetector
from puretrans.detection.rules import Rule
from puretrans.feedback.regression import RegressionSuite
from puretrans.monitoring.metrics import QualityMonitor
from puretrans.terminology.store import TerminologyStore

logger = logging.getLogger(__name__)

Stage = InvestigationStage
STAGE_TRANSITIONS = {
    Stage.INITIATED: {Stage.IN_PROGRESS},
    Stage.IN_PROGRESS: {Stage.FINDINGS_ANALYZED},
    Stage.FINDINGS_ANALYZED: {Stage.RESOLUTION_PLANNED, Stage.CLOSED},
    Stage.RESOLUTION_PLANNED: {Stage.RESOLUTION_IMPLEMENTED},
    Stage.RESOLUTION_IMPLEMENTED: {Stage.MONITORING},
    Stage.MONITORING: {Stage.CLOSED},
    Stage.CLOSED: set(),
}

REPORT_TRANSITIONS = {
    FeedbackStatus.NEW: {FeedbackStatus.INVESTIGATING},
    FeedbackStatus.INVESTIGATING: {FeedbackStatus.RESOLVED, FeedbackStatus.CLOSED},
    FeedbackStatus.RESOLVED: {FeedbackStatus.MONITORING},
    FeedbackStatus.MONITORING: {FeedbackStatus.CLOSED},
    FeedbackStatus.CLOSED: set(),
}

ENHANCEMENT_TRANSITIONS = {
    EnhancementStatus.PROPOSED: {EnhancementStatus.TESTED},
    EnhancementStatus.TESTED: {EnhancementStatus.DEPLOYED},
    EnhancementStatus.DEPLOYED: {EnhancementStatus.ROLLED_BACK},
    EnhancementStatus.ROLLED_BACK: set(),
}

# Tokens that look like leaked interface text in otherwise running prose
_SUSPECT_PATTERNS = (
    re.compile(r"(?<![\w-])[A-Z][A-Z0-9]*(?:[-_][A-Z0-9]+)+(?![\w-])"),  # AUTO-DRAFT, BTN_OK
    re.compile(r"(?<![\w.])[A-Za-z]+\d+(?:\.\d+)*(?![\w.])"),  # Beta2, GPT4
    re.compile(r"(?<!\w)[A-Z][a-z]+(?:[A-Z][A-Za-z]*)+(?!\w)"),  # LexiPro, JuristDZ
)

_CAS_ATTEMPTS = 3


def extract_suspects(text: str) -> List[str]:
    """Heuristic candidates for leaked interface tokens, in order of appearance."""
    found: List[Tuple[int, str]] = []
    for pattern in _SUSPECT_PATTERNS:
        for match in pattern.finditer(text):
            found.append((match.start(), match.group(0)))
    suspects: List[str] = []
    for _, token in sorted(found):
        if token not in suspects:
            suspects.append(token)
    return suspects


def _advance(machine: str, current, requested, transitions):
    if requested not in transitions[current]:
        raise InvalidTransitionError(machine, current.value, requested.value)
    return requested


class FeedbackLoop:
    """Investigate reports and deploy guarded enhancements."""

    def __init__(
        self,
        detector: PatternDetector,
        cleaner: ContentCleaner,
        validator: PurityValidator,
        terminology: TerminologyStore,
        regression_suite: RegressionSuite,
        monitor: Optional[QualityMonitor] = None,
        systemic_min_reports: int = 2,
    ):
        self.detector = detector
        self.cleaner = cleaner
        self.validator = validator
        self.terminology = terminology
        self.regression_suite = regression_suite
        self.monitor = monitor
        self.systemic_min_reports = systemic_min_reports

        self._lock = threading.Lock()
        self._reports: Dict[str, FeedbackReport] = {}
        self._pending: List[str] = []
        self._investigations: Dict[str, Investigation] = {}
        self._enhancements: Dict[str, Enhancement] = {}
        self._spiking_domains: Set[str] = set()
        self._task: Optional[asyncio.Task] = None
        self._immediate: Set[asyncio.Task] = set()

        if monitor is not None:
            monitor.add_spike_listener(self.on_spike)

    @classmethod
    def for_gateway(cls, gateway, systemic_min_reports: int = 2) -> FeedbackLoop:
        """Build a loop sharing the gateway's detector, store, suite and monitor."""
        suite = gateway.regression_suite
        if suite is None:
            suite = RegressionSuite(gateway.validator)
            gateway.regression_suite = suite
        return cls(
            detector=gateway.detector,
            cleaner=gateway.cleaner,
            validator=gateway.validator,
            terminology=gateway.terminology,
            regression_suite=suite,
            monitor=gateway.monitor,
            systemic_min_reports=systemic_min_reports,
        )

    # ------------------------------------------------------------------ #
    # Intake
    # ------------------------------------------------------------------ #

    def report_bad_translation(
        self,
        original_text: str,
        translated_text: str,
        reported_issue: str,
        issue_kind: IssueKind = IssueKind.OTHER,
        severity: Severity = Severity.MEDIUM,
        target_language: Language = Language.FRENCH,
        suspect_pattern: Optional[str] = None,
        correction: Optional[str] = None,
        domain: Optional[str] = None,
    ) -> str:
        """Queue a report and return its id immediately (status NEW)."""
        report = FeedbackReport(
            id=f"fb-{uuid.uuid4().hex[:12]}",
            reported_text=translated_text,
            issue_kind=issue_kind,
            severity=severity,
            original_text=original_text,
            reported_issue=reported_issue,
            target_language=target_language,
            suspect_pattern=(suspect_pattern or "").strip() or None,
            correction=(correction or "").strip() or None,
            domain=LegalDomain.parse(domain),
        )
        with self._lock:
            self._reports[report.id] = report
            self._pending.append(report.id)
        logger.info("Feedback report %s queued (%s, %s)", report.id, issue_kind.value, severity.name)
        if self.running and (severity is Severity.CRITICAL or issue_kind is IssueKind.MIXED_CONTENT):
            self._schedule_immediate(report.id)
        return report.id

    def _schedule_immediate(self, report_id: str) -> None:
        task = self._task.get_loop().create_task(self._investigate_now(report_id))
        self._immediate.add(task)
        task.add_done_callback(self._immediate_done)
        logger.info("Feedback report %s scheduled for immediate investigation", report_id)

    async def _investigate_now(self, report_id: str) -> Optional[Investigation]:
        if self.get_report(report_id).status is not FeedbackStatus.NEW:
            return None
        return await self.investigate(report_id)

    def _immediate_done(self, task: asyncio.Task) -> None:
        self._immediate.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Immediate investigation failed: %s", error, exc_info=error)

    def on_spike(self, domain: str, rate: float) -> None:
        """Monitor listener: reports in a spiking domain are handled first."""
        with self._lock:
            self._spiking_domains.add(domain)

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #

    def get_report(self, report_id: str) -> FeedbackReport:
        with self._lock:
            return self._reports[report_id]

    def get_enhancement(self, enhancement_id: str) -> Enhancement:
        with self._lock:
            return self._enhancements[enhancement_id]

    def get_investigation(self, investigation_id: str) -> Investigation:
        with self._lock:
            return self._investigations[investigation_id]

    def enhancements(self, status: Optional[EnhancementStatus] = None) -> List[Enhancement]:
        with self._lock:
            items = list(self._enhancements.values())
        return [e for e in items if status is None or e.status is status]

    def pending_reports(self) -> List[FeedbackReport]:
        with self._lock:
            return [self._reports[rid] for rid in self._pending
                    if self._reports[rid].status is FeedbackStatus.NEW]

    # ------------------------------------------------------------------ #
    # Investigation
    # ------------------------------------------------------------------ #

    async def investigate(self, report_id: str) -> Investigation:
        """Run the full investigation workflow for one report."""
        if report_id not in self._reports:
            raise KeyError(f"Unknown feedback report: {report_id}")
        return await self._investigate([report_id])

    async def _investigate(
        self,
        report_ids: Sequence[str],
        suspect: Optional[str] = None,
        priority: int = 0,
    ) -> Investigation:
        investigation = Investigation(
            id=f"inv-{uuid.uuid4().hex[:12]}",
            report_ids=list(report_ids),
            priority=priority,
            history=[Stage.INITIATED.value],
        )
        with self._lock:
            self._investigations[investigation.id] = investigation
            reports = [self._reports[rid] for rid in report_ids]
            for rid in report_ids:
                if rid in self._pending:
                    self._pending.remove(rid)
        for report in reports:
            self._set_report_status(report, FeedbackStatus.INVESTIGATING)

        self._set_stage(investigation, Stage.IN_PROGRESS)
        await asyncio.sleep(0)

        # Reproduce and derive root causes
        causes: List[RootCause] = []
        for report in reports:
            for cause in self._root_causes(report, suspect):
                if all(c.pattern != cause.pattern or c.component is not cause.component for c in causes):
                    causes.append(cause)
        investigation.root_causes = causes
        self._set_stage(investigation, Stage.FINDINGS_ANALYZED)
        await asyncio.sleep(0)

        if not causes:
            investigation.outcome = "no_action"
            logger.info("Investigation %s: nothing to fix for %s", investigation.id, list(report_ids))
            self._set_stage(investigation, Stage.CLOSED)
            for report in reports:
                self._set_report_status(report, FeedbackStatus.CLOSED)
            return investigation

        enhancements = [self._propose(cause, reports) for cause in causes]
        investigation.enhancement_ids = [e.id for e in enhancements]
        self._set_stage(investigation, Stage.RESOLUTION_PLANNED)
        await asyncio.sleep(0)

        blocked = False
        for enhancement in enhancements:
            try:
                await self._test_and_deploy(enhancement, reports)
            except EnhancementRegressionDetected as e:
                enhancement.requires_manual_review = True
                blocked = True
                logger.warning("%s; held for manual review", e.message)

        if blocked:
            investigation.outcome = "manual_review"
            return investigation

        self._set_stage(investigation, Stage.RESOLUTION_IMPLEMENTED)
        for report in reports:
            self._set_report_status(report, FeedbackStatus.RESOLVED)
        await asyncio.sleep(0)

        verified = all(self._verify(report, enhancements) for report in reports)
        self._set_stage(investigation, Stage.MONITORING)
        for report in reports:
            self._set_report_status(report, FeedbackStatus.MONITORING)

        investigation.outcome = "resolved" if verified else "deployed_unverified"
        if not verified:
            logger.warning("Investigation %s: deployed but pattern still survives cleaning", investigation.id)
        self._set_stage(investigation, Stage.CLOSED)
        for report in reports:
            self._set_report_status(report, FeedbackStatus.CLOSED)
        logger.info("Investigation %s closed (%s)", investigation.id, investigation.outcome)
        return investigation

    def _root_causes(self, report: FeedbackReport, forced_suspect: Optional[str]) -> List[RootCause]:
        language = report.target_language

        if report.issue_kind is IssueKind.TERMINOLOGY:
            if not (report.suspect_pattern and report.correction):
                return []
            current = self.terminology.lookup(report.suspect_pattern, language.other, language)
            if current == report.correction:
                return []
            return [RootCause(
                component=TargetComponent.TERMINOLOGY_STORE,
                family=None,
                pattern=report.suspect_pattern,
                explanation=f"maps to {current!r}, reported correct term is {report.correction!r}",
            )]

        suspects = ([report.suspect_pattern] if report.suspect_pattern
                    else self._heuristic_suspects(report.reported_text, language))
        if forced_suspect:
            # A group suspect comes first; the report's own suspects are still handled
            suspects = [forced_suspect] + [s for s in suspects if s != forced_suspect]
        family = self._family_for(report.issue_kind)

        causes = []
        for candidate in suspects:
            if self._is_covered(report.reported_text, candidate, language):
                logger.debug("Pattern %r already caught by the detector", candidate)
                continue
            causes.append(RootCause(
                component=TargetComponent.PATTERN_DETECTOR,
                family=family,
                pattern=candidate,
                explanation=f"{family.value} rules do not match {candidate!r}",
                reproduced=candidate in report.reported_text,
            ))
        return causes

    def _heuristic_suspects(self, text: str, language: Language) -> List[str]:
        suspects = []
        for token in extract_suspects(text):
            if self.terminology.lookup(token, language, language.other) is not None:
                continue
            if self.terminology.lookup(token, language.other, language) is not None:
                continue
            suspects.append(token)
        return suspects

    @staticmethod
    def _family_for(issue_kind: IssueKind) -> PatternKind:
        if issue_kind is IssueKind.ENCODING:
            return PatternKind.ENCODING_CORRUPTION
        if issue_kind is IssueKind.MIXED_CONTENT:
            return PatternKind.FOREIGN_FRAGMENT
        return PatternKind.UI_ARTIFACT

    def _is_covered(self, text: str, pattern: str, language: Language) -> bool:
        findings = self.detector.detect(text, language)
        spans = [(m.start(), m.end()) for m in re.finditer(re.escape(pattern), text)]
        if not spans:
            findings = self.detector.detect(pattern, language)
            spans = [(0, len(pattern))]
        return all(
            any(f.position <= start and f.end >= end for f in findings)
            for start, end in spans
        )

    # ------------------------------------------------------------------ #
    # Enhancements
    # ------------------------------------------------------------------ #

    def _propose(self, cause: RootCause, reports: Sequence[FeedbackReport]) -> Enhancement:
        report = reports[0]
        language = report.target_language
        if cause.component is TargetComponent.TERMINOLOGY_STORE:
            payload = {
                "source_term": cause.pattern,
                "target_term": report.correction,
                "source_language": language.other.value,
                "target_language": language.value,
                "domain": (report.domain or LegalDomain.GENERAL).value,
            }
            description = f"Map {cause.pattern!r} to {report.correction!r}"
        else:
            payload = {
                "family": cause.family.value,
                "pattern": cause.pattern,
                "language": language.value,
            }
            description = f"Add {cause.family.value} rule for {cause.pattern!r}"

        enhancement = Enhancement(
            id=f"enh-{uuid.uuid4().hex[:12]}",
            target_component=cause.component,
            description=description,
            payload=payload,
            source_reports=[r.id for r in reports],
        )
        with self._lock:
            self._enhancements[enhancement.id] = enhancement
        logger.info("Proposed enhancement %s: %s", enhancement.id, description)
        return enhancement

    def _build_rule(self, enhancement: Enhancement) -> Rule:
        family = PatternKind(enhancement.payload["family"])
        pattern = enhancement.payload["pattern"]
        language = Language(enhancement.payload["language"])
        if family is PatternKind.ENCODING_CORRUPTION:
            return Rule.create(family, re.escape(pattern), Severity.HIGH, origin="feedback", is_regex=True)
        if family is PatternKind.FOREIGN_FRAGMENT:
            return Rule.create(family, pattern, Severity.MEDIUM, origin="feedback",
                               case_sensitive=False, languages=frozenset({language}))
        return Rule.create(family, pattern, Severity.CRITICAL, origin="feedback")

    async def _test_and_deploy(self, enhancement: Enhancement, reports: Sequence[FeedbackReport]) -> None:
        if enhancement.target_component is TargetComponent.TERMINOLOGY_STORE:
            self._deploy_terminology(enhancement)
            return
        reported = [r.reported_text for r in reports]
        await self._deploy_rule(enhancement, reported)
        # Reported outputs were accepted under the old rules and are no longer valid samples
        for text in reported:
            self.regression_suite.discard(text)

    async def _deploy_rule(self, enhancement: Enhancement, reported: Sequence[str] = ()) -> None:
        rule = self._build_rule(enhancement)
        for _ in range(_CAS_ATTEMPTS):
            base = self.detector.snapshot()
            candidate = base.with_rule(rule)
            # The dry run scans the whole suite; keep it off the event loop
            failures = await asyncio.to_thread(self.regression_suite.dry_run, candidate, exclude=reported)
            if failures:
                enhancement.regression_failures = failures
                raise EnhancementRegressionDetected(enhancement.id, failures)
            if enhancement.status is EnhancementStatus.PROPOSED:
                self._set_enhancement_status(enhancement, EnhancementStatus.TESTED)
            if self.detector.publish(candidate, base.version):
                enhancement.rollback_token = rule.rule_id
                enhancement.deployed_at = datetime.now()
                self._set_enhancement_status(enhancement, EnhancementStatus.DEPLOYED)
                logger.info("Deployed enhancement %s as rule %s (rules v%d)",
                            enhancement.id, rule.rule_id, candidate.version)
                return
            logger.info("Rules changed during deployment of %s, rebasing", enhancement.id)
        raise InvalidTransitionError("Enhancement", enhancement.status.value, EnhancementStatus.DEPLOYED.value)

    def _deploy_terminology(self, enhancement: Enhancement) -> None:
        payload = enhancement.payload
        target_language = Language(payload["target_language"])
        target_term = payload["target_term"]
        findings = self.detector.detect(target_term, target_language)
        if findings or not self.validator.validate(target_term, target_language).passes:
            failures = [f"corrected term {target_term!r} is not pure {target_language.value}"]
            enhancement.regression_failures = failures
            raise EnhancementRegressionDetected(enhancement.id, failures)
        self._set_enhancement_status(enhancement, EnhancementStatus.TESTED)

        source_language = Language(payload["source_language"])
        self.terminology.add_entry(
            payload["source_term"],
            target_term,
            source_language,
            target_language,
            domain=LegalDomain.parse(payload.get("domain")) or LegalDomain.GENERAL,
            origin="feedback",
        )
        enhancement.rollback_token = (payload["source_term"], source_language.value, target_language.value)
        enhancement.deployed_at = datetime.now()
        self._set_enhancement_status(enhancement, EnhancementStatus.DEPLOYED)
        logger.info("Deployed terminology enhancement %s", enhancement.id)

    def _verify(self, report: FeedbackReport, enhancements: Sequence[Enhancement]) -> bool:
        language = report.target_language
        for enhancement in enhancements:
            if report.id not in enhancement.source_reports:
                continue
            if enhancement.target_component is TargetComponent.TERMINOLOGY_STORE:
                payload = enhancement.payload
                mapped = self.terminology.lookup(
                    payload["source_term"], Language(payload["source_language"]), language
                )
                if mapped != payload["target_term"]:
                    return False
                continue
            cleaned = self.cleaner.clean(report.reported_text, language).cleaned_text
            pattern = enhancement.payload["pattern"]
            if pattern in cleaned or self.detector.detect(cleaned, language):
                return False
        return True

    def rollback_enhancement(self, enhancement_id: str) -> Enhancement:
        """Undo a deployed enhancement by retiring its rule or its dictionary version."""
        enhancement = self.get_enhancement(enhancement_id)
        if enhancement.status is not EnhancementStatus.DEPLOYED:
            raise InvalidTransitionError("Enhancement", enhancement.status.value,
                                         EnhancementStatus.ROLLED_BACK.value)
        if enhancement.target_component is TargetComponent.TERMINOLOGY_STORE:
            term, source, target = enhancement.rollback_token
            self.terminology.rollback_entry(term, Language(source), Language(target))
        else:
            self.detector.retire_rule(enhancement.rollback_token)
        self._set_enhancement_status(enhancement, EnhancementStatus.ROLLED_BACK)
        logger.info("Rolled back enhancement %s", enhancement_id)
        return enhancement

    # ------------------------------------------------------------------ #
    # Bulk cycle
    # ------------------------------------------------------------------ #

    async def run_cycle(self) -> List[Investigation]:
        """
        Process every queued report.

        Suspects reported independently at least ``systemic_min_reports`` times
        are investigated first as one group; reports from domains with a
        fallback spike come before the rest.
        """
        pending = self.pending_reports()
        if not pending:
            return []

        with self._lock:
            spiking = set(self._spiking_domains)
        if self.monitor is not None:
            spiking.update(self.monitor.spiking_domains())

        def domain_priority(report: FeedbackReport) -> int:
            return 1 if report.domain is not None and report.domain.value in spiking else 0

        by_suspect: Dict[str, List[FeedbackReport]] = {}
        for report in pending:
            if report.issue_kind is IssueKind.TERMINOLOGY:
                continue
            suspects = ([report.suspect_pattern] if report.suspect_pattern
                        else self._heuristic_suspects(report.reported_text, report.target_language))
            for suspect in suspects:
                by_suspect.setdefault(suspect, []).append(report)

        systemic = [
            (suspect, reports) for suspect, reports in by_suspect.items()
            if len({r.id for r in reports}) >= self.systemic_min_reports
        ]
        systemic.sort(key=lambda item: (-max(domain_priority(r) for r in item[1]), -len(item[1])))

        results: List[Investigation] = []
        handled: Set[str] = set()
        for suspect, reports in systemic:
            ids = [r.id for r in reports if r.id not in handled and r.status is FeedbackStatus.NEW]
            if not ids:
                continue
            priority = 2 + max(domain_priority(r) for r in reports)
            logger.info("Systemic pattern %r in %d reports", suspect, len(ids))
            results.append(await self._investigate(ids, suspect=suspect, priority=priority))
            handled.update(ids)

        remaining = [r for r in pending if r.id not in handled and r.status is FeedbackStatus.NEW]
        remaining.sort(key=lambda r: (-domain_priority(r), -r.severity.value, r.created_at))
        for report in remaining:
            if report.status is not FeedbackStatus.NEW:
                continue  # claimed by an immediate investigation
            results.append(await self._investigate([report.id], priority=domain_priority(report)))

        with self._lock:
            self._spiking_domains.clear()
        return results

    def start(self, interval: float = 300.0) -> asyncio.Task:
        """Run ``run_cycle`` every ``interval`` seconds on the current event loop."""
        if self._task is not None and not self._task.done():
            return self._task

        async def _loop():
            while True:
                try:
                    investigations = await self.run_cycle()
                    if investigations:
                        logger.info("Feedback cycle processed %d investigations", len(investigations))
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("Feedback cycle failed")
                await asyncio.sleep(interval)

        self._task = asyncio.get_running_loop().create_task(_loop())
        logger.info("Feedback loop started (interval %.0fs)", interval)
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        pending = [self._task, *self._immediate]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._immediate.clear()
        self._task = None
        logger.info("Feedback loop stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------ #
    # State machines
    # ------------------------------------------------------------------ #

    def _set_stage(self, investigation: Investigation, stage: InvestigationStage) -> None:
        investigation.stage = _advance("Investigation", investigation.stage, stage, STAGE_TRANSITIONS)
        investigation.history.append(stage.value)

    def _set_report_status(self, report: FeedbackReport, status: FeedbackStatus) -> None:
        with self._lock:
            report.status = _advance("FeedbackReport", report.status, status, REPORT_TRANSITIONS)

    def _set_enhancement_status(self, enhancement: Enhancement, status: EnhancementStatus) -> None:
        enhancement.status = _advance("Enhancement", enhancement.status, status, ENHANCEMENT_TRANSITIONS)
