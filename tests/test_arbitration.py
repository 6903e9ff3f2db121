"""
Tests for the judgment gate and the arbitration phase.

Coroutines are driven with asyncio.run.
"""

import asyncio
import math

import pytest

from intake_judgment.decision import (
    ArbitrationConfig,
    ArbitrationError,
    ArbitrationSummary,
    JudgmentContext,
    JudgmentDecision,
    JudgmentGate,
    JudgmentOutcome,
    PromptArbitrator,
)
from intake_judgment.doctypes import DocumentType
from intake_judgment.ensemble import ConflictReport, ConflictSeverity, FieldConflict
from intake_judgment.retry import CorrectedOnRetry, StillFailing
from intake_judgment.validation import AuditCheck, AuditReport, CheckType


WARNING = AuditCheck.warning(CheckType.VAT_RATE, 'vat_amount', "odd rate")
CRITICAL = AuditCheck.critical_failure(CheckType.MATH, 'total_amount', "bad total")


def make_context(confidence, checks=(), retry=None, conflicts=()):
    return JudgmentContext(
        extraction_confidence=confidence,
        audit_report=AuditReport.from_checks(checks),
        consensus_report=ConflictReport(tuple(conflicts)),
        retry_result=retry,
        document_type=DocumentType.INVOICE,
        has_essential_fields=True,
    )


class RecordingArbitrator:
    """Returns a fixed verdict and counts calls."""

    def __init__(self, outcome=JudgmentOutcome.NEEDS_REVIEW, confidence=0.6):
        self.outcome = outcome
        self.confidence = confidence
        self.calls = []

    async def arbitrate(self, summary):
        self.calls.append(summary)
        return JudgmentDecision(
            self.outcome, self.confidence, "Second opinion",
            issues_for_user=("Please double-check the total",),
            decided_by='arbitration',
        )


class SlowArbitrator:
    async def arbitrate(self, summary):
        await asyncio.sleep(5)
        return JudgmentDecision(JudgmentOutcome.REJECT, 1.0, "too late")


class BrokenArbitrator:
    async def arbitrate(self, summary):
        raise ConnectionError("inference backend unreachable")


class WrongTypeArbitrator:
    async def arbitrate(self, summary):
        return "AUTO_APPROVE"


class NonFiniteArbitrator:
    async def arbitrate(self, summary):
        return JudgmentDecision(JudgmentOutcome.AUTO_APPROVE, float("nan"), "unsure")


def enabled(timeout=0.5):
    return ArbitrationConfig(enabled=True, timeout_seconds=timeout)


class TestJudgmentGate:
    """Tests for when arbitration runs and how failures degrade."""

    def test_clear_cut_never_arbitrated(self):
        arbitrator = RecordingArbitrator()
        gate = JudgmentGate(arbitrator=arbitrator, arbitration=enabled())

        decision = asyncio.run(gate.judge(make_context(0.90)))

        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE
        assert decision.decided_by == 'deterministic'
        assert arbitrator.calls == []

    def test_reject_never_arbitrated(self):
        arbitrator = RecordingArbitrator(JudgmentOutcome.AUTO_APPROVE)
        gate = JudgmentGate(arbitrator=arbitrator, arbitration=enabled())

        decision = asyncio.run(gate.judge(make_context(0.95, checks=(CRITICAL,))))

        assert decision.outcome is JudgmentOutcome.REJECT
        assert arbitrator.calls == []

    def test_borderline_decision_is_arbitrated(self):
        arbitrator = RecordingArbitrator(JudgmentOutcome.NEEDS_REVIEW, 0.6)
        gate = JudgmentGate(arbitrator=arbitrator, arbitration=enabled())
        retry = CorrectedOnRetry(1, ('total_amount',))

        decision = asyncio.run(gate.judge(make_context(0.82, retry=retry)))

        assert len(arbitrator.calls) == 1
        assert decision.outcome is JudgmentOutcome.NEEDS_REVIEW
        assert decision.decided_by == 'arbitration'
        assert decision.issues_for_user == ("Please double-check the total",)
        # Facts about the document come from the deterministic phase
        assert decision.retry_attempts == 1
        assert decision.corrected_fields == ('total_amount',)

    def test_disabled_by_default(self):
        arbitrator = RecordingArbitrator()
        gate = JudgmentGate(arbitrator=arbitrator)

        decision = asyncio.run(gate.judge(make_context(0.82)))

        assert decision.decided_by == 'deterministic'
        assert arbitrator.calls == []

    def test_per_call_override(self):
        arbitrator = RecordingArbitrator()
        gate = JudgmentGate(arbitrator=arbitrator)

        asyncio.run(gate.judge(make_context(0.82), use_arbitration=True))
        assert len(arbitrator.calls) == 1

        gate = JudgmentGate(arbitrator=arbitrator, arbitration=enabled())
        asyncio.run(gate.judge(make_context(0.82), use_arbitration=False))
        assert len(arbitrator.calls) == 1

    def test_no_arbitrator_wired(self):
        gate = JudgmentGate(arbitration=enabled())
        decision = asyncio.run(gate.judge(make_context(0.82)))
        assert decision == gate.judge_sync(make_context(0.82))

    @pytest.mark.parametrize('arbitrator', [
        SlowArbitrator(),
        BrokenArbitrator(),
        WrongTypeArbitrator(),
        NonFiniteArbitrator(),
        PromptArbitrator(lambda prompt: asyncio.sleep(
            0, result='{"decision": "AUTO_APPROVE", "confidence": NaN}'
        )),
        PromptArbitrator(lambda prompt: asyncio.sleep(0, result="I cannot decide")),
    ])
    def test_failures_fall_back_to_deterministic(self, arbitrator):
        gate = JudgmentGate(arbitrator=arbitrator, arbitration=enabled(timeout=0.05))
        context = make_context(0.82)

        decision = asyncio.run(gate.judge(context))

        assert decision == gate.judge_sync(context)
        assert decision.decided_by == 'deterministic'
        assert math.isfinite(decision.confidence)

    def test_judge_sync_is_deterministic(self):
        gate = JudgmentGate()
        context = make_context(0.65, checks=(WARNING,))
        assert gate.judge_sync(context) == gate.judge_sync(context)
        assert gate.judge_sync(context).outcome is JudgmentOutcome.NEEDS_REVIEW


class TestPromptArbitrator:
    """Tests for reading collaborator answers."""

    def setup_method(self):
        self.arbitrator = PromptArbitrator(lambda prompt: asyncio.sleep(0, result=""))

    def test_json_answer(self):
        decision = self.arbitrator.parse_response(
            'Here is my verdict:\n'
            '{"decision": "NEEDS_REVIEW", "confidence": 0.7, '
            '"reasoning": "Totals disagree", "issuesForUser": ["Check total"]}'
        )
        assert decision.outcome is JudgmentOutcome.NEEDS_REVIEW
        assert decision.confidence == 0.7
        assert decision.reasoning == "Totals disagree"
        assert decision.issues_for_user == ("Check total",)
        assert decision.decided_by == 'arbitration'

    def test_json_confidence_is_clamped(self):
        decision = self.arbitrator.parse_response('{"decision": "AUTOAPPROVE", "confidence": 3}')
        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE
        assert decision.confidence == 1.0

    def test_keyword_fallback(self):
        approve = self.arbitrator.parse_response("Verdict: AUTO_APPROVE")
        assert approve.outcome is JudgmentOutcome.AUTO_APPROVE
        assert approve.confidence == 0.8

        review = self.arbitrator.parse_response("needs_review, the VAT looks odd")
        assert review.outcome is JudgmentOutcome.NEEDS_REVIEW
        assert review.confidence == 0.6

        reject = self.arbitrator.parse_response("I would reject this one")
        assert reject.outcome is JudgmentOutcome.REJECT

    def test_non_finite_confidence(self):
        for value in ("NaN", "Infinity", "-Infinity"):
            with pytest.raises(ArbitrationError):
                self.arbitrator.parse_response(
                    f'{{"decision": "AUTO_APPROVE", "confidence": {value}}}'
                )

    def test_malformed_json_falls_back_to_keywords(self):
        decision = self.arbitrator.parse_response('{"decision": REJECT,}')
        assert decision.outcome is JudgmentOutcome.REJECT

    def test_unparseable_answer(self):
        with pytest.raises(ArbitrationError):
            self.arbitrator.parse_response("I am not sure what to say")

    def test_arbitrate_sends_summary(self):
        prompts = []

        async def complete(prompt):
            prompts.append(prompt)
            return '{"decision": "AUTO_APPROVE", "confidence": 0.83, "reasoning": "ok"}'

        arbitrator = PromptArbitrator(complete)
        summary = ArbitrationSummary.from_context(make_context(0.82))

        decision = asyncio.run(arbitrator.arbitrate(summary))

        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE
        assert "# Document Analysis Report" in prompts[0]
        assert "Respond with ONLY a JSON object" in prompts[0]


class TestArbitrationSummary:
    """Tests for the structured summary shown to the collaborator."""

    def test_sections(self):
        conflict = FieldConflict(
            'total_amount', '120.00', '121.00', '121.00', 'expert', ConflictSeverity.CRITICAL
        )
        context = make_context(
            0.82,
            checks=(WARNING,) * 5,
            retry=StillFailing(2, (CRITICAL,)),
            conflicts=(conflict,),
        )
        text = ArbitrationSummary.from_context(context).to_text()

        assert "- Document Type: INVOICE" in text
        assert "- Extraction Confidence: 82%" in text
        assert "[CRITICAL] total_amount: '120.00' vs '121.00'" in text
        assert "- Failed: 5" in text
        assert "... and 2 more" in text
        assert "Still failing after 2 retry attempts" in text

    def test_without_retry_or_conflicts(self):
        text = ArbitrationSummary.from_context(make_context(0.9)).to_text()
        assert "No conflicts" in text
        assert "Self-correction not attempted" in text
