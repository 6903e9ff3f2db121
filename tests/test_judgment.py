"""
Tests for the deterministic judgment criteria.
"""

import pytest

from intake_judgment.decision import (
    JudgmentConfig,
    JudgmentContext,
    JudgmentCriteria,
    JudgmentDecision,
    JudgmentOutcome,
)
from intake_judgment.doctypes import DocumentType
from intake_judgment.ensemble import ConflictReport, ConflictSeverity, FieldConflict
from intake_judgment.retry import CorrectedOnRetry, NoRetryNeeded, StillFailing
from intake_judgment.validation import AuditCheck, AuditReport, CheckType


PASSING = AuditCheck.passing(CheckType.MATH, 'total_amount', "Subtotal + VAT matches total")
WARNING = AuditCheck.warning(CheckType.VAT_RATE, 'vat_amount', "Implied VAT rate 18% is not standard")
CRITICAL = AuditCheck.critical_failure(CheckType.MATH, 'total_amount', "Total does not add up")


def total_conflict(chosen_source='expert'):
    return FieldConflict(
        field='total_amount',
        fast_value='120.00',
        expert_value='121.00',
        chosen_value='121.00' if chosen_source != 'none' else None,
        chosen_source=chosen_source,
        severity=ConflictSeverity.CRITICAL,
    )


def make_context(confidence=0.9, checks=(PASSING,), conflicts=None, retry=None,
                 document_type=DocumentType.INVOICE, missing=()):
    return JudgmentContext(
        extraction_confidence=confidence,
        audit_report=AuditReport.from_checks(checks),
        consensus_report=ConflictReport(tuple(conflicts)) if conflicts is not None else None,
        retry_result=retry,
        document_type=document_type,
        has_essential_fields=not missing,
        missing_essential_fields=missing,
    )


class TestAutoApprove:
    """Clean extractions are processed silently."""

    def setup_method(self):
        self.criteria = JudgmentCriteria()

    def test_clean_extraction(self):
        decision = self.criteria.evaluate(make_context(0.9, conflicts=[]))

        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE
        assert decision.confidence >= 0.85
        assert decision.all_critical_checks_passed
        assert decision.has_model_consensus
        assert decision.issues_for_user == ()
        assert self.criteria.is_clear_cut(decision)

    def test_borderline_approval_is_not_clear_cut(self):
        decision = self.criteria.evaluate(make_context(0.82))
        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE
        assert not self.criteria.is_clear_cut(decision)

    def test_threshold_is_inclusive(self):
        assert self.criteria.evaluate(make_context(0.80)).outcome is JudgmentOutcome.AUTO_APPROVE

    def test_missing_consensus_report_counts_as_consensus(self):
        decision = self.criteria.evaluate(make_context(0.9, conflicts=None))
        assert decision.has_model_consensus

    def test_corrected_on_retry(self):
        retry = CorrectedOnRetry(attempt=1, corrected_fields=('total_amount',), original_failures=(CRITICAL,))
        decision = self.criteria.evaluate(make_context(0.9, retry=retry))

        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE
        assert decision.retry_attempts == 1
        assert decision.corrected_fields == ('total_amount',)
        assert 'total_amount' in decision.reasoning

    def test_no_retry_needed_is_neutral(self):
        decision = self.criteria.evaluate(make_context(0.9, retry=NoRetryNeeded()))
        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE
        assert decision.retry_attempts == 0


class TestReject:
    """Unusable documents go to manual processing."""

    def setup_method(self):
        self.criteria = JudgmentCriteria()

    def test_unknown_document_type(self):
        decision = self.criteria.evaluate(make_context(document_type=DocumentType.UNKNOWN))
        assert decision.outcome is JudgmentOutcome.REJECT
        assert 'document type' in decision.reasoning.lower()

    def test_missing_essential_fields(self):
        decision = self.criteria.evaluate(make_context(missing=('total_amount',)))

        assert decision.outcome is JudgmentOutcome.REJECT
        assert 'Essential fields missing' in decision.reasoning
        assert any('total_amount' in issue for issue in decision.issues_for_user)

    def test_critical_audit_failure(self):
        decision = self.criteria.evaluate(make_context(0.95, checks=(PASSING, CRITICAL)))

        assert decision.outcome is JudgmentOutcome.REJECT
        assert not decision.all_critical_checks_passed
        assert any('Total does not add up' in issue for issue in decision.issues_for_user)

    def test_still_failing_after_retries(self):
        retry = StillFailing(attempts=2, remaining_failures=(CRITICAL,))
        decision = self.criteria.evaluate(make_context(0.9, checks=(CRITICAL,), retry=retry))

        assert decision.outcome is JudgmentOutcome.REJECT
        assert 'retry' in decision.reasoning.lower()
        assert decision.retry_attempts == 2

    def test_still_failing_without_audit_failures(self):
        retry = StillFailing(attempts=1, remaining_failures=(CRITICAL,))
        decision = self.criteria.evaluate(make_context(0.9, retry=retry))
        assert decision.outcome is JudgmentOutcome.REJECT

    def test_low_confidence_regardless_of_other_fields(self):
        decision = self.criteria.evaluate(make_context(0.40, conflicts=[]))

        assert decision.outcome is JudgmentOutcome.REJECT
        assert 'confidence' in decision.reasoning.lower()
        assert any('confidence' in issue.lower() for issue in decision.issues_for_user)

    def test_all_reasons_are_collected(self):
        decision = self.criteria.evaluate(make_context(
            0.3, checks=(CRITICAL,), document_type=DocumentType.UNKNOWN, missing=('document_type',),
        ))
        reasoning = decision.reasoning.lower()
        assert 'document type' in reasoning
        assert 'essential fields missing' in reasoning
        assert 'critical audit failure' in reasoning
        assert 'confidence' in reasoning

    def test_reject_is_always_clear_cut(self):
        decision = self.criteria.evaluate(make_context(0.40))
        assert self.criteria.is_clear_cut(decision)


class TestNeedsReview:
    """Uncertain documents are shown to the user with issues."""

    def setup_method(self):
        self.criteria = JudgmentCriteria()

    def test_moderate_confidence_with_warning(self):
        decision = self.criteria.evaluate(make_context(0.65, checks=(PASSING, WARNING)))

        assert decision.outcome is JudgmentOutcome.NEEDS_REVIEW
        assert decision.all_critical_checks_passed
        assert decision.issues_for_user
        assert self.criteria.is_clear_cut(decision)

    def test_moderate_confidence(self):
        decision = self.criteria.evaluate(make_context(0.70))
        assert decision.outcome is JudgmentOutcome.NEEDS_REVIEW
        assert any('confidence' in issue.lower() for issue in decision.issues_for_user)

    def test_warning_blocks_auto_approve_by_default(self):
        decision = self.criteria.evaluate(make_context(0.95, checks=(PASSING, WARNING)))
        assert decision.outcome is JudgmentOutcome.NEEDS_REVIEW

    def test_resolved_critical_conflict_requires_review(self):
        decision = self.criteria.evaluate(make_context(0.9, conflicts=[total_conflict()]))

        assert decision.outcome is JudgmentOutcome.NEEDS_REVIEW
        assert not decision.has_model_consensus
        assert any('total_amount' in issue for issue in decision.issues_for_user)

    def test_resolved_critical_conflict_allowed_without_consensus_rule(self):
        criteria = JudgmentCriteria(JudgmentConfig(require_consensus_for_auto_approve=False))
        decision = criteria.evaluate(make_context(0.9, conflicts=[total_conflict()]))
        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE
        assert not decision.has_model_consensus

    def test_unresolved_critical_conflict_always_blocks(self):
        criteria = JudgmentCriteria(JudgmentConfig(require_consensus_for_auto_approve=False))
        decision = criteria.evaluate(make_context(0.9, conflicts=[total_conflict('none')]))
        assert decision.outcome is JudgmentOutcome.NEEDS_REVIEW

    def test_warning_conflict_does_not_block(self):
        conflict = FieldConflict('seller_name', 'Acme', 'ACME NV', 'ACME NV', 'expert', ConflictSeverity.WARNING)
        decision = self.criteria.evaluate(make_context(0.9, conflicts=[conflict]))
        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE
        assert not decision.has_model_consensus

    def test_too_many_warnings(self):
        config = JudgmentConfig(auto_approve_with_warnings=False, max_warnings_for_auto_approve=2)
        decision = JudgmentCriteria(config).evaluate(make_context(0.9, checks=(WARNING,) * 5))
        assert decision.outcome is JudgmentOutcome.NEEDS_REVIEW

    def test_warnings_within_limit(self):
        config = JudgmentConfig(max_warnings_for_auto_approve=2)
        decision = JudgmentCriteria(config).evaluate(make_context(0.9, checks=(WARNING,) * 2))
        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE

    def test_review_without_issues_is_not_clear_cut_above_floor(self):
        decision = JudgmentDecision(JudgmentOutcome.NEEDS_REVIEW, 0.7, "unsure")
        assert not self.criteria.is_clear_cut(decision)
        low = JudgmentDecision(JudgmentOutcome.NEEDS_REVIEW, 0.5, "unsure")
        assert self.criteria.is_clear_cut(low)


class TestPresets:
    """Tests for STRICT and LENIENT presets."""

    def test_strict(self):
        decision = JudgmentCriteria(JudgmentConfig.strict()).evaluate(make_context(0.82))
        assert decision.outcome is JudgmentOutcome.NEEDS_REVIEW

    def test_lenient(self):
        decision = JudgmentCriteria(JudgmentConfig.lenient()).evaluate(make_context(0.72))
        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE

    def test_lenient_accepts_warnings(self):
        decision = JudgmentCriteria(JudgmentConfig.lenient()).evaluate(
            make_context(0.9, checks=(WARNING,))
        )
        assert decision.outcome is JudgmentOutcome.AUTO_APPROVE

    def test_preset_by_name(self):
        assert JudgmentConfig.preset('STRICT').auto_approve_threshold == 0.90
        assert JudgmentConfig.preset('default') == JudgmentConfig()
        with pytest.raises(ValueError):
            JudgmentConfig.preset('reckless')


class TestDeterminism:
    """Same context, same decision."""

    def test_repeated_evaluation(self):
        criteria = JudgmentCriteria()
        context = make_context(0.7, checks=(PASSING, WARNING), conflicts=[total_conflict()])
        assert criteria.evaluate(context) == criteria.evaluate(context)

    def test_can_potentially_auto_approve(self):
        criteria = JudgmentCriteria()
        assert criteria.can_potentially_auto_approve(make_context(0.9))
        assert not criteria.can_potentially_auto_approve(make_context(0.9, checks=(CRITICAL,)))
        assert not criteria.can_potentially_auto_approve(make_context(0.6))
