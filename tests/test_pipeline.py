"""
End-to-end tests for the decision pipeline.
"""

import asyncio
import json

from intake_judgment import (
    ArbitrationConfig,
    ChecksumResults,
    DecisionPipeline,
    DocumentClassification,
    DocumentDirection,
    DocumentType,
    ExtractionCandidate,
    ExtractionSource,
    JudgmentDecision,
    JudgmentOutcome,
    PipelineConfig,
    StillFailing,
    TenantIdentity,
    ValidationResult,
)
from intake_judgment.ensemble import NoData, SingleSource, Unanimous, WithConflicts
from intake_judgment.validation import AuditCheck, AuditStatus, CheckType, Severity


TENANT = TenantIdentity(vat_number='BE0123456789', legal_name='Acme Consulting NV')
INVOICE = DocumentClassification(DocumentType.INVOICE, 0.95)

INVOICE_FIELDS = {
    'invoice_number': 'F2024-001',
    'issue_date': '2024-01-15',
    'seller_name': 'Telenet BV',
    'seller_vat': 'BE0473416418',
    'buyer_name': 'Acme Consulting NV',
    'buyer_vat': 'BE0123456789',
    'subtotal': '100.00',
    'vat_amount': '21.00',
    'total_amount': '121.00',
}


def candidate(source, confidence, **overrides):
    fields = dict(INVOICE_FIELDS)
    fields.update(overrides)
    return ExtractionCandidate(fields=fields, confidence=confidence, source=source)


def fast(confidence=0.90, **overrides):
    return candidate(ExtractionSource.FAST, confidence, **overrides)


def expert(confidence=0.92, **overrides):
    return candidate(ExtractionSource.EXPERT, confidence, **overrides)


class FixedArbitrator:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = 0

    async def arbitrate(self, summary):
        self.calls += 1
        return JudgmentDecision(self.outcome, 0.7, "Arbitrated", decided_by='arbitration')


class TestDecisionPipeline:
    """Tests for the full deterministic path."""

    def setup_method(self):
        self.pipeline = DecisionPipeline()

    def test_clean_inbound_invoice(self):
        result = self.pipeline.process(fast(), expert(), INVOICE, TENANT)

        assert isinstance(result.consensus, Unanimous)
        assert result.audit_report.overall_status is AuditStatus.PASS
        assert result.direction.direction is DocumentDirection.INBOUND
        assert result.direction.counterparty_vat == 'BE0473416418'
        assert result.essential_fields.has_all_fields
        assert result.judgment.outcome is JudgmentOutcome.AUTO_APPROVE
        assert result.is_auto_approved

    def test_counterparty_integrity_check_is_merged(self):
        result = self.pipeline.process(
            fast(seller_vat='BE0123456789'), expert(seller_vat='BE0123456789'), INVOICE, TENANT,
        )
        integrity = result.audit_report.checks_of_type(CheckType.COUNTERPARTY_INTEGRITY)

        assert len(integrity) == 1
        assert integrity[0].severity is Severity.CRITICAL
        # The arithmetic still passes, the invariant still rejects
        assert result.audit_report.checks_of_type(CheckType.MATH)[0].passed
        assert result.judgment.outcome is JudgmentOutcome.REJECT

    def test_conflicting_totals_need_review(self):
        result = self.pipeline.process(fast(total_amount='112.00'), expert(), INVOICE, TENANT)

        assert isinstance(result.consensus, WithConflicts)
        conflict = result.consensus.report.conflicts[0]
        assert conflict.field == 'total_amount'
        assert conflict.chosen_source == 'expert'
        assert result.audit_report.overall_status is AuditStatus.PASS
        assert result.judgment.outcome is JudgmentOutcome.NEEDS_REVIEW
        assert not result.judgment.has_model_consensus

    def test_expert_only(self):
        result = self.pipeline.process(None, expert(0.9), INVOICE, TENANT)

        assert isinstance(result.consensus, SingleSource)
        assert result.consensus.data.confidence == 0.9
        assert result.judgment.outcome is JudgmentOutcome.AUTO_APPROVE

    def test_no_candidates_still_judged(self):
        result = self.pipeline.process(None, None, INVOICE, TENANT)

        assert isinstance(result.consensus, NoData)
        assert result.judgment.outcome is JudgmentOutcome.REJECT
        assert 'total_amount' in result.essential_fields.missing_fields

    def test_unconfident_classification_is_unknown(self):
        result = self.pipeline.process(
            fast(), expert(), DocumentClassification(DocumentType.INVOICE, 0.2), TENANT,
        )
        assert result.document_type is DocumentType.UNKNOWN
        assert result.judgment.outcome is JudgmentOutcome.REJECT

    def test_missing_classification(self):
        result = self.pipeline.process(fast(), expert(), None, TENANT)
        assert result.document_type is DocumentType.UNKNOWN

    def test_invalid_iban_checksum_rejects(self):
        checksums = ChecksumResults(iban=ValidationResult(False, message="mod-97 failed"))
        result = self.pipeline.process(fast(), expert(), INVOICE, TENANT, checksums)

        assert result.audit_report.critical_failures[0].check_type is CheckType.CHECKSUM_IBAN
        assert result.judgment.outcome is JudgmentOutcome.REJECT

    def test_still_failing_retry_rejects(self):
        failure = AuditCheck.critical_failure(CheckType.MATH, 'total_amount', "bad total")
        result = self.pipeline.process(
            fast(total_amount='120.00'), expert(total_amount='120.00'), INVOICE, TENANT,
            retry_result=StillFailing(2, (failure,)),
        )
        assert result.judgment.outcome is JudgmentOutcome.REJECT
        assert result.judgment.retry_attempts == 2
        assert 'retry' in result.judgment.reasoning.lower()

    def test_idempotence(self):
        first = self.pipeline.process(fast(total_amount='112.00'), expert(), INVOICE, TENANT)
        second = self.pipeline.process(fast(total_amount='112.00'), expert(), INVOICE, TENANT)

        assert first.consensus == second.consensus
        assert first.audit_report == second.audit_report
        assert first.judgment == second.judgment
        assert first.to_dict() == second.to_dict()

    def test_to_dict_is_json_serializable(self):
        result = self.pipeline.process(fast(), expert(), INVOICE, TENANT)
        payload = json.loads(json.dumps(result.to_dict()))

        assert payload['judgment']['outcome'] == 'AUTO_APPROVE'
        assert payload['consensus']['kind'] == 'Unanimous'
        assert payload['direction']['direction'] == 'INBOUND'


class TestDecisionPipelineAsync:
    """Tests for the arbitration-enabled path."""

    def test_borderline_goes_to_arbitration(self):
        arbitrator = FixedArbitrator(JudgmentOutcome.NEEDS_REVIEW)
        config = PipelineConfig(arbitration=ArbitrationConfig(enabled=True))
        pipeline = DecisionPipeline(config, arbitrator=arbitrator)

        result = asyncio.run(pipeline.process_async(fast(0.82), expert(0.82), INVOICE, TENANT))

        assert arbitrator.calls == 1
        assert result.judgment.outcome is JudgmentOutcome.NEEDS_REVIEW
        assert result.judgment.decided_by == 'arbitration'

    def test_clear_cut_skips_arbitration(self):
        arbitrator = FixedArbitrator(JudgmentOutcome.REJECT)
        config = PipelineConfig(arbitration=ArbitrationConfig(enabled=True))
        pipeline = DecisionPipeline(config, arbitrator=arbitrator)

        result = asyncio.run(pipeline.process_async(fast(), expert(), INVOICE, TENANT))

        assert arbitrator.calls == 0
        assert result.judgment.outcome is JudgmentOutcome.AUTO_APPROVE

    def test_async_matches_sync_without_arbitration(self):
        pipeline = DecisionPipeline()
        sync_result = pipeline.process(fast(0.82), expert(0.82), INVOICE, TENANT)
        async_result = asyncio.run(pipeline.process_async(fast(0.82), expert(0.82), INVOICE, TENANT))
        assert sync_result == async_result
