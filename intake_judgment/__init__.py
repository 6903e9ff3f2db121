"""
Intake Judgment

The decision core of a financial-document intake pipeline. Given two
independent extractions of the same document, it decides whether the
document can be booked silently, needs a human look, or must be rejected.

Features:
- Tolerant normalization of amounts, identifiers and names
- Field-level consensus between a fast and an expert extraction
- Deterministic arithmetic, VAT-rate and checksum audit
- Inbound/outbound direction and counterparty resolution
- Categorical verdict (AUTO_APPROVE/NEEDS_REVIEW/REJECT) with reasons
- Optional bounded arbitration for borderline verdicts

Quick Start:
    from intake_judgment import DecisionPipeline, ExtractionCandidate

    pipeline = DecisionPipeline()
    result = pipeline.process(
        fast=ExtractionCandidate.from_dict(fast_json),
        expert=ExtractionCandidate.from_dict(expert_json),
        classification=DocumentClassification(DocumentType.INVOICE, 0.95),
        tenant=TenantIdentity(vat_number='BE0123456789'),
    )
    print(result.judgment.outcome)  # AUTO_APPROVE, NEEDS_REVIEW or REJECT

CLI Usage:
    intake-judgment judge document.json -o result.json
    intake-judgment show-config -c config/pipeline.yaml
    intake-judgment parse-amount "1.234,56"
"""

__version__ = '0.1.0'

from .config import ConfigError, PipelineConfig, load_config
from .decision import (
    ArbitrationConfig,
    ArbitrationError,
    ArbitrationSummary,
    JudgmentConfig,
    JudgmentContext,
    JudgmentCriteria,
    JudgmentDecision,
    JudgmentGate,
    JudgmentOutcome,
    PromptArbitrator,
)
from .direction import (
    DirectionResolution,
    DirectionResolver,
    DocumentDirection,
    TenantIdentity,
    check_counterparty_integrity,
)
from .doctypes import DocumentClassification, DocumentType, check_essential_fields
from .ensemble import (
    CandidateFormatError,
    ConsensusEngine,
    ExtractionCandidate,
    ExtractionSource,
    LineItem,
)
from .pipeline import DecisionPipeline, PipelineResult
from .retry import CorrectedOnRetry, NoRetryNeeded, StillFailing
from .validation import AuditReport, ChecksumResults, ExtractionAuditService, ValidationResult

__all__ = [
    'ConfigError',
    'PipelineConfig',
    'load_config',
    'ArbitrationConfig',
    'ArbitrationError',
    'ArbitrationSummary',
    'JudgmentConfig',
    'JudgmentContext',
    'JudgmentCriteria',
    'JudgmentDecision',
    'JudgmentGate',
    'JudgmentOutcome',
    'PromptArbitrator',
    'DirectionResolution',
    'DirectionResolver',
    'DocumentDirection',
    'TenantIdentity',
    'check_counterparty_integrity',
    'DocumentClassification',
    'DocumentType',
    'check_essential_fields',
    'CandidateFormatError',
    'ConsensusEngine',
    'ExtractionCandidate',
    'ExtractionSource',
    'LineItem',
    'DecisionPipeline',
    'PipelineResult',
    'CorrectedOnRetry',
    'NoRetryNeeded',
    'StillFailing',
    'AuditReport',
    'ChecksumResults',
    'ExtractionAuditService',
    'ValidationResult',
]
