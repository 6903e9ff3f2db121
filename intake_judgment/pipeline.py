"""
Decision Pipeline

Main orchestration module that runs the decision stages in order for one
document:

    candidates → consensus → audit (+ counterparty integrity)
               → direction → essential fields → judgment

Every stage is pure; the only suspension point is the optional
arbitration inside the judgment gate (process_async). A document always
leaves with a verdict, REJECT in the worst case.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple

from loguru import logger

from .config import PipelineConfig
from .decision import (
    Arbitrator,
    JudgmentContext,
    JudgmentDecision,
    JudgmentGate,
    JudgmentOutcome,
)
from .direction import (
    DirectionResolution,
    DirectionResolver,
    TenantIdentity,
    check_counterparty_integrity,
)
from .doctypes import (
    DocumentClassification,
    DocumentType,
    EssentialFieldsCheck,
    check_essential_fields,
)
from .ensemble import ConsensusEngine, ConsensusResult, ExtractionCandidate
from .retry import RetryResult
from .validation import AuditReport, ChecksumResults, ExtractionAuditService


@dataclass(frozen=True)
class PipelineResult:
    """Reports and verdict for one document."""

    document_type: DocumentType
    consensus: ConsensusResult
    audit_report: AuditReport
    direction: DirectionResolution
    essential_fields: EssentialFieldsCheck
    judgment: JudgmentDecision

    @property
    def outcome(self) -> JudgmentOutcome:
        return self.judgment.outcome

    @property
    def is_auto_approved(self) -> bool:
        return self.judgment.outcome is JudgmentOutcome.AUTO_APPROVE

    @property
    def needs_review(self) -> bool:
        return self.judgment.outcome is JudgmentOutcome.NEEDS_REVIEW

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'document_type': self.document_type.name,
            'consensus': self.consensus.to_dict(),
            'audit_report': self.audit_report.to_dict(),
            'direction': self.direction.to_dict(),
            'essential_fields': self.essential_fields.to_dict(),
            'judgment': self.judgment.to_dict(),
        }


class DecisionPipeline:
    """
    Main orchestration class for the decision core.

    Usage:
        pipeline = DecisionPipeline(load_config(Path("config/pipeline.yaml")))
        result = pipeline.process(
            fast=fast_candidate,
            expert=expert_candidate,
            classification=DocumentClassification(DocumentType.INVOICE, 0.95),
            tenant=TenantIdentity(vat_number='BE0123456789'),
        )
        print(result.judgment.outcome.display_name)
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        arbitrator: Optional[Arbitrator] = None,
    ):
        self.config = config or PipelineConfig()
        self._init_components(arbitrator)

    def _init_components(self, arbitrator: Optional[Arbitrator]) -> None:
        """Initialize pipeline stages."""
        self.consensus_engine = ConsensusEngine(self.config.consensus)
        self.audit_service = ExtractionAuditService(self.config.audit)
        self.direction_resolver = DirectionResolver(self.config.direction)
        self.gate = JudgmentGate(
            self.config.judgment,
            arbitrator=arbitrator,
            arbitration=self.config.arbitration,
        )

    def resolve_document_type(self, classification: Optional[DocumentClassification]) -> DocumentType:
        """Classified type, or UNKNOWN when the classifier was not confident enough."""
        if classification is None:
            return DocumentType.UNKNOWN

        if classification.confidence < self.config.min_classification_confidence:
            logger.warning(
                f"Classification {classification.document_type.name} has confidence "
                f"{classification.confidence:.2f} < {self.config.min_classification_confidence:.2f}, "
                f"treating as UNKNOWN"
            )
            return DocumentType.UNKNOWN

        return classification.document_type

    def _prepare(
        self,
        fast: Optional[ExtractionCandidate],
        expert: Optional[ExtractionCandidate],
        classification: Optional[DocumentClassification],
        tenant: Optional[TenantIdentity],
        checksums: Optional[ChecksumResults],
        retry_result: Optional[RetryResult],
    ) -> Tuple[DocumentType, ConsensusResult, AuditReport, DirectionResolution,
               EssentialFieldsCheck, JudgmentContext]:
        document_type = self.resolve_document_type(classification)

        consensus = self.consensus_engine.merge(fast, expert, document_type)
        data = consensus.data

        direction = self.direction_resolver.resolve(data, tenant, document_type)
        integrity = check_counterparty_integrity(direction, tenant)

        audit_report = self.audit_service.audit(data, document_type, checksums)
        audit_report = audit_report.merged_with([integrity])

        essential = check_essential_fields(document_type, data)

        context = JudgmentContext(
            extraction_confidence=data.confidence if data is not None else 0.0,
            audit_report=audit_report,
            consensus_report=consensus.report,
            retry_result=retry_result,
            document_type=document_type,
            has_essential_fields=essential.has_all_fields,
            missing_essential_fields=essential.missing_fields,
        )
        return document_type, consensus, audit_report, direction, essential, context

    def process(
        self,
        fast: Optional[ExtractionCandidate] = None,
        expert: Optional[ExtractionCandidate] = None,
        classification: Optional[DocumentClassification] = None,
        tenant: Optional[TenantIdentity] = None,
        checksums: Optional[ChecksumResults] = None,
        retry_result: Optional[RetryResult] = None,
    ) -> PipelineResult:
        """
        Decide one document with the deterministic rules only.

        Args:
            fast: Candidate from the fast extraction pass
            expert: Candidate from the expert extraction pass
            classification: Upstream classifier result
            tenant: Owning tenant identity
            checksums: External IBAN/OGM verdicts
            retry_result: Record of the self-correction pass, if any

        Returns:
            PipelineResult with every report and the verdict
        """
        document_type, consensus, audit_report, direction, essential, context = self._prepare(
            fast, expert, classification, tenant, checksums, retry_result
        )
        judgment = self.gate.judge_sync(context)
        return self._result(document_type, consensus, audit_report, direction, essential, judgment)

    async def process_async(
        self,
        fast: Optional[ExtractionCandidate] = None,
        expert: Optional[ExtractionCandidate] = None,
        classification: Optional[DocumentClassification] = None,
        tenant: Optional[TenantIdentity] = None,
        checksums: Optional[ChecksumResults] = None,
        retry_result: Optional[RetryResult] = None,
        use_arbitration: Optional[bool] = None,
    ) -> PipelineResult:
        """Same as process(), with arbitration for borderline decisions."""
        document_type, consensus, audit_report, direction, essential, context = self._prepare(
            fast, expert, classification, tenant, checksums, retry_result
        )
        judgment = await self.gate.judge(context, use_arbitration=use_arbitration)
        return self._result(document_type, consensus, audit_report, direction, essential, judgment)

    @staticmethod
    def _result(
        document_type: DocumentType,
        consensus: ConsensusResult,
        audit_report: AuditReport,
        direction: DirectionResolution,
        essential: EssentialFieldsCheck,
        judgment: JudgmentDecision,
    ) -> PipelineResult:
        logger.info(
            f"{document_type.name}: {judgment.outcome.name} via {judgment.decided_by} "
            f"({consensus.kind}, audit {audit_report.overall_status.name}, "
            f"direction {direction.direction.name})"
        )
        return PipelineResult(
            document_type=document_type,
            consensus=consensus,
            audit_report=audit_report,
            direction=direction,
            essential_fields=essential,
            judgment=judgment,
        )
