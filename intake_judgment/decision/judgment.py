"""
Judgment Criteria

This module renders the final verdict for a document from the reports
produced by the earlier stages. It replaces numeric confidence with one of
three actionable outcomes.

Outcomes:
- AUTO_APPROVE: processed silently, the user never sees the document
- NEEDS_REVIEW: shown to the user with specific issues highlighted
- REJECT: requires manual processing

Deterministic Rules (in priority order):
- REJECT if any of:
    - document type is unclassified
    - essential fields are missing
    - a CRITICAL audit failure is present (or remains after retries)
    - extraction confidence < reject threshold (0.50)
- AUTO_APPROVE if all of:
    - confidence ≥ auto-approve threshold (0.80)
    - no unresolved CRITICAL conflict (no CRITICAL conflict at all when
      consensus is required)
    - warnings within policy
- NEEDS_REVIEW otherwise

Clear-cut Decisions:
A clear-cut decision never goes to arbitration. REJECT is always clear-cut.
AUTO_APPROVE is clear-cut at confidence ≥ 0.85. NEEDS_REVIEW is clear-cut
when it already names issues for the user or confidence < 0.60.

Design Goals:
- Explainable decisions: every reason lands in reasoning/issues_for_user
- Deterministic: same context, same decision
- Configurable thresholds, with STRICT and LENIENT presets
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, List, Dict, Any, Tuple

from loguru import logger

from ..doctypes import DocumentType
from ..ensemble.conflicts import ConflictReport, FieldConflict
from ..retry.retry_result import (
    RetryResult,
    StillFailing,
    corrected_fields,
    retry_attempts,
)
from ..validation.audit_report import AuditReport


class JudgmentOutcome(Enum):
    """Final verdict for a document."""

    AUTO_APPROVE = auto()   # Silent processing
    NEEDS_REVIEW = auto()   # User sees it with issues
    REJECT = auto()         # Manual processing

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        names = {
            JudgmentOutcome.AUTO_APPROVE: "✓ Auto-approved",
            JudgmentOutcome.NEEDS_REVIEW: "⚠ Needs review",
            JudgmentOutcome.REJECT: "✗ Rejected",
        }
        return names.get(self, self.name)


@dataclass(frozen=True)
class JudgmentContext:
    """
    Everything the judgment gate looks at for one document.

    Built fresh per document attempt; a retry produces a new context.
    """

    extraction_confidence: float
    audit_report: AuditReport = AuditReport.EMPTY
    consensus_report: Optional[ConflictReport] = None
    retry_result: Optional[RetryResult] = None
    document_type: DocumentType = DocumentType.UNKNOWN
    has_essential_fields: bool = False
    missing_essential_fields: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'missing_essential_fields', tuple(self.missing_essential_fields))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'extraction_confidence': self.extraction_confidence,
            'document_type': self.document_type.name,
            'has_essential_fields': self.has_essential_fields,
            'missing_essential_fields': list(self.missing_essential_fields),
            'audit_report': self.audit_report.to_dict(),
            'consensus_report': (
                self.consensus_report.to_dict() if self.consensus_report is not None else None
            ),
            'retry_result': self.retry_result.to_dict() if self.retry_result is not None else None,
        }


@dataclass(frozen=True)
class JudgmentDecision:
    """
    Final verdict with its justification.

    Attributes:
        outcome: AUTO_APPROVE, NEEDS_REVIEW or REJECT
        confidence: Confidence in the verdict
        reasoning: Human-readable explanation
        issues_for_user: Specific issues to show in review
        all_critical_checks_passed: No critical audit failure remained
        has_model_consensus: The extraction sources did not conflict
        retry_attempts: Self-correction retries that ran
        corrected_fields: Fields fixed by a successful retry
        decided_by: 'deterministic' or 'arbitration'
    """

    outcome: JudgmentOutcome
    confidence: float
    reasoning: str
    issues_for_user: Tuple[str, ...] = ()
    all_critical_checks_passed: bool = True
    has_model_consensus: bool = True
    retry_attempts: int = 0
    corrected_fields: Tuple[str, ...] = ()
    decided_by: str = 'deterministic'

    def __post_init__(self):
        object.__setattr__(self, 'issues_for_user', tuple(self.issues_for_user))
        object.__setattr__(self, 'corrected_fields', tuple(self.corrected_fields))

    @property
    def is_auto_approved(self) -> bool:
        return self.outcome is JudgmentOutcome.AUTO_APPROVE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'outcome': self.outcome.name,
            'confidence': round(self.confidence, 4),
            'reasoning': self.reasoning,
            'issues_for_user': list(self.issues_for_user),
            'all_critical_checks_passed': self.all_critical_checks_passed,
            'has_model_consensus': self.has_model_consensus,
            'retry_attempts': self.retry_attempts,
            'corrected_fields': list(self.corrected_fields),
            'decided_by': self.decided_by,
        }


@dataclass
class JudgmentConfig:
    """
    Configuration for the judgment criteria.
    """
    # Confidence thresholds
    auto_approve_threshold: float = 0.80
    reject_threshold: float = 0.50

    # Clear-cut bars (decisions past these skip arbitration)
    clear_cut_approve_threshold: float = 0.85
    clear_cut_review_threshold: float = 0.60

    # Any critical conflict blocks auto-approval, resolved or not
    require_consensus_for_auto_approve: bool = True

    # Warning policy for auto-approval
    auto_approve_with_warnings: bool = False
    max_warnings_for_auto_approve: int = 0

    @classmethod
    def strict(cls) -> 'JudgmentConfig':
        return cls(auto_approve_threshold=0.90)

    @classmethod
    def lenient(cls) -> 'JudgmentConfig':
        return cls(auto_approve_threshold=0.70, auto_approve_with_warnings=True)

    @classmethod
    def preset(cls, name: str) -> 'JudgmentConfig':
        """Named preset: 'default', 'strict' or 'lenient'."""
        presets = {
            'default': cls,
            'strict': cls.strict,
            'lenient': cls.lenient,
        }
        try:
            return presets[name.strip().lower()]()
        except KeyError:
            raise ValueError(
                f"Unknown judgment preset {name!r}; expected one of {sorted(presets)}"
            ) from None

    def warnings_allowed(self, warning_count: int) -> bool:
        return self.auto_approve_with_warnings or warning_count <= self.max_warnings_for_auto_approve

    def to_dict(self) -> Dict[str, Any]:
        return {
            'auto_approve_threshold': self.auto_approve_threshold,
            'reject_threshold': self.reject_threshold,
            'clear_cut_approve_threshold': self.clear_cut_approve_threshold,
            'clear_cut_review_threshold': self.clear_cut_review_threshold,
            'require_consensus_for_auto_approve': self.require_consensus_for_auto_approve,
            'auto_approve_with_warnings': self.auto_approve_with_warnings,
            'max_warnings_for_auto_approve': self.max_warnings_for_auto_approve,
        }


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def _conflict_issue(conflict: FieldConflict) -> str:
    return (
        f"Extraction sources disagree on {conflict.field}: "
        f"'{conflict.fast_value}' vs '{conflict.expert_value}'"
    )


@dataclass
class _Findings:
    """Facts about a context that every rule reads."""
    confidence: float
    critical_failures: List[str] = field(default_factory=list)
    still_failing: Optional[StillFailing] = None
    blocking_conflicts: List[FieldConflict] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    has_model_consensus: bool = True


class JudgmentCriteria:
    """
    Deterministic judgment rules.

    Usage:
        criteria = JudgmentCriteria()
        decision = criteria.evaluate(context)

        if not criteria.is_clear_cut(decision):
            ...  # eligible for arbitration
    """

    def __init__(self, config: Optional[JudgmentConfig] = None):
        self.config = config or JudgmentConfig()

    def _findings(self, context: JudgmentContext) -> _Findings:
        audit = context.audit_report
        report = context.consensus_report or ConflictReport.EMPTY

        critical = [
            f"{c.field}: {c.message}" + (f" ({c.hint})" if c.hint else "")
            for c in audit.critical_failures
        ]

        still_failing = None
        if isinstance(context.retry_result, StillFailing):
            still_failing = context.retry_result
            if not critical and still_failing.has_critical_failures:
                critical = [
                    f"{c.field}: {c.message}"
                    for c in still_failing.remaining_failures if c.is_critical
                ]

        if self.config.require_consensus_for_auto_approve:
            blocking = report.critical_conflicts
        else:
            blocking = report.unresolved_critical_conflicts

        return _Findings(
            confidence=context.extraction_confidence,
            critical_failures=critical,
            still_failing=still_failing,
            blocking_conflicts=blocking,
            warnings=[f"{c.field}: {c.message}" for c in audit.warnings],
            has_model_consensus=not report.has_conflicts,
        )

    def evaluate(self, context: JudgmentContext) -> JudgmentDecision:
        """
        Apply the deterministic rules.

        Never raises for a well-typed context; the worst case is REJECT.
        """
        cfg = self.config
        findings = self._findings(context)
        attempts = retry_attempts(context.retry_result)
        fixed = tuple(corrected_fields(context.retry_result))

        common = dict(
            confidence=findings.confidence,
            all_critical_checks_passed=not findings.critical_failures,
            has_model_consensus=findings.has_model_consensus,
            retry_attempts=attempts,
            corrected_fields=fixed,
        )

        # REJECT: collect every reason so the user sees all of them at once
        reasons: List[str] = []
        issues: List[str] = []

        if not context.document_type.is_classified:
            reasons.append("Unknown document type - classification failed")
            issues.append("Document type could not be determined")

        if not context.has_essential_fields:
            missing = ', '.join(context.missing_essential_fields) or 'unknown'
            reasons.append(f"Essential fields missing: {missing}")
            issues += [f"Missing essential field: {f}" for f in context.missing_essential_fields]

        if findings.critical_failures:
            reason = f"{len(findings.critical_failures)} critical audit failure(s)"
            if findings.still_failing is not None:
                reason += f" remain after {findings.still_failing.attempts} retry attempt(s)"
            reasons.append(reason)
            issues += findings.critical_failures

        if findings.confidence < cfg.reject_threshold:
            reasons.append(
                f"Extraction confidence {_pct(findings.confidence)} is below "
                f"the reject threshold ({_pct(cfg.reject_threshold)})"
            )
            issues.append(f"Extraction confidence too low ({_pct(findings.confidence)})")

        if reasons:
            decision = JudgmentDecision(
                outcome=JudgmentOutcome.REJECT,
                reasoning="Rejected: " + "; ".join(reasons),
                issues_for_user=tuple(issues),
                **common,
            )
            logger.info(f"Judgment: REJECT ({'; '.join(reasons)})")
            return decision

        # AUTO_APPROVE / NEEDS_REVIEW
        if findings.confidence < cfg.auto_approve_threshold:
            reasons.append(
                f"Extraction confidence {_pct(findings.confidence)} is below "
                f"the auto-approve threshold ({_pct(cfg.auto_approve_threshold)})"
            )
            issues.append(
                f"Low extraction confidence ({_pct(findings.confidence)}), please verify the values"
            )

        if findings.blocking_conflicts:
            reasons.append(f"{len(findings.blocking_conflicts)} critical conflict(s) between sources")
            issues += [_conflict_issue(c) for c in findings.blocking_conflicts]

        if not cfg.warnings_allowed(len(findings.warnings)):
            reasons.append(f"{len(findings.warnings)} audit warning(s)")
            issues += findings.warnings

        if reasons:
            logger.info(f"Judgment: NEEDS_REVIEW ({'; '.join(reasons)})")
            return JudgmentDecision(
                outcome=JudgmentOutcome.NEEDS_REVIEW,
                reasoning="Review needed: " + "; ".join(reasons),
                issues_for_user=tuple(issues),
                **common,
            )

        reasoning = f"All checks passed with {_pct(findings.confidence)} extraction confidence"
        if fixed:
            reasoning += f"; {', '.join(fixed)} corrected on retry attempt {attempts}"
        if findings.warnings:
            reasoning += f"; {len(findings.warnings)} warning(s) accepted by policy"

        logger.info(f"Judgment: AUTO_APPROVE ({_pct(findings.confidence)})")
        return JudgmentDecision(
            outcome=JudgmentOutcome.AUTO_APPROVE,
            reasoning=reasoning,
            **common,
        )

    def is_clear_cut(self, decision: JudgmentDecision) -> bool:
        """Whether a decision is settled without arbitration."""
        if decision.outcome is JudgmentOutcome.REJECT:
            return True
        if decision.outcome is JudgmentOutcome.AUTO_APPROVE:
            return decision.confidence >= self.config.clear_cut_approve_threshold
        return (
            bool(decision.issues_for_user)
            or decision.confidence < self.config.clear_cut_review_threshold
        )

    def can_potentially_auto_approve(self, context: JudgmentContext) -> bool:
        """Quick pre-check: nothing rules out auto-approval."""
        findings = self._findings(context)
        return (
            context.document_type.is_classified
            and context.has_essential_fields
            and not findings.critical_failures
            and not findings.blocking_conflicts
            and findings.confidence >= self.config.auto_approve_threshold
        )
