"""
Arbitration

Optional second opinion for borderline decisions. An external reasoning
collaborator reviews a structured summary of every report (it never sees
the source document) and answers with one of the three outcomes.

The core depends only on the narrow Arbitrator protocol. PromptArbitrator
adapts any async text-completion callable to it.

Usage:
    async def complete(prompt: str) -> str:
        ...  # call whatever inference backend is available

    arbitrator = PromptArbitrator(complete)
    decision = await arbitrator.arbitrate(ArbitrationSummary.from_context(ctx))
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Optional, List, Tuple, Callable, Awaitable, Protocol, assert_never

from loguru import logger

from ..ensemble.conflicts import FieldConflict
from ..retry.retry_result import CorrectedOnRetry, NoRetryNeeded, StillFailing
from .judgment import JudgmentContext, JudgmentDecision, JudgmentOutcome


class ArbitrationError(Exception):
    """The collaborator's answer could not be turned into a decision."""


# Number of warnings listed before the rest are summarized
MAX_LISTED_WARNINGS = 3

_JSON_OBJECT = re.compile(r'\{[\s\S]*\}')

_OUTCOME_NAMES = {
    'AUTO_APPROVE': JudgmentOutcome.AUTO_APPROVE,
    'AUTOAPPROVE': JudgmentOutcome.AUTO_APPROVE,
    'NEEDS_REVIEW': JudgmentOutcome.NEEDS_REVIEW,
    'NEEDSREVIEW': JudgmentOutcome.NEEDS_REVIEW,
    'REJECT': JudgmentOutcome.REJECT,
}

# Keyword fallback: (keywords, outcome, confidence, reasoning)
_KEYWORD_RULES = (
    (('AUTO_APPROVE', 'AUTOAPPROVE'), JudgmentOutcome.AUTO_APPROVE, 0.8,
     "Arbitration approved the document"),
    (('NEEDS_REVIEW', 'NEEDSREVIEW'), JudgmentOutcome.NEEDS_REVIEW, 0.6,
     "Arbitration requested review"),
    (('REJECT',), JudgmentOutcome.REJECT, 0.8,
     "Arbitration rejected the document"),
)

SYSTEM_PROMPT = """\
You are the final gatekeeper of a document intake system. Review the
analysis report below and decide what happens to the document.

AUTO_APPROVE: no critical audit failures, no unresolved critical conflicts,
extraction confidence >= 80%, essential fields present. The document is
processed silently.

NEEDS_REVIEW: warnings without critical failures, conflicts resolved with
moderate confidence, extraction confidence between 50% and 80%. The user
sees the document with the issues highlighted.

REJECT: critical failures remaining after retries, essential fields
missing, unknown document type, extraction confidence < 50%.

Escalate only when correctness genuinely cannot be verified.

Respond with ONLY a JSON object:
{"decision": "AUTO_APPROVE" | "NEEDS_REVIEW" | "REJECT",
 "confidence": 0.0-1.0,
 "reasoning": "one or two sentences",
 "issuesForUser": ["issue", ...]}
"""


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


@dataclass(frozen=True)
class ArbitrationSummary:
    """
    Everything the collaborator is allowed to see about one document.

    Built from a JudgmentContext plus the deterministic decision that
    arbitration may overturn.
    """

    document_type: str
    extraction_confidence: float
    has_essential_fields: bool
    missing_fields: Tuple[str, ...]
    conflicts: Tuple[FieldConflict, ...]
    total_checks: int
    passed_checks: int
    failed_checks: int
    audit_status: str
    critical_failures: Tuple[str, ...]
    warnings: Tuple[str, ...]
    retry_summary: Tuple[str, ...]
    deterministic: Optional[JudgmentDecision] = None

    @classmethod
    def from_context(
        cls,
        context: JudgmentContext,
        deterministic: Optional[JudgmentDecision] = None,
    ) -> 'ArbitrationSummary':
        audit = context.audit_report
        conflicts = context.consensus_report.conflicts if context.consensus_report else ()

        retry = context.retry_result
        if retry is None:
            retry_summary = ("Self-correction not attempted",)
        elif isinstance(retry, NoRetryNeeded):
            retry_summary = ("No retry needed - passed on first attempt",)
        elif isinstance(retry, CorrectedOnRetry):
            retry_summary = (
                f"Corrected on retry attempt {retry.attempt}",
                f"Corrected fields: {', '.join(retry.corrected_fields) or 'none'}",
            )
        elif isinstance(retry, StillFailing):
            retry_summary = (
                f"Still failing after {retry.attempts} retry attempts",
                f"Remaining failures: {len(retry.remaining_failures)}",
            )
        else:
            assert_never(retry)

        return cls(
            document_type=context.document_type.name,
            extraction_confidence=context.extraction_confidence,
            has_essential_fields=context.has_essential_fields,
            missing_fields=context.missing_essential_fields,
            conflicts=tuple(conflicts),
            total_checks=len(audit.checks),
            passed_checks=audit.passed_count,
            failed_checks=audit.failed_count,
            audit_status=audit.overall_status.name,
            critical_failures=tuple(
                f"{c.check_type.name}: {c.message}" for c in audit.critical_failures
            ),
            warnings=tuple(f"{c.check_type.name}: {c.message}" for c in audit.warnings),
            retry_summary=retry_summary,
            deterministic=deterministic,
        )

    def to_text(self) -> str:
        """Render the summary as a markdown report."""
        lines: List[str] = ["# Document Analysis Report", ""]

        lines += [
            "## Document Summary",
            f"- Document Type: {self.document_type}",
            f"- Extraction Confidence: {_pct(self.extraction_confidence)}",
            f"- Essential Fields Present: {'Yes' if self.has_essential_fields else 'No'}",
        ]
        if self.missing_fields:
            lines.append(f"- Missing Fields: {', '.join(self.missing_fields)}")
        lines.append("")

        lines.append("## Source Consensus")
        if not self.conflicts:
            lines.append("No conflicts - both sources agreed on all fields")
        else:
            lines.append(f"{len(self.conflicts)} field conflict(s) detected:")
            for conflict in self.conflicts:
                lines.append(
                    f"  - [{conflict.severity.name}] {conflict.field}: "
                    f"'{conflict.fast_value}' vs '{conflict.expert_value}'"
                    f" (chosen: {conflict.chosen_source})"
                )
        lines.append("")

        lines += [
            "## Validation Audit",
            f"- Total Checks: {self.total_checks}",
            f"- Passed: {self.passed_checks}",
            f"- Failed: {self.failed_checks}",
            f"- Status: {self.audit_status}",
        ]
        if self.critical_failures:
            lines.append("Critical Failures:")
            lines += [f"  - {c}" for c in self.critical_failures]
        if self.warnings:
            lines.append("Warnings:")
            lines += [f"  - {w}" for w in self.warnings[:MAX_LISTED_WARNINGS]]
            if len(self.warnings) > MAX_LISTED_WARNINGS:
                lines.append(f"  ... and {len(self.warnings) - MAX_LISTED_WARNINGS} more")
        lines.append("")

        lines.append("## Self-Correction")
        lines += list(self.retry_summary)
        lines.append("")

        if self.deterministic is not None:
            lines += [
                "## Rule-Based Verdict",
                f"- Outcome: {self.deterministic.outcome.name}",
                f"- Reasoning: {self.deterministic.reasoning}",
                "",
            ]

        lines += [
            "## Your Decision",
            "Based on the above, decide: AUTO_APPROVE, NEEDS_REVIEW, or REJECT",
        ]
        return "\n".join(lines)


class Arbitrator(Protocol):
    """Anything that can arbitrate a borderline decision."""

    async def arbitrate(self, summary: ArbitrationSummary) -> JudgmentDecision:
        ...


class PromptArbitrator:
    """
    Arbitrator backed by an async text-completion callable.

    The callable receives the full prompt and returns the raw answer. The
    answer is read as JSON first, then by keywords.
    """

    def __init__(self, complete: Callable[[str], Awaitable[str]], system_prompt: str = SYSTEM_PROMPT):
        self.complete = complete
        self.system_prompt = system_prompt

    def build_prompt(self, summary: ArbitrationSummary) -> str:
        return f"{self.system_prompt}\n{summary.to_text()}"

    async def arbitrate(self, summary: ArbitrationSummary) -> JudgmentDecision:
        response = await self.complete(self.build_prompt(summary))
        return self.parse_response(response)

    def parse_response(self, response: str) -> JudgmentDecision:
        """
        Turn a raw answer into a decision.

        Raises:
            ArbitrationError: If neither JSON nor an outcome keyword is found
        """
        if not isinstance(response, str):
            raise ArbitrationError(f"Expected text, got {type(response).__name__}")

        match = _JSON_OBJECT.search(response)
        if match:
            decision = self._from_json(match.group(0))
            if decision is not None:
                return decision
            logger.debug("Arbitration answer is not a usable JSON verdict, trying keywords")

        upper = response.upper()
        for keywords, outcome, confidence, reasoning in _KEYWORD_RULES:
            if any(k in upper for k in keywords):
                issues = (
                    ("Review requested by arbitration",)
                    if outcome is JudgmentOutcome.NEEDS_REVIEW else ()
                )
                return JudgmentDecision(
                    outcome=outcome,
                    confidence=confidence,
                    reasoning=reasoning,
                    issues_for_user=issues,
                    decided_by='arbitration',
                )

        raise ArbitrationError(f"No verdict found in arbitration answer: {response[:80]!r}")

    @staticmethod
    def _from_json(text: str) -> Optional[JudgmentDecision]:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None

        outcome = _OUTCOME_NAMES.get(str(payload.get('decision', '')).strip().upper())
        if outcome is None:
            return None

        try:
            confidence = float(payload.get('confidence', 0.8))
        except (TypeError, ValueError):
            confidence = 0.8
        if not math.isfinite(confidence):
            raise ArbitrationError(f"Non-finite confidence in arbitration answer: {confidence}")
        confidence = min(max(confidence, 0.0), 1.0)

        issues = payload.get('issuesForUser', payload.get('issues_for_user', []))
        if not isinstance(issues, list):
            issues = [issues]

        return JudgmentDecision(
            outcome=outcome,
            confidence=confidence,
            reasoning=str(payload.get('reasoning') or ''),
            issues_for_user=tuple(str(i) for i in issues),
            decided_by='arbitration',
        )
