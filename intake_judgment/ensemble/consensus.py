"""
Consensus Engine

This module merges two independently produced extractions of the same
document into one, recording every field the sources disagree on.

Why This Matters:
- A fast pass and an expert pass over the same invoice agree most of the
  time, and that agreement is the strongest signal we have
- Where they disagree, the disagreement itself must be visible downstream:
  a conflicting total can never be silently approved
- Formatting noise ("121,00" vs "121.00") is not a disagreement

Merge Rules:
- Both candidates absent → NoData
- One candidate absent → SingleSource, confidence unchanged
- Both present → field by field:
    - only one side has a value: take it, no conflict
    - equal after normalization: take the expert's representation
    - different: record a FieldConflict and pick per ModelWeight
      (default PREFER_EXPERT)
- Merged confidence: (fast + 2·expert) / 3 minus a per-conflict penalty,
  capped, floored at 0

Usage:
    engine = ConsensusEngine()
    result = engine.merge(fast, expert, DocumentType.INVOICE)

    if isinstance(result, WithConflicts):
        for conflict in result.report.critical_conflicts:
            print(conflict.display_message)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, FrozenSet, Union

from loguru import logger

from ..doctypes import DocumentType, FieldType, get_schema, field_type_of
from ..parser.normalizers import (
    DateNormalizer,
    IdentifierNormalizer,
    TextNormalizer,
    amounts_equal,
    normalize_amount,
)
from .candidate import ExtractionCandidate, ExtractionSource
from .conflicts import (
    CRITICAL_FIELDS,
    ConflictReport,
    ConflictSeverity,
    FieldConflict,
    ModelWeight,
)


# Amount-like text: digits with separators, signs and currency marks only
_NUMERIC_LOOKING = re.compile(r'^[\s\d.,\-+()€$£]*\d[\s\d.,\-+()€$£]*$')


class _ConsensusOutcome:
    """Accessors shared by every consensus variant."""

    @property
    def has_data(self) -> bool:
        return self.data is not None

    @property
    def has_both_sources(self) -> bool:
        return False

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'data': self.data.to_dict() if self.data is not None else None,
            'report': self.report.to_dict() if self.report is not None else None,
        }


@dataclass(frozen=True)
class NoData(_ConsensusOutcome):
    """Neither candidate is present."""

    @property
    def data(self) -> None:
        return None

    @property
    def report(self) -> None:
        return None


@dataclass(frozen=True)
class SingleSource(_ConsensusOutcome):
    """Only one candidate is present; it passes through unchanged."""

    data: ExtractionCandidate
    source: str   # 'fast' or 'expert'

    @property
    def report(self) -> None:
        return None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['source'] = self.source
        return result


@dataclass(frozen=True)
class Unanimous(_ConsensusOutcome):
    """Both candidates present and agreeing on every shared field."""

    data: ExtractionCandidate

    @property
    def report(self) -> ConflictReport:
        return ConflictReport.EMPTY

    @property
    def has_both_sources(self) -> bool:
        return True


@dataclass(frozen=True)
class WithConflicts(_ConsensusOutcome):
    """Both candidates present, at least one conflict recorded."""

    data: ExtractionCandidate
    report: ConflictReport

    @property
    def has_both_sources(self) -> bool:
        return True


ConsensusResult = Union[NoData, SingleSource, Unanimous, WithConflicts]


@dataclass
class ConsensusConfig:
    """Configuration for the consensus engine."""

    # Source weights in the merged confidence
    fast_weight: float = 1.0
    expert_weight: float = 2.0

    # Confidence lost per conflict, and the most all conflicts may cost
    conflict_penalty: float = 0.05
    max_conflict_penalty: float = 0.25

    # Tie-break policy
    default_weight: ModelWeight = ModelWeight.PREFER_EXPERT
    field_weights: Dict[str, ModelWeight] = field(default_factory=dict)

    critical_fields: FrozenSet[str] = CRITICAL_FIELDS

    def weight_for(self, field_name: str) -> ModelWeight:
        return self.field_weights.get(field_name, self.default_weight)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fast_weight': self.fast_weight,
            'expert_weight': self.expert_weight,
            'conflict_penalty': self.conflict_penalty,
            'max_conflict_penalty': self.max_conflict_penalty,
            'default_weight': self.default_weight.name,
            'field_weights': {k: v.name for k, v in sorted(self.field_weights.items())},
            'critical_fields': sorted(self.critical_fields),
        }


class ConsensusEngine:
    """
    Merges a fast and an expert extraction into one.

    The engine is stateless apart from its configuration; merging the
    same pair twice gives equal results.
    """

    def __init__(self, config: Optional[ConsensusConfig] = None):
        self.config = config or ConsensusConfig()
        self._dates = DateNormalizer()

    def merge(
        self,
        fast: Optional[ExtractionCandidate],
        expert: Optional[ExtractionCandidate],
        document_type: DocumentType = DocumentType.UNKNOWN,
    ) -> ConsensusResult:
        """
        Merge two optional candidates.

        Args:
            fast: Candidate from the fast pass, or None
            expert: Candidate from the expert pass, or None
            document_type: Selects the field schema walked first

        Returns:
            NoData, SingleSource, Unanimous or WithConflicts
        """
        if fast is None and expert is None:
            logger.info("Consensus: no candidates")
            return NoData()

        if expert is None:
            logger.info(f"Consensus: fast source only (confidence {fast.confidence:.2f})")
            return SingleSource(data=fast, source=ExtractionSource.FAST.value)

        if fast is None:
            logger.info(f"Consensus: expert source only (confidence {expert.confidence:.2f})")
            return SingleSource(data=expert, source=ExtractionSource.EXPERT.value)

        merged: Dict[str, Any] = {}
        conflicts: List[FieldConflict] = []

        for name in self._field_order(fast, expert, document_type):
            fast_value = fast.get(name)
            expert_value = expert.get(name)

            if fast_value is None and expert_value is None:
                continue

            # Absence is not a disagreement
            if fast_value is None or expert_value is None:
                merged[name] = expert_value if expert_value is not None else fast_value
                continue

            if self._values_equal(name, fast_value, expert_value):
                merged[name] = expert_value
                continue

            conflict = self._resolve_conflict(name, fast_value, expert_value)
            conflicts.append(conflict)
            if conflict.is_resolved:
                merged[name] = conflict.chosen_value

        line_items = expert.line_items if expert.line_items else fast.line_items
        confidence = self.merged_confidence(fast.confidence, expert.confidence, len(conflicts))

        data = ExtractionCandidate(
            fields=merged,
            line_items=line_items,
            confidence=confidence,
            source=ExtractionSource.CONSENSUS,
        )

        if not conflicts:
            logger.info(f"Consensus: unanimous, confidence {confidence:.2f}")
            return Unanimous(data=data)

        report = ConflictReport(tuple(conflicts))
        logger.info(
            f"Consensus: {len(conflicts)} conflict(s), "
            f"{len(report.critical_conflicts)} critical, confidence {confidence:.2f}"
        )
        for conflict in conflicts:
            logger.debug(f"  {conflict.severity.name}: {conflict.display_message}")

        return WithConflicts(data=data, report=report)

    def merged_confidence(self, fast: float, expert: float, conflict_count: int) -> float:
        """
        Weighted source average minus the conflict penalty.

        Never increases with the number of conflicts.
        """
        cfg = self.config
        base = (cfg.fast_weight * fast + cfg.expert_weight * expert) / (
            cfg.fast_weight + cfg.expert_weight
        )
        penalty = min(conflict_count * cfg.conflict_penalty, cfg.max_conflict_penalty)
        return round(max(0.0, base - penalty), 4)

    def _field_order(
        self,
        fast: ExtractionCandidate,
        expert: ExtractionCandidate,
        document_type: DocumentType,
    ) -> List[str]:
        """Schema fields first, then any other field either side carries."""
        ordered = get_schema(document_type).field_names
        known = set(ordered)
        extra = sorted((set(fast.fields) | set(expert.fields)) - known)
        return ordered + extra

    def _values_equal(self, name: str, a: Any, b: Any) -> bool:
        field_type = field_type_of(name)

        if field_type is FieldType.AMOUNT:
            return amounts_equal(a, b)

        if field_type is FieldType.IDENTIFIER:
            return IdentifierNormalizer.compact(a) == IdentifierNormalizer.compact(b)

        if field_type is FieldType.DATE:
            date_a, date_b = self._dates.parse(a), self._dates.parse(b)
            if date_a is not None and date_b is not None:
                return date_a == date_b
            return TextNormalizer.equal_for_comparison(a, b)

        if TextNormalizer.equal_for_comparison(a, b):
            return True

        # Numeric-looking text compares by value ("100.00" == "100")
        if _NUMERIC_LOOKING.match(str(a)) and _NUMERIC_LOOKING.match(str(b)):
            parsed_a, parsed_b = normalize_amount(a), normalize_amount(b)
            return parsed_a is not None and parsed_a == parsed_b

        return False

    def _resolve_conflict(self, name: str, fast_value: Any, expert_value: Any) -> FieldConflict:
        severity = (
            ConflictSeverity.CRITICAL
            if name in self.config.critical_fields
            else ConflictSeverity.WARNING
        )

        weight = self.config.weight_for(name)
        if weight is ModelWeight.PREFER_FAST:
            chosen_value, chosen_source = fast_value, ExtractionSource.FAST.value
        elif weight is ModelWeight.REQUIRE_MATCH:
            chosen_value, chosen_source = None, 'none'
        else:
            chosen_value, chosen_source = expert_value, ExtractionSource.EXPERT.value

        return FieldConflict(
            field=name,
            fast_value=fast_value,
            expert_value=expert_value,
            chosen_value=chosen_value,
            chosen_source=chosen_source,
            severity=severity,
        )
