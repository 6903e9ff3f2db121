"""
Field Conflicts

A conflict is a field where two extraction candidates disagree after
normalization. Severity depends only on the field: financially
load-bearing fields are CRITICAL, everything else is a WARNING.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, List, Dict, Any, ClassVar, FrozenSet, Tuple

from .candidate import serialize_value


class ConflictSeverity(Enum):
    """How much a disagreement matters."""

    CRITICAL = auto()   # Amounts, bank details, party VAT numbers
    WARNING = auto()    # Names, addresses, dates, free text


class ModelWeight(Enum):
    """Which source wins when two candidates disagree on a field."""

    PREFER_FAST = auto()
    PREFER_EXPERT = auto()
    REQUIRE_MATCH = auto()    # No winner; the conflict stays unresolved


# Settlement amounts, payment routing and party identity
CRITICAL_FIELDS: FrozenSet[str] = frozenset({
    'total_amount',
    'amount',
    'subtotal',
    'vat_amount',
    'total_vat_amount',
    'iban',
    'bank_account',
    'payment_reference',
    'seller_vat',
    'supplier_vat',
    'vendor_vat',
    'merchant_vat',
})


@dataclass(frozen=True)
class FieldConflict:
    """
    Disagreement between the fast and expert candidates on one field.
    """

    field: str
    fast_value: Any
    expert_value: Any
    chosen_value: Any
    chosen_source: str          # 'fast', 'expert' or 'none'
    severity: ConflictSeverity

    @property
    def is_critical(self) -> bool:
        return self.severity is ConflictSeverity.CRITICAL

    @property
    def is_resolved(self) -> bool:
        """False when no source was chosen."""
        return self.chosen_source != 'none'

    @property
    def display_message(self) -> str:
        return (
            f"{self.field}: fast={self.fast_value!r}, expert={self.expert_value!r} "
            f"→ {self.chosen_source}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'field': self.field,
            'fast_value': serialize_value(self.fast_value),
            'expert_value': serialize_value(self.expert_value),
            'chosen_value': serialize_value(self.chosen_value),
            'chosen_source': self.chosen_source,
            'severity': self.severity.name,
        }


@dataclass(frozen=True)
class ConflictReport:
    """Ordered conflicts between two candidates."""

    conflicts: Tuple[FieldConflict, ...] = ()

    EMPTY: ClassVar['ConflictReport']

    def __post_init__(self):
        object.__setattr__(self, 'conflicts', tuple(self.conflicts))

    def __len__(self) -> int:
        return len(self.conflicts)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def critical_conflicts(self) -> List[FieldConflict]:
        return [c for c in self.conflicts if c.is_critical]

    @property
    def warning_conflicts(self) -> List[FieldConflict]:
        return [c for c in self.conflicts if c.severity is ConflictSeverity.WARNING]

    @property
    def unresolved_conflicts(self) -> List[FieldConflict]:
        return [c for c in self.conflicts if not c.is_resolved]

    @property
    def unresolved_critical_conflicts(self) -> List[FieldConflict]:
        return [c for c in self.conflicts if c.is_critical and not c.is_resolved]

    @property
    def conflicts_by_field(self) -> Dict[str, FieldConflict]:
        return {c.field: c for c in self.conflicts}

    def get(self, field_name: str) -> Optional[FieldConflict]:
        return self.conflicts_by_field.get(field_name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'conflict_count': len(self.conflicts),
            'critical_count': len(self.critical_conflicts),
            'conflicts': [c.to_dict() for c in self.conflicts],
        }


ConflictReport.EMPTY = ConflictReport()
