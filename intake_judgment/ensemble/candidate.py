"""
Extraction Candidates

An ExtractionCandidate is one independently produced structured read of a
document: a fast/cheap pass, a slow/expert pass, or the consensus merge of
both. Candidates are immutable once built.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Optional, List, Dict, Any, Mapping, Tuple

from ..parser.normalizers import normalize_amount


class CandidateFormatError(ValueError):
    """Raised when a candidate mapping cannot be read."""


class ExtractionSource(Enum):
    """Where a candidate came from."""

    FAST = 'fast'
    EXPERT = 'expert'
    CONSENSUS = 'consensus'


def _snake_case(key: str) -> str:
    """totalAmount → total_amount"""
    return re.sub(r'(?<=[a-z0-9])([A-Z])', r'_\1', key).lower()


def serialize_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class LineItem:
    """A single line on the document."""

    description: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    total: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'LineItem':
        data = {_snake_case(k): v for k, v in data.items()}
        total = data.get('total')
        if total is None:
            total = data.get('line_total', data.get('amount'))
        description = data.get('description')
        return cls(
            description=str(description) if description is not None else None,
            quantity=normalize_amount(data.get('quantity')),
            unit_price=normalize_amount(data.get('unit_price')),
            total=normalize_amount(total),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'description': self.description,
            'quantity': serialize_value(self.quantity),
            'unit_price': serialize_value(self.unit_price),
            'total': serialize_value(self.total),
        }


@dataclass(frozen=True)
class ExtractionCandidate:
    """
    One structured extraction of a document.

    Attributes:
        fields: Field name → value (str, Decimal, int, float or date)
        line_items: Line items in document order
        confidence: Extractor confidence in [0, 1]
        source: Origin of this candidate

    Usage:
        candidate = ExtractionCandidate.from_dict({
            'confidence': 0.9,
            'fields': {'total_amount': '121,00', 'seller_name': 'Acme NV'},
        }, source=ExtractionSource.EXPERT)

        candidate.get('total_amount')      # '121,00'
        candidate.amount('total_amount')   # Decimal('121.00')
    """

    fields: Mapping[str, Any] = field(default_factory=dict)
    line_items: Tuple[LineItem, ...] = ()
    confidence: float = 0.0
    source: ExtractionSource = ExtractionSource.EXPERT

    def __post_init__(self):
        # Read-only view so no stage can mutate a candidate another stage holds
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields)))
        object.__setattr__(self, 'line_items', tuple(self.line_items))

    def get(self, name: str) -> Any:
        """Value of a field, None when absent or blank."""
        value = self.fields.get(name)
        if value is None:
            return None
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def amount(self, name: str) -> Optional[Decimal]:
        """Parsed amount of a field, None when absent or unparsable."""
        return normalize_amount(self.get(name))

    def first(self, *names: str) -> Any:
        """First non-blank value among several field names."""
        for name in names:
            value = self.get(name)
            if value is not None:
                return value
        return None

    @property
    def field_names(self) -> List[str]:
        return [name for name in self.fields if self.get(name) is not None]

    @property
    def line_totals(self) -> List[Decimal]:
        return [item.total for item in self.line_items if item.total is not None]

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        source: ExtractionSource = ExtractionSource.EXPERT,
    ) -> 'ExtractionCandidate':
        """
        Build a candidate from a JSON mapping.

        Accepts either {'fields': {...}, 'line_items': [...], 'confidence': x}
        or a flat mapping of fields with 'confidence' and 'line_items' keys.
        camelCase keys are converted to snake_case.

        Raises:
            CandidateFormatError: If the mapping is malformed
        """
        if not isinstance(data, Mapping):
            raise CandidateFormatError(
                f"Candidate must be a mapping, got {type(data).__name__}"
            )

        raw = {_snake_case(k): v for k, v in data.items()}
        confidence = raw.pop('confidence', 0.0)
        items = raw.pop('line_items', None) or []
        source_name = raw.pop('source', None)
        fields = raw.pop('fields', None)
        if fields is None:
            fields = raw
        elif not isinstance(fields, Mapping):
            raise CandidateFormatError("'fields' must be a mapping")

        try:
            confidence = float(confidence)
        except (TypeError, ValueError) as e:
            raise CandidateFormatError(f"Invalid confidence: {confidence!r}") from e
        if not 0.0 <= confidence <= 1.0:
            raise CandidateFormatError(f"Confidence out of range [0, 1]: {confidence}")

        if not isinstance(items, list) or not all(isinstance(i, Mapping) for i in items):
            raise CandidateFormatError("'line_items' must be a list of mappings")

        if source_name is not None:
            try:
                source = ExtractionSource(str(source_name).lower())
            except ValueError as e:
                raise CandidateFormatError(f"Unknown source: {source_name!r}") from e

        return cls(
            fields={_snake_case(k): v for k, v in fields.items()},
            line_items=tuple(LineItem.from_dict(i) for i in items),
            confidence=confidence,
            source=source,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'source': self.source.value,
            'confidence': self.confidence,
            'fields': {k: serialize_value(v) for k, v in sorted(self.fields.items())},
            'line_items': [item.to_dict() for item in self.line_items],
        }
