"""
Document Type Definition

Defines the document types the intake pipeline understands, the
classification result produced upstream, and the field schema used when
two extractions are compared.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, List, Dict, Any, Tuple


class DocumentType(Enum):
    """Financial document types."""

    INVOICE = auto()        # Outgoing or incoming sales invoice
    CREDIT_NOTE = auto()    # Invoice correction
    PRO_FORMA = auto()      # Quote-like invoice, not booked
    BILL = auto()           # Supplier bill to pay
    RECEIPT = auto()        # Till receipt
    EXPENSE = auto()        # Employee expense
    UNKNOWN = auto()        # Classification failed

    @property
    def is_classified(self) -> bool:
        """Whether the classifier recognised the document."""
        return self is not DocumentType.UNKNOWN

    @property
    def uses_invoice_rules(self) -> bool:
        """Credit notes and pro formas are audited like invoices."""
        return self in (
            DocumentType.INVOICE,
            DocumentType.CREDIT_NOTE,
            DocumentType.PRO_FORMA,
        )

    @property
    def has_single_party(self) -> bool:
        """Receipts and expenses only name a merchant."""
        return self in (DocumentType.RECEIPT, DocumentType.EXPENSE)

    @classmethod
    def from_value(cls, value: Any) -> 'DocumentType':
        """
        Parse a document type leniently.

        Accepts enum members, names in any case, and "credit-note" style
        spellings. Anything unrecognised is UNKNOWN.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        key = str(value).strip().upper().replace('-', '_').replace(' ', '_')
        try:
            return cls[key]
        except KeyError:
            return cls.UNKNOWN


class FieldType(Enum):
    """How a field is compared between two extractions."""

    TEXT = auto()           # Trimmed, case-sensitive
    AMOUNT = auto()         # Parsed Decimal value
    DATE = auto()           # Parsed calendar date
    IDENTIFIER = auto()     # VAT/IBAN, compacted before comparison

    @property
    def is_numeric(self) -> bool:
        return self is FieldType.AMOUNT


@dataclass(frozen=True)
class FieldDefinition:
    """
    Definition of one extracted field.
    """

    name: str
    field_type: FieldType = FieldType.TEXT
    description: str = ''

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'field_type': self.field_type.name,
            'description': self.description,
        }


@dataclass(frozen=True)
class DocumentSchema:
    """Ordered field list for one document type."""

    document_type: DocumentType
    fields: Tuple[FieldDefinition, ...] = ()

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Optional[FieldDefinition]:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class DocumentClassification:
    """
    Result of the upstream document classifier.

    Attributes:
        document_type: Classified type (UNKNOWN when classification failed)
        confidence: Classifier confidence in [0, 1]
        language: ISO language code of the document, if detected
        reasoning: Free-text explanation from the classifier
    """

    document_type: DocumentType = DocumentType.UNKNOWN
    confidence: float = 0.0
    language: Optional[str] = None
    reasoning: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DocumentClassification':
        """Create from a JSON mapping (camelCase or snake_case keys)."""
        doc_type = data.get('document_type', data.get('documentType'))
        return cls(
            document_type=DocumentType.from_value(doc_type),
            confidence=float(data.get('confidence') or 0.0),
            language=data.get('language'),
            reasoning=str(data.get('reasoning') or ''),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'document_type': self.document_type.name,
            'confidence': self.confidence,
            'language': self.language,
            'reasoning': self.reasoning,
        }


@dataclass(frozen=True)
class EssentialFieldsCheck:
    """Outcome of the essential-field policy for one document."""

    has_all_fields: bool
    missing_fields: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'has_all_fields': self.has_all_fields,
            'missing_fields': list(self.missing_fields),
        }
