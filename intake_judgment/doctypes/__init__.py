"""
Document Types

This package defines the document types the pipeline judges, their field
schemas, and the essential-field policy each type must satisfy.
"""

from .document_type import (
    DocumentType,
    DocumentClassification,
    DocumentSchema,
    EssentialFieldsCheck,
    FieldDefinition,
    FieldType,
)
from .builtin_types import (
    INVOICE_SCHEMA,
    BILL_SCHEMA,
    RECEIPT_SCHEMA,
    EXPENSE_SCHEMA,
    get_schema,
    field_type_of,
)
from .essential_fields import check_essential_fields

__all__ = [
    'DocumentType',
    'DocumentClassification',
    'DocumentSchema',
    'EssentialFieldsCheck',
    'FieldDefinition',
    'FieldType',
    'INVOICE_SCHEMA',
    'BILL_SCHEMA',
    'RECEIPT_SCHEMA',
    'EXPENSE_SCHEMA',
    'get_schema',
    'field_type_of',
    'check_essential_fields',
]
