"""
Built-in Document Schemas

Field lists for the document types handled by the intake pipeline.
The consensus engine walks these fields in order when comparing two
extractions, so the order here is the order conflicts are reported in.
"""

from __future__ import annotations

from typing import Dict, Tuple

from .document_type import DocumentSchema, DocumentType, FieldDefinition, FieldType


def _text(name: str, description: str = '') -> FieldDefinition:
    return FieldDefinition(name, FieldType.TEXT, description)


def _amount(name: str, description: str = '') -> FieldDefinition:
    return FieldDefinition(name, FieldType.AMOUNT, description)


def _date(name: str, description: str = '') -> FieldDefinition:
    return FieldDefinition(name, FieldType.DATE, description)


def _ident(name: str, description: str = '') -> FieldDefinition:
    return FieldDefinition(name, FieldType.IDENTIFIER, description)


# Fields every document type may carry
_PAYMENT_FIELDS: Tuple[FieldDefinition, ...] = (
    _text('currency', 'ISO currency code'),
    _ident('iban', 'Payee bank account (IBAN)'),
    _ident('bank_account', 'Payee bank account (non-IBAN)'),
    _text('payment_reference', 'Structured payment reference (OGM)'),
)

INVOICE_SCHEMA = DocumentSchema(
    document_type=DocumentType.INVOICE,
    fields=(
        _text('invoice_number'),
        _date('issue_date'),
        _date('due_date'),
        _text('seller_name', 'Issuing party'),
        _ident('seller_vat'),
        _text('seller_address'),
        _text('buyer_name', 'Receiving party'),
        _ident('buyer_vat'),
        _text('buyer_address'),
        _amount('subtotal', 'Total excluding VAT'),
        _amount('vat_amount'),
        _amount('total_vat_amount', 'VAT total over all rates'),
        _amount('total_amount', 'Total including VAT'),
    ) + _PAYMENT_FIELDS,
)

BILL_SCHEMA = DocumentSchema(
    document_type=DocumentType.BILL,
    fields=(
        _text('bill_number'),
        _date('issue_date'),
        _date('due_date'),
        _text('supplier_name'),
        _ident('supplier_vat'),
        _text('supplier_address'),
        _text('buyer_name'),
        _ident('buyer_vat'),
        _amount('amount', 'Amount to pay'),
        _amount('vat_amount'),
        _amount('total_amount'),
        _text('category'),
    ) + _PAYMENT_FIELDS,
)

RECEIPT_SCHEMA = DocumentSchema(
    document_type=DocumentType.RECEIPT,
    fields=(
        _text('merchant_name'),
        _ident('merchant_vat'),
        _text('merchant_address'),
        _date('transaction_date'),
        _text('receipt_number'),
        _amount('subtotal'),
        _amount('vat_amount'),
        _amount('total_amount'),
        _text('payment_method'),
        _text('currency'),
    ),
)

EXPENSE_SCHEMA = DocumentSchema(
    document_type=DocumentType.EXPENSE,
    fields=(
        _text('merchant_name'),
        _ident('merchant_vat'),
        _date('transaction_date'),
        _amount('vat_amount'),
        _amount('total_amount'),
        _text('category'),
        _text('description'),
        _text('payment_method'),
        _text('currency'),
    ),
)

_SCHEMAS: Dict[DocumentType, DocumentSchema] = {
    DocumentType.INVOICE: INVOICE_SCHEMA,
    DocumentType.CREDIT_NOTE: DocumentSchema(DocumentType.CREDIT_NOTE, INVOICE_SCHEMA.fields),
    DocumentType.PRO_FORMA: DocumentSchema(DocumentType.PRO_FORMA, INVOICE_SCHEMA.fields),
    DocumentType.BILL: BILL_SCHEMA,
    DocumentType.RECEIPT: RECEIPT_SCHEMA,
    DocumentType.EXPENSE: EXPENSE_SCHEMA,
}

# Party aliases some extractors use instead of the schema names
_ALIAS_FIELDS: Tuple[FieldDefinition, ...] = (
    _text('vendor_name'),
    _ident('vendor_vat'),
    _text('customer_name'),
    _ident('customer_vat'),
)

# Every known field across all schemas, for typing fields outside a schema
_ALL_FIELDS: Dict[str, FieldDefinition] = {f.name: f for f in _ALIAS_FIELDS}
for _schema in _SCHEMAS.values():
    for _field in _schema.fields:
        _ALL_FIELDS.setdefault(_field.name, _field)


def get_schema(document_type: DocumentType) -> DocumentSchema:
    """Schema for a document type; UNKNOWN has an empty schema."""
    return _SCHEMAS.get(document_type, DocumentSchema(document_type))


def field_type_of(name: str) -> FieldType:
    """Comparison type of a field, TEXT for fields no schema knows."""
    definition = _ALL_FIELDS.get(name)
    return definition.field_type if definition else FieldType.TEXT
