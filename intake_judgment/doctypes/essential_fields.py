"""
Essential Field Policy

The minimum field set a document must carry before any automated
decision about it can be trusted.

Policy per document type:
- Invoice (and credit note, pro forma):
      total_amount
      OR (subtotal AND (vat_amount OR total_vat_amount))
      OR (total_amount AND (issue_date OR seller_name))
- Bill:
      amount
      OR (amount AND (issue_date OR supplier_name))
  total_amount is accepted as the bill amount.
- Receipt: total_amount AND (merchant_name OR transaction_date)
- Expense: total_amount
- Unknown: never satisfied
"""

from __future__ import annotations

from typing import Any, List

from .document_type import DocumentType, EssentialFieldsCheck


def _present(data: Any, name: str) -> bool:
    if data is None:
        return False
    value = data.get(name)
    return value is not None and str(value).strip() != ''


def _any_present(data: Any, *names: str) -> bool:
    return any(_present(data, n) for n in names)


def _check_invoice(data: Any) -> EssentialFieldsCheck:
    total = _present(data, 'total_amount')
    net_and_vat = _present(data, 'subtotal') and _any_present(data, 'vat_amount', 'total_vat_amount')
    dated_total = total and _any_present(data, 'issue_date', 'seller_name', 'vendor_name')

    if total or net_and_vat or dated_total:
        return EssentialFieldsCheck(True)
    return EssentialFieldsCheck(False, ('total_amount',))


def _check_bill(data: Any) -> EssentialFieldsCheck:
    amount = _any_present(data, 'amount', 'total_amount')
    dated_amount = amount and _any_present(data, 'issue_date', 'supplier_name')

    if amount or dated_amount:
        return EssentialFieldsCheck(True)
    return EssentialFieldsCheck(False, ('amount',))


def _check_receipt(data: Any) -> EssentialFieldsCheck:
    missing: List[str] = []
    if not _present(data, 'total_amount'):
        missing.append('total_amount')
    if not _any_present(data, 'merchant_name', 'transaction_date'):
        missing.append('merchant_name or transaction_date')
    return EssentialFieldsCheck(not missing, tuple(missing))


def _check_expense(data: Any) -> EssentialFieldsCheck:
    if _present(data, 'total_amount'):
        return EssentialFieldsCheck(True)
    return EssentialFieldsCheck(False, ('total_amount',))


def check_essential_fields(document_type: DocumentType, data: Any) -> EssentialFieldsCheck:
    """
    Apply the essential-field policy.

    Args:
        document_type: Classified document type
        data: Anything with a mapping-style ``get`` (an ExtractionCandidate
            or a plain dict); None when no extraction exists

    Returns:
        EssentialFieldsCheck with the missing fields listed for the user
    """
    if not document_type.is_classified:
        return EssentialFieldsCheck(False, ('document_type',))

    if document_type.uses_invoice_rules:
        return _check_invoice(data)
    if document_type is DocumentType.BILL:
        return _check_bill(data)
    if document_type is DocumentType.RECEIPT:
        return _check_receipt(data)
    if document_type is DocumentType.EXPENSE:
        return _check_expense(data)

    return EssentialFieldsCheck(False, ('document_type',))
