"""
Extraction Audit Service

Runs the deterministic audit rules that apply to a document type over the
(merged) extraction and collects them into one AuditReport.

Rules per document type:
- Invoice, credit note, pro forma:
    totals, VAT rate, line items sum, per-line calculation
- Bill: the same, on amounts resolved from amount / total_amount / vat_amount,
  with included-fee lines ("incl. recupel") left out of the line sum
- Receipt: totals, VAT rate
- Expense: totals and VAT rate on a subtotal derived as total - VAT
- Unknown: generic totals only

Checksum verdicts from external IBAN/OGM validators are added for every
document type when supplied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple

from loguru import logger

from ..doctypes import DocumentType
from ..ensemble.candidate import ExtractionCandidate, LineItem
from .arithmetic_checks import (
    BELGIAN_VAT_RATES,
    DEFAULT_TOLERANCE,
    MathValidator,
    VatRateValidator,
)
from .audit_report import AuditCheck, AuditReport, CheckType
from .checksums import ChecksumResults, checksum_checks


@dataclass
class AuditConfig:
    """Configuration for the audit engine."""

    tolerance: Decimal = DEFAULT_TOLERANCE

    check_vat_rate: bool = True
    vat_rates: Tuple[Decimal, ...] = BELGIAN_VAT_RATES
    vat_rate_tolerance: Decimal = Decimal('0.5')

    # Bill lines describing fees already included in other lines
    fee_line_prefixes: Tuple[str, ...] = ('incl ', 'incl.', 'included ', 'inclusief ')
    fee_line_keywords: Tuple[str, ...] = ('recupel', 'auvibel')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tolerance': str(self.tolerance),
            'check_vat_rate': self.check_vat_rate,
            'vat_rates': [str(r) for r in self.vat_rates],
            'vat_rate_tolerance': str(self.vat_rate_tolerance),
            'fee_line_prefixes': list(self.fee_line_prefixes),
            'fee_line_keywords': list(self.fee_line_keywords),
        }


@dataclass(frozen=True)
class BillAmounts:
    """Net, VAT and gross amounts of a bill."""
    net: Optional[Decimal]
    vat: Optional[Decimal]
    gross: Optional[Decimal]


class ExtractionAuditService:
    """
    Audits an extraction for its document type.

    Usage:
        service = ExtractionAuditService()
        report = service.audit(merged, DocumentType.INVOICE)

        if report.overall_status is AuditStatus.CRITICAL:
            for check in report.critical_failures:
                print(check.message, check.hint)
    """

    def __init__(self, config: Optional[AuditConfig] = None):
        self.config = config or AuditConfig()
        self.math = MathValidator(self.config.tolerance)
        self.vat_rates = VatRateValidator(self.config.vat_rates, self.config.vat_rate_tolerance)

    def audit(
        self,
        data: Optional[ExtractionCandidate],
        document_type: DocumentType,
        checksums: Optional[ChecksumResults] = None,
    ) -> AuditReport:
        """
        Audit one extraction.

        Args:
            data: Merged extraction, None when there is nothing to audit
            document_type: Selects the rule set
            checksums: External IBAN/OGM verdicts

        Returns:
            AuditReport (EMPTY when no data and no checksum verdicts)
        """
        checks: List[AuditCheck] = []

        if data is not None:
            if document_type.uses_invoice_rules:
                checks += self._audit_invoice(data)
            elif document_type is DocumentType.BILL:
                checks += self._audit_bill(data)
            elif document_type is DocumentType.RECEIPT:
                checks += self._audit_receipt(data)
            elif document_type is DocumentType.EXPENSE:
                checks += self._audit_expense(data)
            else:
                checks.append(self.math.verify_totals(
                    data.get('subtotal'), self._vat(data), data.get('total_amount'),
                ))

        checks += checksum_checks(checksums)

        report = AuditReport.from_checks(checks)
        logger.info(
            f"Audit ({document_type.name}): {report.overall_status.name}, "
            f"{report.passed_count} passed, {report.failed_count} failed"
        )
        for check in report.critical_failures:
            logger.debug(f"  CRITICAL {check.field}: {check.message}")
        return report

    @staticmethod
    def _vat(data: ExtractionCandidate) -> Any:
        return data.first('vat_amount', 'total_vat_amount')

    def _vat_rate_checks(self, subtotal: Any, vat: Any) -> List[AuditCheck]:
        if not self.config.check_vat_rate:
            return []
        return [self.vat_rates.verify(subtotal, vat)]

    def _line_calculation_checks(self, items: Tuple[LineItem, ...]) -> List[AuditCheck]:
        return [
            self.math.verify_line_item_calculation(
                item.quantity, item.unit_price, item.total, line_number
            )
            for line_number, item in enumerate(items, start=1)
        ]

    # Invoice

    def _audit_invoice(self, data: ExtractionCandidate) -> List[AuditCheck]:
        subtotal = data.get('subtotal')
        vat = self._vat(data)

        checks = [self.math.verify_totals(subtotal, vat, data.get('total_amount'))]
        checks += self._vat_rate_checks(subtotal, vat)
        checks.append(self.math.verify_line_items(data.line_totals, subtotal))
        checks += self._line_calculation_checks(data.line_items)
        return checks

    # Bill

    def resolve_bill_amounts(self, data: ExtractionCandidate) -> BillAmounts:
        """
        Work out net/vat/gross from a bill's amount fields.

        The gross is the explicit total, else the amount. When the bill
        carries both a total and a different amount, the amount is the net;
        otherwise the net is derived as gross - vat.
        """
        amount = data.amount('amount')
        explicit_total = data.amount('total_amount')
        vat = data.amount('vat_amount')
        gross = explicit_total if explicit_total is not None else amount

        if explicit_total is not None and amount is not None and explicit_total != amount:
            net = amount
        elif gross is not None and vat is not None:
            net = gross - vat
        else:
            net = None

        return BillAmounts(net=net, vat=vat, gross=gross)

    def is_included_fee_line(self, item: LineItem) -> bool:
        description = ' '.join((item.description or '').lower().split())
        return (
            description.startswith(self.config.fee_line_prefixes)
            or any(k in description for k in self.config.fee_line_keywords)
        )

    def _audit_bill(self, data: ExtractionCandidate) -> List[AuditCheck]:
        amounts = self.resolve_bill_amounts(data)

        checks = [self.math.verify_totals(amounts.net, amounts.vat, amounts.gross)]
        checks += self._vat_rate_checks(amounts.net, amounts.vat)

        line_totals = [
            item.total for item in data.line_items
            if item.total is not None and not self.is_included_fee_line(item)
        ]
        if data.line_items and not line_totals:
            checks.append(AuditCheck.skipped(
                CheckType.LINE_ITEMS, 'line_items', "only included-fee lines"
            ))
        else:
            checks.append(self.math.verify_line_items(line_totals, amounts.net))

        checks += self._line_calculation_checks(data.line_items)
        return checks

    # Receipt

    def _audit_receipt(self, data: ExtractionCandidate) -> List[AuditCheck]:
        subtotal = data.get('subtotal')
        vat = self._vat(data)

        checks = [self.math.verify_totals(subtotal, vat, data.get('total_amount'))]
        checks += self._vat_rate_checks(subtotal, vat)
        return checks

    # Expense

    def _audit_expense(self, data: ExtractionCandidate) -> List[AuditCheck]:
        total = data.amount('total_amount')
        vat = data.amount('vat_amount')

        # Expenses rarely state a subtotal
        subtotal = total - vat if total is not None and vat is not None else None

        checks = [self.math.verify_totals(subtotal, vat, total)]
        checks += self._vat_rate_checks(subtotal, vat)
        return checks
