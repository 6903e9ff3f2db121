"""
Audit Package

This package runs deterministic arithmetic and structural checks on an
extraction. It never decides anything: it reports what holds and what does
not, with severities, so the judgment gate can decide.

Validation Types:
- Arithmetic checks (totals, line item sums, per-line calculations)
- VAT rate sanity (Belgian rates 0/6/12/21%)
- Checksum verdicts from external IBAN/OGM validators

Key Principle: missing data is not evidence of error. A rule without
enough input emits a passing "skipped" check, never a failure.

Usage:
    from intake_judgment.validation import ExtractionAuditService

    report = ExtractionAuditService().audit(merged, DocumentType.INVOICE)

    for check in report.critical_failures:
        print(f"{check.field}: {check.message}")
"""

from .audit_report import (
    AuditCheck,
    AuditReport,
    AuditStatus,
    CheckType,
    Severity,
)
from .arithmetic_checks import (
    BELGIAN_VAT_RATES,
    DEFAULT_TOLERANCE,
    Discrepancy,
    MathValidator,
    VatRateValidator,
    format_amount,
)
from .checksums import (
    ChecksumResults,
    ValidationResult,
    checksum_check,
    checksum_checks,
)
from .audit_service import (
    AuditConfig,
    BillAmounts,
    ExtractionAuditService,
)

__all__ = [
    'AuditCheck',
    'AuditReport',
    'AuditStatus',
    'CheckType',
    'Severity',
    'BELGIAN_VAT_RATES',
    'DEFAULT_TOLERANCE',
    'Discrepancy',
    'MathValidator',
    'VatRateValidator',
    'format_amount',
    'ChecksumResults',
    'ValidationResult',
    'checksum_check',
    'checksum_checks',
    'AuditConfig',
    'BillAmounts',
    'ExtractionAuditService',
]
