"""
Checksum Facts

IBAN (mod-97) and Belgian structured payment reference (OGM) checksums are
computed by external validators. This module only turns their verdicts
into audit checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Mapping

from .audit_report import AuditCheck, CheckType


@dataclass(frozen=True)
class ValidationResult:
    """
    Verdict of an external checksum validator.

    Attributes:
        is_valid: Whether the checksum holds
        normalized: Canonical form of the value, after OCR-confusion fixes
        message: Validator explanation
        expected: Expected check digits, when invalid
        actual: Check digits found, when invalid
    """

    is_valid: bool
    normalized: Optional[str] = None
    message: str = ''
    expected: Optional[str] = None
    actual: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ValidationResult':
        if not isinstance(data, Mapping):
            raise ValueError(f"Checksum result must be a mapping, got {type(data).__name__}")
        is_valid = data.get('is_valid', data.get('isValid', data.get('valid')))
        if not isinstance(is_valid, bool):
            raise ValueError(f"Checksum result needs a boolean 'is_valid', got {is_valid!r}")
        return cls(
            is_valid=is_valid,
            normalized=data.get('normalized'),
            message=str(data.get('message') or ''),
            expected=data.get('expected'),
            actual=data.get('actual'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'normalized': self.normalized,
            'message': self.message,
            'expected': self.expected,
            'actual': self.actual,
        }


@dataclass(frozen=True)
class ChecksumResults:
    """Checksum verdicts supplied for one document."""

    iban: Optional[ValidationResult] = None
    payment_reference: Optional[ValidationResult] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ChecksumResults':
        iban = data.get('iban')
        reference = data.get('payment_reference', data.get('paymentReference', data.get('ogm')))
        return cls(
            iban=ValidationResult.from_dict(iban) if iban is not None else None,
            payment_reference=(
                ValidationResult.from_dict(reference) if reference is not None else None
            ),
        )


def checksum_check(
    check_type: CheckType, field: str, result: Optional[ValidationResult]
) -> Optional[AuditCheck]:
    """
    Audit check for one checksum verdict.

    Returns None when no verdict was supplied.
    """
    if result is None:
        return None

    label = 'IBAN' if check_type is CheckType.CHECKSUM_IBAN else 'Payment reference'

    if result.is_valid:
        return AuditCheck.passing(check_type, field, f"{label} checksum valid")

    message = f"{label} checksum invalid"
    if result.message:
        message = f"{message}: {result.message}"
    return AuditCheck.critical_failure(
        check_type,
        field,
        message,
        hint=f"Re-read the {label.lower()} digit by digit; OCR often confuses 0/O and 1/I",
        expected=result.expected,
        actual=result.actual,
    )


def checksum_checks(results: Optional[ChecksumResults]) -> List[AuditCheck]:
    if results is None:
        return []
    checks = [
        checksum_check(CheckType.CHECKSUM_OGM, 'payment_reference', results.payment_reference),
        checksum_check(CheckType.CHECKSUM_IBAN, 'iban', results.iban),
    ]
    return [c for c in checks if c is not None]
