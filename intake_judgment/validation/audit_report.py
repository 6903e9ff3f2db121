"""
Audit Report

Checks and reports produced by the audit engine.

A check that passed is always INFO. A failing check is WARNING or
CRITICAL depending on the rule that produced it. Missing input is never a
failure: rules that lack data emit a passing "skipped" check instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, List, Dict, Any, ClassVar, Iterable, Tuple


class CheckType(Enum):
    """What a check verifies."""

    MATH = auto()                       # subtotal + vat = total
    LINE_ITEMS = auto()                 # line items sum / qty × price
    VAT_RATE = auto()                   # implied VAT rate is a legal rate
    CHECKSUM_IBAN = auto()              # external IBAN validator verdict
    CHECKSUM_OGM = auto()               # external payment reference verdict
    COUNTERPARTY_INTEGRITY = auto()     # counterparty is not the tenant


class Severity(Enum):
    """Severity levels for audit checks."""

    INFO = auto()       # Passed or informational
    WARNING = auto()    # Possibly incorrect, flag for review
    CRITICAL = auto()   # Document cannot be approved


class AuditStatus(Enum):
    """Aggregate status of an audit report."""

    PASS = auto()
    WARN = auto()
    CRITICAL = auto()


@dataclass(frozen=True)
class AuditCheck:
    """
    Result of a single audit rule.

    Build checks through the factories so a passing check can never carry
    a failure severity.

    Usage:
        AuditCheck.passing(CheckType.MATH, 'total_amount', "Totals add up")
        AuditCheck.critical_failure(
            CheckType.MATH, 'total_amount', "Totals do not add up",
            hint="Re-read the total", expected="121.00", actual="120.00",
        )
    """

    check_type: CheckType
    field: str
    passed: bool
    severity: Severity
    message: str
    hint: Optional[str] = None
    expected: Optional[str] = None
    actual: Optional[str] = None

    def __post_init__(self):
        if self.passed and self.severity is not Severity.INFO:
            raise ValueError("A passing check must have severity INFO")
        if not self.passed and self.severity is Severity.INFO:
            raise ValueError("A failing check must be WARNING or CRITICAL")

    @classmethod
    def passing(
        cls, check_type: CheckType, field: str, message: str
    ) -> 'AuditCheck':
        return cls(check_type, field, True, Severity.INFO, message)

    @classmethod
    def skipped(
        cls, check_type: CheckType, field: str, reason: str = "insufficient data"
    ) -> 'AuditCheck':
        """Passing check for a rule that had nothing to verify."""
        return cls(check_type, field, True, Severity.INFO, f"Skipped - {reason}")

    @classmethod
    def warning(
        cls,
        check_type: CheckType,
        field: str,
        message: str,
        hint: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
    ) -> 'AuditCheck':
        return cls(check_type, field, False, Severity.WARNING, message, hint, expected, actual)

    @classmethod
    def critical_failure(
        cls,
        check_type: CheckType,
        field: str,
        message: str,
        hint: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
    ) -> 'AuditCheck':
        return cls(check_type, field, False, Severity.CRITICAL, message, hint, expected, actual)

    @property
    def is_critical(self) -> bool:
        return not self.passed and self.severity is Severity.CRITICAL

    @property
    def is_warning(self) -> bool:
        return not self.passed and self.severity is Severity.WARNING

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'type': self.check_type.name,
            'field': self.field,
            'passed': self.passed,
            'severity': self.severity.name,
            'message': self.message,
            'hint': self.hint,
            'expected': self.expected,
            'actual': self.actual,
        }


@dataclass(frozen=True)
class AuditReport:
    """Ordered audit checks for one document."""

    checks: Tuple[AuditCheck, ...] = ()

    EMPTY: ClassVar['AuditReport']

    def __post_init__(self):
        object.__setattr__(self, 'checks', tuple(self.checks))

    @classmethod
    def from_checks(cls, checks: Iterable[AuditCheck]) -> 'AuditReport':
        checks = tuple(checks)
        return cls(checks) if checks else cls.EMPTY

    def merged_with(self, checks: Iterable[AuditCheck]) -> 'AuditReport':
        """New report with extra checks appended; nothing is replaced."""
        return AuditReport.from_checks(self.checks + tuple(checks))

    @property
    def passed_count(self) -> int:
        return sum(1 for c in self.checks if c.passed)

    @property
    def failed_count(self) -> int:
        return sum(1 for c in self.checks if not c.passed)

    @property
    def critical_failures(self) -> List[AuditCheck]:
        return [c for c in self.checks if c.is_critical]

    @property
    def warnings(self) -> List[AuditCheck]:
        return [c for c in self.checks if c.is_warning]

    @property
    def has_critical_failures(self) -> bool:
        return any(c.is_critical for c in self.checks)

    @property
    def overall_status(self) -> AuditStatus:
        if self.has_critical_failures:
            return AuditStatus.CRITICAL
        if self.warnings:
            return AuditStatus.WARN
        return AuditStatus.PASS

    def checks_of_type(self, check_type: CheckType) -> List[AuditCheck]:
        return [c for c in self.checks if c.check_type is check_type]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'overall_status': self.overall_status.name,
            'passed_count': self.passed_count,
            'failed_count': self.failed_count,
            'checks': [c.to_dict() for c in self.checks],
        }


AuditReport.EMPTY = AuditReport()
