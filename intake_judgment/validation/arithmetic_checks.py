"""
Arithmetic Validation Module

This module performs arithmetic verification on extracted financial data.
It's the most critical validation - arithmetic errors can cause real damage.

Checks Performed:
- Subtotal + VAT = Total                  (CRITICAL on mismatch)
- Sum(Line Items) = Subtotal              (WARNING on mismatch)
- Quantity × Unit Price = Line Total      (WARNING on mismatch, per line)
- VAT / Subtotal is a standard VAT rate   (WARNING on mismatch)

Why This Matters:
- OCR often produces "close but wrong" numbers
- Transposed digits (123 vs 132) pass format checks
- Missing decimals (1234 vs 12.34) are common
- These errors propagate downstream silently

Design Philosophy:
- Use Decimal for precision (no float rounding)
- Absolute tolerance of 2 cents absorbs rounding on the document
- Missing data is not an error: it yields a passing "skipped" check
- Provide expected vs actual values and a hint for re-inspection
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Any, Iterable, Sequence

from ..parser.normalizers import normalize_amount
from .audit_report import AuditCheck, CheckType

CENT = Decimal('0.01')

DEFAULT_TOLERANCE = Decimal('0.02')

# Belgian VAT rates in percent
BELGIAN_VAT_RATES = (Decimal('0'), Decimal('6'), Decimal('12'), Decimal('21'))


def format_amount(value: Decimal) -> str:
    """Two-decimal string, half-up: Decimal('121') → '121.00'"""
    return str(value.quantize(CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Discrepancy:
    """
    Expected vs actual value of a failed calculation.
    """
    expected: Decimal
    actual: Decimal

    @property
    def difference(self) -> Decimal:
        return abs(self.expected - self.actual)

    @property
    def difference_percent(self) -> float:
        if self.expected == 0:
            return 100.0 if self.actual != 0 else 0.0
        return float(self.difference / abs(self.expected) * 100)

    @property
    def is_likely_transposition(self) -> bool:
        """Check if error might be due to digit transposition."""
        exp_str = format_amount(abs(self.expected)).replace('.', '')
        act_str = format_amount(abs(self.actual)).replace('.', '')

        if len(exp_str) != len(act_str):
            return False

        # Same digits in different order
        return sorted(exp_str) == sorted(act_str) and exp_str != act_str

    @property
    def is_likely_decimal_shift(self) -> bool:
        """Check if error might be decimal point shift."""
        if not self.actual:
            return False
        ratio = abs(self.expected / self.actual)

        for power in ('10', '100', '1000', '0.1', '0.01', '0.001'):
            if abs(ratio - Decimal(power)) < Decimal('0.001'):
                return True
        return False

    @property
    def suggestion(self) -> str:
        """Generate suggestion based on error analysis."""
        if self.is_likely_transposition:
            return "Possible digit transposition - verify source document"
        if self.is_likely_decimal_shift:
            return "Possible decimal point error - check for missing/extra zeros"
        if self.difference_percent > 50:
            return "Large discrepancy - may indicate OCR error or missing data"
        return "Verify calculations against source document"


class MathValidator:
    """
    Verifies document arithmetic within an absolute tolerance.

    Every method accepts raw values (strings, numbers, Decimal or None)
    and parses them with the amount normalizer first.

    Usage:
        validator = MathValidator()
        check = validator.verify_totals('100.00', '21.00', '120.00')
        check.severity     # Severity.CRITICAL
        check.expected     # '121.00'
    """

    def __init__(self, tolerance: Decimal = DEFAULT_TOLERANCE):
        self.tolerance = Decimal(str(tolerance))

    def _values_match(self, expected: Decimal, actual: Decimal) -> bool:
        return abs(expected - actual) <= self.tolerance

    def verify_totals(self, subtotal: Any, vat: Any, total: Any) -> AuditCheck:
        """Verify subtotal + vat = total."""
        net = normalize_amount(subtotal)
        tax = normalize_amount(vat)
        gross = normalize_amount(total)

        if net is None and tax is None and gross is None:
            return AuditCheck.passing(CheckType.MATH, 'total_amount', "No amounts to verify")

        if net is None or tax is None or gross is None:
            return AuditCheck.skipped(CheckType.MATH, 'total_amount')

        expected = net + tax
        if self._values_match(expected, gross):
            return AuditCheck.passing(
                CheckType.MATH,
                'total_amount',
                f"Subtotal + VAT matches total ({format_amount(gross)})",
            )

        discrepancy = Discrepancy(expected, gross)
        return AuditCheck.critical_failure(
            CheckType.MATH,
            'total_amount',
            f"Subtotal ({format_amount(net)}) + VAT ({format_amount(tax)}) = "
            f"{format_amount(expected)}, but total is {format_amount(gross)}",
            hint=f"Re-inspect the total on the source document. {discrepancy.suggestion}",
            expected=format_amount(expected),
            actual=format_amount(gross),
        )

    def verify_line_items(self, line_totals: Iterable[Any], subtotal: Any) -> AuditCheck:
        """Verify the line item totals sum to the subtotal."""
        parsed = [normalize_amount(t) for t in line_totals]
        amounts = [a for a in parsed if a is not None]

        if not amounts:
            return AuditCheck.passing(CheckType.LINE_ITEMS, 'line_items', "No line items to verify")

        net = normalize_amount(subtotal)
        if net is None:
            return AuditCheck.skipped(CheckType.LINE_ITEMS, 'line_items', "no subtotal to compare")

        line_sum = sum(amounts, Decimal('0'))
        if self._values_match(line_sum, net):
            return AuditCheck.passing(
                CheckType.LINE_ITEMS,
                'line_items',
                f"{len(amounts)} line item(s) sum to subtotal ({format_amount(net)})",
            )

        return AuditCheck.warning(
            CheckType.LINE_ITEMS,
            'line_items',
            f"Line items sum to {format_amount(line_sum)}, "
            f"but subtotal is {format_amount(net)}",
            hint="Some line items may be missing or the document has no full breakdown",
            expected=format_amount(line_sum),
            actual=format_amount(net),
        )

    def verify_line_item_calculation(
        self,
        quantity: Any,
        unit_price: Any,
        line_total: Any,
        line_number: int,
    ) -> AuditCheck:
        """Verify quantity × unit price = line total for one line."""
        field_name = f"lineItem[{line_number}]"
        qty = normalize_amount(quantity)
        price = normalize_amount(unit_price)
        total = normalize_amount(line_total)

        if qty is None or price is None or total is None:
            return AuditCheck.skipped(CheckType.LINE_ITEMS, field_name)

        expected = qty * price
        if self._values_match(expected, total):
            return AuditCheck.passing(
                CheckType.LINE_ITEMS, field_name, "Quantity × unit price matches line total"
            )

        discrepancy = Discrepancy(expected, total)
        return AuditCheck.warning(
            CheckType.LINE_ITEMS,
            field_name,
            f"Line {line_number}: {qty} × {format_amount(price)} = "
            f"{format_amount(expected)}, but line total is {format_amount(total)}",
            hint=discrepancy.suggestion,
            expected=format_amount(expected),
            actual=format_amount(total),
        )


class VatRateValidator:
    """
    Checks that the implied VAT rate (vat / subtotal) is a standard rate.

    Documents mixing several rates legitimately fail this check, which is
    why a mismatch is only a WARNING.
    """

    def __init__(
        self,
        rates: Sequence[Decimal] = BELGIAN_VAT_RATES,
        tolerance_points: Decimal = Decimal('0.5'),
    ):
        self.rates = tuple(Decimal(str(r)) for r in rates)
        self.tolerance_points = Decimal(str(tolerance_points))

    def implied_rate(self, subtotal: Any, vat: Any) -> Optional[Decimal]:
        net = normalize_amount(subtotal)
        tax = normalize_amount(vat)
        if net is None or tax is None or net == 0:
            return None
        return (tax / net * 100).quantize(CENT, rounding=ROUND_HALF_UP)

    def verify(self, subtotal: Any, vat: Any) -> AuditCheck:
        rate = self.implied_rate(subtotal, vat)
        if rate is None:
            return AuditCheck.skipped(CheckType.VAT_RATE, 'vat_amount')

        nearest = min(self.rates, key=lambda r: abs(rate - r))
        if abs(rate - nearest) <= self.tolerance_points:
            return AuditCheck.passing(
                CheckType.VAT_RATE, 'vat_amount', f"VAT rate {nearest}% is a standard rate"
            )

        allowed = ', '.join(f"{r}%" for r in self.rates)
        return AuditCheck.warning(
            CheckType.VAT_RATE,
            'vat_amount',
            f"Implied VAT rate {rate}% is not a standard rate ({allowed})",
            hint="Check the VAT amount and subtotal, or whether several rates apply",
            expected=f"{nearest}%",
            actual=f"{rate}%",
        )
