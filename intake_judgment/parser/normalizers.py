"""
Normalizers Module

This module turns heterogeneous extracted values into comparable canonical
forms. Every comparison made by the consensus, audit and direction stages
goes through these normalizers first.

What normalization does:
- Amounts → Decimal, locale aware ("1.234,56" and "1,234.56" agree)
- Text → trimmed, case preserved (for conflict detection)
- Identifiers (VAT, IBAN) → uppercase, no spaces or punctuation
- Party names → lowercase word tokens (for fuzzy matching)
- Dates → datetime.date

Why this matters:
Two extraction passes over the same invoice rarely agree on formatting:
- "€ 1.234,56", "1234.56", "EUR 1 234,56" → Decimal('1234.56')
- "BE 0123.456.789", "BE0123456789" → "BE0123456789"
- " ACME NV ", "ACME NV" → equal

A formatting difference must never be reported as a disagreement.

Failure policy:
Normalizers are total. Unparsable input yields None, never an exception,
because absent or garbled data is expected and common.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from dateutil import parser as date_parser
from loguru import logger


# Whitespace variants seen in OCR and PDF text layers
_SPACE_CHARS = re.compile(r'[\s\u00a0\u2007\u2009\u202f]+')


class AmountNormalizer:
    """
    Parses monetary amounts into Decimal.

    Handles:
    - Currency symbols and codes ($, €, £, EUR, USD, ...)
    - Every kind of space as thousands separator (1 234,56)
    - European and US separator conventions
    - Accounting negatives ((100.00)) and leading minus signs

    Usage:
        normalizer = AmountNormalizer()
        normalizer.parse("€ 1.234,56")   # Decimal('1234.56')
        normalizer.parse("N/A")          # None
    """

    def parse(self, value: Any) -> Optional[Decimal]:
        """
        Parse an amount.

        Args:
            value: str, int, float or Decimal

        Returns:
            Decimal value, or None when the input is empty or unparsable
        """
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, Decimal):
            return value if value.is_finite() else None

        if isinstance(value, int):
            return Decimal(value)

        if isinstance(value, float):
            # str() first so 0.1 stays 0.1 instead of its binary expansion
            parsed = Decimal(str(value))
            return parsed if parsed.is_finite() else None

        text = str(value).strip()
        if not text:
            return None

        is_negative = '(' in text and ')' in text

        text = _SPACE_CHARS.sub('', text)
        cleaned = re.sub(r'[^\d.,\-]', '', text)

        if cleaned.startswith('-') or cleaned.endswith('-'):
            is_negative = True
            cleaned = cleaned.strip('-')

        if not cleaned or '-' in cleaned or not any(c.isdigit() for c in cleaned):
            logger.debug(f"Could not parse amount: {value!r}")
            return None

        cleaned = self._normalize_separators(cleaned)

        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            logger.debug(f"Could not parse amount: {value!r}")
            return None

        return -abs(result) if is_negative else result

    def _normalize_separators(self, value: str) -> str:
        """
        Resolve thousands/decimal separators to a canonical dotted number.

        - US/UK: 1,234.56 (comma=thousands, dot=decimal)
        - Europe: 1.234,56 (dot=thousands, comma=decimal)
        - Comma only: 123,45 is decimal, 1,234 is thousands
        """
        dots = value.count('.')
        commas = value.count(',')

        if commas == 0:
            if dots <= 1:
                # Already canonical (1234.56)
                return value
            # Multiple dots - thousands separators (1.234.567)
            return value.replace('.', '')

        if dots == 0:
            # Decimal comma sits at most three characters from the end (",56")
            digits_after = len(value) - value.rfind(',') - 1
            if digits_after <= 2:
                head, _, tail = value.rpartition(',')
                return head.replace(',', '') + '.' + tail
            return value.replace(',', '')

        # Both present - the rightmost one is the decimal separator
        if value.rfind(',') > value.rfind('.'):
            return value.replace('.', '').replace(',', '.')
        return value.replace(',', '')


class TextNormalizer:
    """Normalizes text values for comparison."""

    @staticmethod
    def clean(value: Any) -> Optional[str]:
        """Trimmed string, or None for empty values."""
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @staticmethod
    def equal_for_comparison(a: Any, b: Any) -> bool:
        """Trimmed, case-sensitive equality."""
        return TextNormalizer.clean(a) == TextNormalizer.clean(b)


class IdentifierNormalizer:
    """Compacts VAT numbers, IBANs and payment references."""

    @staticmethod
    def compact(value: Any) -> Optional[str]:
        if value is None:
            return None
        compacted = re.sub(r'[^0-9A-Za-z]', '', str(value)).upper()
        return compacted or None

    @staticmethod
    def vat(value: Any) -> Optional[str]:
        return IdentifierNormalizer.compact(value)

    @staticmethod
    def iban(value: Any) -> Optional[str]:
        return IdentifierNormalizer.compact(value)


class NameNormalizer:
    """Normalizes party names for matching against a tenant identity."""

    @staticmethod
    def normalize(value: Any) -> str:
        """
        Lowercase, replace punctuation with spaces, collapse whitespace.

        "ACME, N.V." → "acme n v"
        """
        if value is None:
            return ""
        text = re.sub(r'[^0-9a-z]+', ' ', str(value).lower())
        return ' '.join(text.split())


class DateNormalizer:
    """Parses date values into datetime.date."""

    def __init__(self, formats: Optional[list[str]] = None):
        """
        Initialize date normalizer.

        Args:
            formats: Input date formats to try before the dateutil fallback
        """
        self.formats = formats or [
            "%Y-%m-%d",
            "%d/%m/%Y",
            "%d-%m-%Y",
            "%d.%m.%Y",
            "%Y/%m/%d",
            "%d %B %Y",
            "%d %b %Y",
            "%B %d, %Y",
            "%b %d, %Y",
        ]

    def parse(self, value: Any) -> Optional[date]:
        """
        Parse a date.

        Returns:
            date, or None if parsing fails
        """
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value

        text = str(value).strip()
        if not text:
            return None

        for fmt in self.formats:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue

        # dateutil as fallback, day-first like European documents
        try:
            return date_parser.parse(text, dayfirst=True).date()
        except (ValueError, OverflowError):
            logger.debug(f"Could not parse date: {value!r}")
            return None


# Convenience functions

_amounts = AmountNormalizer()


def normalize_amount(value: Any) -> Optional[Decimal]:
    """Parse an amount to Decimal, None if unparsable."""
    return _amounts.parse(value)


def amounts_equal(a: Any, b: Any) -> bool:
    """
    Compare two amounts by parsed value.

    "100.00" equals "100". Two unparsable values fall back to trimmed
    text equality so "N/A" still equals "N/A".
    """
    parsed_a = normalize_amount(a)
    parsed_b = normalize_amount(b)
    if parsed_a is None or parsed_b is None:
        if parsed_a is None and parsed_b is None:
            return TextNormalizer.equal_for_comparison(a, b)
        return False
    return parsed_a == parsed_b


def normalize_text(value: Any) -> Optional[str]:
    """Trim a text value, None when empty."""
    return TextNormalizer.clean(value)
