"""
Parser Package

This package normalizes extracted values before any comparison happens.
It includes:
- Locale aware amount parsing
- Trimmed text comparison
- VAT/IBAN identifier compaction
- Party name normalization for fuzzy matching

Usage:
    from intake_judgment.parser import normalize_amount, amounts_equal

    normalize_amount("€ 1.234,56")            # Decimal('1234.56')
    amounts_equal("$1,234.56", "1234.56")     # True
"""

from .normalizers import (
    AmountNormalizer,
    TextNormalizer,
    IdentifierNormalizer,
    NameNormalizer,
    DateNormalizer,
    normalize_amount,
    amounts_equal,
    normalize_text,
)

__all__ = [
    'AmountNormalizer',
    'TextNormalizer',
    'IdentifierNormalizer',
    'NameNormalizer',
    'DateNormalizer',
    'normalize_amount',
    'amounts_equal',
    'normalize_text',
]
