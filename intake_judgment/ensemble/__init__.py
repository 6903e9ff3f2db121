"""
Ensemble Package

This package reconciles two independent extractions of the same document.

Two Sources:
- fast: a cheap pass, good on layout and obvious fields
- expert: a slow pass, trusted more when the two disagree

The merge outcome is a closed union: NoData, SingleSource, Unanimous or
WithConflicts. Consumers handle every variant explicitly.

Usage:
    from intake_judgment.ensemble import ConsensusEngine, WithConflicts

    result = ConsensusEngine().merge(fast, expert)
    if isinstance(result, WithConflicts):
        print(result.report.critical_conflicts)
"""

from .candidate import (
    CandidateFormatError,
    ExtractionCandidate,
    ExtractionSource,
    LineItem,
)
from .conflicts import (
    CRITICAL_FIELDS,
    ConflictReport,
    ConflictSeverity,
    FieldConflict,
    ModelWeight,
)
from .consensus import (
    ConsensusConfig,
    ConsensusEngine,
    ConsensusResult,
    NoData,
    SingleSource,
    Unanimous,
    WithConflicts,
)

__all__ = [
    'CandidateFormatError',
    'ExtractionCandidate',
    'ExtractionSource',
    'LineItem',
    'CRITICAL_FIELDS',
    'ConflictReport',
    'ConflictSeverity',
    'FieldConflict',
    'ModelWeight',
    'ConsensusConfig',
    'ConsensusEngine',
    'ConsensusResult',
    'NoData',
    'SingleSource',
    'Unanimous',
    'WithConflicts',
]
