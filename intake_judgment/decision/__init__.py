"""
Decision Package

This package renders the final verdict for a document:
- Deterministic judgment criteria (always run)
- Optional arbitration for borderline decisions
- The gate that combines both and never fails open

Usage:
    from intake_judgment.decision import JudgmentGate, JudgmentContext

    gate = JudgmentGate()
    decision = gate.judge_sync(context)
    print(decision.outcome.display_name)
"""

from .judgment import (
    JudgmentConfig,
    JudgmentContext,
    JudgmentCriteria,
    JudgmentDecision,
    JudgmentOutcome,
)
from .arbitration import (
    Arbitrator,
    ArbitrationError,
    ArbitrationSummary,
    PromptArbitrator,
)
from .gate import ArbitrationConfig, JudgmentGate

__all__ = [
    'JudgmentConfig',
    'JudgmentContext',
    'JudgmentCriteria',
    'JudgmentDecision',
    'JudgmentOutcome',
    'Arbitrator',
    'ArbitrationError',
    'ArbitrationSummary',
    'PromptArbitrator',
    'ArbitrationConfig',
    'JudgmentGate',
]
