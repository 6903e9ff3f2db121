"""
Judgment Gate

Two-phase verdict: the deterministic criteria always run first. Only a
decision that is not clear-cut, with arbitration enabled and an
arbitrator wired in, is handed to the arbitrator, and only for a bounded
time. Whatever goes wrong there, the caller gets the deterministic
decision back.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, replace
from typing import Optional, Dict, Any

from loguru import logger

from .arbitration import Arbitrator, ArbitrationSummary
from .judgment import JudgmentConfig, JudgmentContext, JudgmentCriteria, JudgmentDecision


@dataclass
class ArbitrationConfig:
    """Configuration for the arbitration phase."""
    enabled: bool = False
    timeout_seconds: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'timeout_seconds': self.timeout_seconds,
        }


class JudgmentGate:
    """
    Renders the final verdict for one document.

    Usage:
        gate = JudgmentGate(JudgmentConfig.strict())
        decision = gate.judge_sync(context)

        gate = JudgmentGate(arbitrator=PromptArbitrator(complete),
                            arbitration=ArbitrationConfig(enabled=True))
        decision = await gate.judge(context)
    """

    def __init__(
        self,
        config: Optional[JudgmentConfig] = None,
        arbitrator: Optional[Arbitrator] = None,
        arbitration: Optional[ArbitrationConfig] = None,
    ):
        self.criteria = JudgmentCriteria(config)
        self.arbitrator = arbitrator
        self.arbitration = arbitration or ArbitrationConfig()

    @property
    def config(self) -> JudgmentConfig:
        return self.criteria.config

    def judge_sync(self, context: JudgmentContext) -> JudgmentDecision:
        """Deterministic verdict only."""
        return self.criteria.evaluate(context)

    async def judge(
        self,
        context: JudgmentContext,
        use_arbitration: Optional[bool] = None,
    ) -> JudgmentDecision:
        """
        Verdict with optional arbitration for borderline cases.

        Args:
            context: Reports for one document
            use_arbitration: Overrides ArbitrationConfig.enabled when given

        Returns:
            JudgmentDecision; never raises for arbitration failures
        """
        deterministic = self.criteria.evaluate(context)

        if self.criteria.is_clear_cut(deterministic):
            return deterministic

        enabled = self.arbitration.enabled if use_arbitration is None else use_arbitration
        if not enabled or self.arbitrator is None:
            return deterministic

        summary = ArbitrationSummary.from_context(context, deterministic)
        logger.info(
            f"Decision {deterministic.outcome.name} is borderline "
            f"({deterministic.confidence:.2f}), asking arbitrator"
        )

        try:
            verdict = await asyncio.wait_for(
                self.arbitrator.arbitrate(summary),
                timeout=self.arbitration.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Arbitration timed out after {self.arbitration.timeout_seconds}s, "
                f"keeping deterministic decision"
            )
            return deterministic
        except Exception as e:
            logger.warning(
                f"Arbitration failed ({type(e).__name__}: {e}), keeping deterministic decision"
            )
            return deterministic

        if not isinstance(verdict, JudgmentDecision):
            logger.warning(
                f"Arbitrator returned {type(verdict).__name__}, keeping deterministic decision"
            )
            return deterministic

        if not math.isfinite(verdict.confidence):
            logger.warning(
                f"Arbitrator returned confidence {verdict.confidence}, keeping deterministic decision"
            )
            return deterministic

        logger.info(f"Arbitration: {deterministic.outcome.name} -> {verdict.outcome.name}")

        # Facts about the document stay those computed deterministically
        return replace(
            deterministic,
            outcome=verdict.outcome,
            confidence=min(max(verdict.confidence, 0.0), 1.0),
            reasoning=verdict.reasoning or deterministic.reasoning,
            issues_for_user=verdict.issues_for_user,
            decided_by='arbitration',
        )
