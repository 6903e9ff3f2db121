"""
Retry Results

Outcome of an optional external self-correction pass. When the audit finds
critical failures, the orchestration layer may re-run extraction with the
failures as feedback. The decision core only records what happened.

Variants:
- NoRetryNeeded: the audit had no critical failures
- CorrectedOnRetry: a retry fixed the critical failures
- StillFailing: retries ran out with failures remaining

None (no RetryResult at all) means no retry subsystem is wired in, which
is a neutral fact, not an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Mapping, Tuple, Union, assert_never

from ..validation.audit_report import AuditCheck, AuditReport, CheckType, Severity


@dataclass(frozen=True)
class NoRetryNeeded:
    """The first extraction passed the audit."""

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': 'NoRetryNeeded'}


@dataclass(frozen=True)
class CorrectedOnRetry:
    """A retry fixed the original critical failures."""

    attempt: int
    corrected_fields: Tuple[str, ...] = ()
    original_failures: Tuple[AuditCheck, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'corrected_fields', tuple(self.corrected_fields))
        object.__setattr__(self, 'original_failures', tuple(self.original_failures))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': 'CorrectedOnRetry',
            'attempt': self.attempt,
            'corrected_fields': list(self.corrected_fields),
            'original_failures': [c.to_dict() for c in self.original_failures],
        }


@dataclass(frozen=True)
class StillFailing:
    """Retries ran out and failures remain."""

    attempts: int
    remaining_failures: Tuple[AuditCheck, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'remaining_failures', tuple(self.remaining_failures))

    @property
    def has_critical_failures(self) -> bool:
        return any(c.is_critical for c in self.remaining_failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': 'StillFailing',
            'attempts': self.attempts,
            'remaining_failures': [c.to_dict() for c in self.remaining_failures],
        }


RetryResult = Union[NoRetryNeeded, CorrectedOnRetry, StillFailing]


def retry_attempts(result: Optional[RetryResult]) -> int:
    """Number of retries that ran."""
    if result is None or isinstance(result, NoRetryNeeded):
        return 0
    if isinstance(result, CorrectedOnRetry):
        return result.attempt
    if isinstance(result, StillFailing):
        return result.attempts
    assert_never(result)


def corrected_fields(result: Optional[RetryResult]) -> List[str]:
    if isinstance(result, CorrectedOnRetry):
        return list(result.corrected_fields)
    return []


def should_attempt_retry(report: AuditReport) -> bool:
    """Self-correction only runs for critical failures."""
    return report.has_critical_failures


def diff_corrected_fields(
    before: Mapping[str, Any], after: Mapping[str, Any]
) -> List[str]:
    """Fields whose value changed between two extraction attempts."""
    names = sorted(set(before) | set(after))
    return [n for n in names if before.get(n) != after.get(n)]


def _check_from_dict(data: Mapping[str, Any]) -> AuditCheck:
    if not isinstance(data, Mapping):
        raise ValueError(f"Retry check must be a mapping, got {type(data).__name__}")
    severity = Severity[str(data.get('severity', 'CRITICAL')).upper()]
    check_type = CheckType[str(data.get('type', 'MATH')).upper()]
    return AuditCheck(
        check_type=check_type,
        field=str(data.get('field', '')),
        passed=bool(data.get('passed', False)),
        severity=severity,
        message=str(data.get('message', '')),
        hint=data.get('hint'),
        expected=data.get('expected'),
        actual=data.get('actual'),
    )


def retry_result_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[RetryResult]:
    """
    Read a retry record from JSON.

    Raises:
        ValueError: If the kind or a nested check is not recognised
    """
    if data is None:
        return None

    kind = str(data.get('kind', '')).replace('_', '').lower()
    try:
        if kind == 'noretryneeded':
            return NoRetryNeeded()
        if kind == 'correctedonretry':
            return CorrectedOnRetry(
                attempt=int(data.get('attempt', 1)),
                corrected_fields=tuple(data.get('corrected_fields', ())),
                original_failures=tuple(
                    _check_from_dict(c) for c in data.get('original_failures', ())
                ),
            )
        if kind == 'stillfailing':
            return StillFailing(
                attempts=int(data.get('attempts', 1)),
                remaining_failures=tuple(
                    _check_from_dict(c) for c in data.get('remaining_failures', ())
                ),
            )
    except KeyError as e:
        raise ValueError(f"Unknown check type or severity in retry record: {e}") from e

    raise ValueError(f"Unknown retry result kind: {data.get('kind')!r}")
