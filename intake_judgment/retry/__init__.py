"""
Retry Package

Records the outcome of an external self-correction pass for the judgment
gate. Retrying itself belongs to the orchestration layer.
"""

from .retry_result import (
    CorrectedOnRetry,
    NoRetryNeeded,
    RetryResult,
    StillFailing,
    corrected_fields,
    diff_corrected_fields,
    retry_attempts,
    retry_result_from_dict,
    should_attempt_retry,
)

__all__ = [
    'CorrectedOnRetry',
    'NoRetryNeeded',
    'RetryResult',
    'StillFailing',
    'corrected_fields',
    'diff_corrected_fields',
    'retry_attempts',
    'retry_result_from_dict',
    'should_attempt_retry',
]
