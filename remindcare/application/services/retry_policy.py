"""Exponential backoff for failed scheduled sends."""

from datetime import datetime, timedelta

from remindcare.domain.workflow import RetryState

# Exponent clamp; base * 2**30 seconds is past any configured cap
MAX_EXPONENT = 30


def backoff_delay(failures: int, base_seconds: int, max_seconds: int) -> timedelta:
    """0 failures -> no delay, then base, 2*base, 4*base ... capped at max."""
    if failures <= 0:
        return timedelta(0)
    exponent = min(failures - 1, MAX_EXPONENT)
    return timedelta(seconds=min(base_seconds * (2 ** exponent), max_seconds))


def can_attempt(retry: RetryState, now: datetime, base_seconds: int, max_seconds: int) -> bool:
    if retry.failures <= 0 or retry.last_attempt_at is None:
        return True
    return now - retry.last_attempt_at >= backoff_delay(retry.failures, base_seconds, max_seconds)


def after_success(now: datetime) -> RetryState:
    return RetryState(failures=0, last_attempt_at=now)


def after_failure(retry: RetryState, now: datetime) -> RetryState:
    return RetryState(failures=retry.failures + 1, last_attempt_at=now)
