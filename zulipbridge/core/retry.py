"""Exponential-backoff retries for registration-style calls."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from zulipbridge.observability.logging import get_logger

T = TypeVar("T")
log = get_logger("retry")


class RetryableError(Exception):
    """Worth another attempt."""


class TransientError(RetryableError):
    pass


class RateLimitError(RetryableError):
    pass


def _log_retry(state: RetryCallState) -> None:
    e = state.outcome.exception()
    log.warning(
        "retry_scheduled",
        func=getattr(state.fn, "__name__", repr(state.fn)),
        attempt=state.attempt_number,
        sleep_s=state.next_action.sleep if state.next_action else 0,
        error=str(e),
        error_type=type(e).__name__,
    )


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
    retryable_exceptions: tuple[Type[Exception], ...] = (TransientError, RateLimitError),
    **kwargs: Any,
) -> T:
    """Await func(*args, **kwargs), retrying retryable_exceptions with backoff.

    Anything else, and the last retryable error, propagates unchanged.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retryable_exceptions),
        before_sleep=_log_retry,
        reraise=True,
    )
    return await retrying(func, *args, **kwargs)
