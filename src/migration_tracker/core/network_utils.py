"""Shared network utilities (retry / back-off helpers).

Every idempotent outbound HTTP call goes through :func:`async_retry` so the
connection-level retry policy lives in a single place.  Submission requests
are *not* wrapped: creating a migration twice would burn tokens twice.

Usage::

    from migration_tracker.core.network_utils import async_retry

    @async_retry(retry_on=(httpx.TransportError,))
    async def fetch_status(migration_id: str) -> dict:
        ...
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from .logging_utils import get_logger

_T = TypeVar("_T")


def _log_retry(operation: str) -> Callable[[RetryCallState], None]:
    """Return a tenacity ``before_sleep`` hook that logs the pending retry."""

    def _before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        # Resolved per call: this module is imported before logging is configured.
        get_logger(__name__).info(
            "request_retry_scheduled",
            operation=operation,
            attempt=state.attempt_number,
            wait_seconds=round(state.next_action.sleep, 3) if state.next_action else None,
            error=repr(error),
        )

    return _before_sleep


def async_retry(
    *,
    attempts: int = 3,
    wait: Any | None = None,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    operation: str = "request",
):
    """Return a decorator that retries an async function with back-off.

    Parameters
    ----------
    attempts
        Maximum number of attempts (including first call).
    wait
        Tenacity **wait** strategy.  Defaults to `wait_random_exponential` with
        jitter capped at 2 seconds, well below a typical poll interval.
    retry_on
        Tuple of exception classes that trigger a retry.
    operation
        Name logged with every scheduled retry (``get_status``, ``get_progress``).
    """

    if wait is None:
        wait = wait_random_exponential(multiplier=0.25, max=2)

    def _decorator(func: Callable[..., Awaitable[_T]]) -> Callable[..., Awaitable[_T]]:
        return retry(
            reraise=True,
            stop=stop_after_attempt(attempts),
            wait=wait,
            retry=retry_if_exception_type(retry_on),
            before_sleep=_log_retry(operation),
        )(func)

    return _decorator


__all__ = ["async_retry"]
