"""Retry policy for idempotent remote queries, built on tenacity."""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fleet_patcher.utils.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)

# Only dropped or refused connections are retried. Timeouts are not: a hung
# command may still be running on the remote end.
_RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (ConnectionError,)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "remote_query_retry",
        attempt=retry_state.attempt_number,
        operation=getattr(retry_state.fn, "__name__", "unknown"),
        delay_seconds=round(delay, 2),
        error=str(error) if error else "unknown",
    )


def retry_with_logging(
    max_attempts: int = 3,
    *,
    multiplier: float = 1,
    min_wait: float = 2,
    max_wait: float = 10,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Retry ``ConnectionError`` with exponential backoff.

    ``max_attempts`` counts the first call; values below one still make a
    single attempt. The last error is re-raised unchanged. Wrap read-only
    operations only.
    """
    policy = retry(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(_RETRYABLE_EXCEPTIONS),
        before_sleep=_log_retry,
        reraise=True,
    )

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @policy
        @functools.wraps(func)
        def attempt(*args: P.args, **kwargs: P.kwargs) -> T:
            return func(*args, **kwargs)

        return attempt  # type: ignore[return-value]

    return decorator
