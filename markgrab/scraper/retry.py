"""Bounded retry with exponential backoff for single async operations."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Substrings of a failure description that mark it as transient.  Status
# failures raised by the fetcher read "HTTP <code>: <reason>".
RETRYABLE_HTTP_ERRORS: tuple[str, ...] = (
    "timeout",
    "timed out",
    "connection reset",
    "connection refused",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "HTTP 429",
    "HTTP 500",
    "HTTP 502",
    "HTTP 503",
    "HTTP 504",
)


def describe_error(exc: BaseException) -> str:
    """``"<ExceptionType>: <message>"``, the text signatures are matched against.

    The type name is included because several httpx exceptions (``ReadTimeout``
    and friends) carry an empty message.
    """
    return f"{type(exc).__name__}: {exc}"


def is_retryable(exc: BaseException, signatures: Sequence[str]) -> bool:
    """Return ``True`` if *exc*'s description contains any of *signatures*."""
    description = describe_error(exc).lower()
    return any(signature.lower() in description for signature in signatures)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.debug(
        "Attempt %d failed (%s); retrying in %.2fs",
        retry_state.attempt_number,
        describe_error(exc) if exc else "unknown error",
        wait,
    )


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay_ms: int = 1000,
    retryable_errors: Optional[Sequence[str]] = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run *operation* up to ``max_retries + 1`` times.

    The wait before retry ``n`` (counting from 0) is ``base_delay_ms * 2**n``
    milliseconds.  When *retryable_errors* is given, a failure whose
    description contains none of the signatures is raised straight away.
    The failure of the final attempt is always re-raised unchanged.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt.
        max_retries: Retries after the first attempt.
        base_delay_ms: Delay before the first retry, in milliseconds.
        retryable_errors: Case-insensitive substrings of retryable failures;
            ``None`` retries every ``Exception``.
        sleep: Awaitable sleep used between attempts (seconds).
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")

    if retryable_errors is None:
        predicate = retry_if_exception(lambda exc: isinstance(exc, Exception))
    else:
        signatures = tuple(retryable_errors)
        predicate = retry_if_exception(lambda exc: is_retryable(exc, signatures))

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=base_delay_ms / 1000, exp_base=2),
        retry=predicate,
        before_sleep=_log_retry,
        reraise=True,
        sleep=sleep,
    )
    return await retrying(operation)
