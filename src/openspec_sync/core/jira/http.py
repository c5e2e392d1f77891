"""
Retry policy for idempotent Jira requests.

Jira Cloud rate limits per account: a burst of requests is answered with
429 and a ``Retry-After`` header giving the wait in seconds. 503 during
maintenance carries the same header. Those responses, other 5xx and
transport failures are retried; any other 4xx (bad token, unknown
ticket, missing permission) is final.

Only reads (fetching an issue, downloading an attachment) are wrapped.
Upload and delete are never retried: a repeated upload would leave two
archives on the ticket.

Example:
    >>> policy = RetryPolicy(max_retries=3)
    >>> fetch = with_retry(policy)(client.get_issue)
"""

import functools
import logging
import random
import time
from collections.abc import Callable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0

# Longest wait honoured from a Retry-After header
MAX_RETRY_AFTER = 60.0

RATE_LIMITED = 429


def retry_after_seconds(response: httpx.Response) -> float | None:
    """
    Read the wait requested by a ``Retry-After`` header.

    Accepts both forms the header allows: a number of seconds, or an
    HTTP date.

    Returns:
        Seconds to wait (never negative), or None if the header is
        missing or unreadable.
    """
    value = response.headers.get("Retry-After", "").strip()
    if not value:
        return None

    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug("Unreadable Retry-After header: %r", value)
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def is_retryable_error(exception: Exception) -> bool:
    """
    Determine whether a failed Jira read is worth repeating.

    Retryable: 429, 5xx, and transport errors (timeouts, refused or
    dropped connections). Everything else is final.
    """
    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status == RATE_LIMITED or 500 <= status < 600

    return isinstance(exception, httpx.TransportError)


class RetryPolicy:
    """
    How often and how long to wait between attempts.

    Without a ``Retry-After`` hint the wait grows exponentially
    (``base_delay * multiplier ** attempt``) with random jitter. A hint
    from Jira replaces the computed wait. Every wait is capped at
    ``max_delay``.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        multiplier: float = 2.0,
        max_delay: float = MAX_RETRY_AFTER,
        jitter_ratio: float = 0.2,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if max_delay < base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if not 0.0 <= jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")

        self.max_retries = max_retries
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter_ratio = jitter_ratio

    def backoff(self, attempt: int) -> float:
        """Computed wait before retry number ``attempt`` (0-indexed)."""
        delay = self.base_delay * (self.multiplier**attempt)
        if self.jitter_ratio:
            variance = delay * self.jitter_ratio
            delay += random.uniform(-variance, variance)
        return min(max(0.0, delay), self.max_delay)

    def delay_for(self, error: Exception, attempt: int) -> float:
        """Wait before retrying after ``error``, preferring Jira's own hint."""
        if isinstance(error, httpx.HTTPStatusError):
            hinted = retry_after_seconds(error.response)
            if hinted is not None:
                return min(hinted, self.max_delay)
        return self.backoff(attempt)


def with_retry(policy: RetryPolicy | None = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator that repeats a Jira read according to ``policy``.

    The decorated function must raise httpx errors (for example via
    ``response.raise_for_status()``) for failures to be classified.
    """
    policy = policy or RetryPolicy()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            name = getattr(func, "__name__", repr(func))
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not is_retryable_error(e):
                        raise
                    if attempt >= policy.max_retries:
                        logger.warning("%s: giving up after %d retries: %s", name, attempt, e)
                        raise

                    delay = policy.delay_for(e, attempt)
                    if isinstance(e, httpx.HTTPStatusError) and e.response.status_code == RATE_LIMITED:
                        logger.info("%s: rate limited by Jira, waiting %.1fs", name, delay)
                    else:
                        logger.info(
                            "%s: retry %d/%d in %.1fs after: %s",
                            name,
                            attempt + 1,
                            policy.max_retries,
                            delay,
                            e,
                        )
                    time.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator


__all__ = [
    "DEFAULT_TIMEOUT",
    "MAX_RETRY_AFTER",
    "RetryPolicy",
    "is_retryable_error",
    "retry_after_seconds",
    "with_retry",
]
