"""Exponential backoff retry policy.

A policy instance governs *one* retryable operation::

    policy = BackoffRetryPolicy()
    while policy.should_retry():
        try:
            return call()
        except TransientStoreError as exc:
            policy.on_failure(exc)
    raise ...  # policy.last_error is final

The policy only decides whether and how long to wait.  Deciding whether
an error is retryable at all is the caller's job (see
:func:`docdb_import.retry.executor.execute_with_retry`).
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from docdb_import.config import settings
from docdb_import.exceptions import RateLimitedError

logger = logging.getLogger(__name__)


class BackoffRetryPolicy:
    """Stateful retry decision object with exponential backoff.

    Parameters
    ----------
    max_attempts:
        Number of failures tolerated before giving up.  The operation is
        attempted at most ``max_attempts + 1`` times.
    initial_backoff:
        First wait, in seconds, after a generic transient failure.
    multiplier:
        Growth factor applied to the backoff after each generic failure.
    max_backoff:
        Cap on any single computed backoff wait, in seconds.
    max_total_wait:
        Budget for the cumulative time spent sleeping, in seconds.
    sleep:
        Blocking sleep function; injectable for tests.
    cancel_check:
        Optional callable; when it returns ``True`` the policy stops
        retrying.
    """

    def __init__(
        self,
        *,
        max_attempts: int = settings.retry_max_attempts,
        initial_backoff: float = settings.retry_initial_backoff,
        multiplier: float = settings.retry_backoff_multiplier,
        max_backoff: float = settings.retry_max_backoff,
        max_total_wait: float = settings.retry_max_total_wait,
        sleep: Callable[[float], None] = time.sleep,
        cancel_check: Callable[[], bool] | None = None,
    ) -> None:
        self.max_attempts = max_attempts
        self.multiplier = multiplier
        self.max_backoff = max_backoff
        self.max_total_wait = max_total_wait
        self._sleep = sleep
        self._cancel_check = cancel_check

        self.attempts = 0
        self.backoff = min(initial_backoff, max_backoff)
        self.elapsed = 0.0
        self.last_error: BaseException | None = None
        self.exhausted = False

    def should_retry(self) -> bool:
        """Return ``True`` while the attempt and wait budgets both hold."""
        if self.exhausted:
            return False
        if self._cancel_check is not None and self._cancel_check():
            return False
        return self.attempts <= self.max_attempts and self.elapsed <= self.max_total_wait

    def on_failure(self, error: BaseException) -> None:
        """Record a retryable *error* and sleep before the next attempt.

        Rate-limited errors wait exactly the server-suggested duration;
        anything else waits the current backoff, which then grows.  A wait
        that would overrun *max_total_wait* is not taken: the policy is
        marked exhausted instead, so every sleep buys another attempt.
        """
        self.last_error = error
        self.attempts += 1
        if not self.should_retry():
            logger.debug("Retry budget spent after %d attempt(s)", self.attempts)
            return

        if isinstance(error, RateLimitedError):
            wait = max(error.retry_after, 0.0)
        else:
            wait = self.backoff

        if self.elapsed + wait > self.max_total_wait:
            self.exhausted = True
            logger.debug(
                "Next wait of %.3fs would exceed the %.3fs budget (%.3fs spent)",
                wait, self.max_total_wait, self.elapsed,
            )
            return

        if isinstance(error, RateLimitedError):
            logger.warning(
                "Throttled (attempt %d/%d), server asked to wait %.3fs",
                self.attempts, self.max_attempts, wait,
            )
        else:
            self.backoff = min(self.backoff * self.multiplier, self.max_backoff)
            logger.warning(
                "Transient failure (attempt %d/%d), backing off %.3fs: %s",
                self.attempts, self.max_attempts, wait, error,
            )

        self._sleep(wait)
        self.elapsed += wait

    @classmethod
    def factory(cls, **overrides) -> Callable[[], BackoffRetryPolicy]:
        """Return a zero-arg callable producing fresh policies with *overrides*."""
        return lambda: cls(**overrides)
