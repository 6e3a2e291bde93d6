"""Run a fallible remote call under a :class:`BackoffRetryPolicy`."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from docdb_import.exceptions import RetryExhaustedError, TransientStoreError
from docdb_import.retry.policy import BackoffRetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    TransientStoreError,
    ConnectionError,
    TimeoutError,
)


def is_retryable(error: BaseException) -> bool:
    """Return ``True`` for throttling, network and generic service faults."""
    return isinstance(error, RETRYABLE_EXCEPTIONS)


def execute_with_retry(
    operation: Callable[[], T],
    policy: BackoffRetryPolicy | None = None,
    *,
    description: str = "remote call",
) -> T:
    """Call *operation* until it succeeds or *policy* gives up.

    Parameters
    ----------
    operation:
        Zero-argument callable performing one remote call.
    policy:
        Fresh policy owned by this call.  A default one is created when
        omitted.
    description:
        Human-readable label used in logs and in the exhaustion error.

    Returns
    -------
    T
        Whatever *operation* returns on its first successful attempt.

    Raises
    ------
    RetryExhaustedError
        When a retryable failure outlives the policy budget.  The last
        underlying error is chained as ``__cause__``.
    Exception
        Any non-retryable error, re-raised immediately.
    """
    if policy is None:
        policy = BackoffRetryPolicy()

    while policy.should_retry():
        try:
            return operation()
        except Exception as exc:
            if not is_retryable(exc):
                logger.error("Non-retryable error during %s: %s", description, exc)
                raise
            policy.on_failure(exc)

    logger.error(
        "Giving up on %s after %d attempt(s): %s",
        description, policy.attempts, policy.last_error,
    )
    raise RetryExhaustedError(description, policy.attempts, policy.last_error) from policy.last_error
