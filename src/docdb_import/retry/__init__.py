"""
Retry — exponential backoff around every remote call.

Public surface
--------------
- :class:`BackoffRetryPolicy` — per-operation retry state and sleep decisions.
- :func:`execute_with_retry` — runs a callable under a policy.
- :func:`is_retryable` — classifies errors the policy may see.
"""

from docdb_import.retry.executor import execute_with_retry, is_retryable
from docdb_import.retry.policy import BackoffRetryPolicy

__all__ = [
    "BackoffRetryPolicy",
    "execute_with_retry",
    "is_retryable",
]
