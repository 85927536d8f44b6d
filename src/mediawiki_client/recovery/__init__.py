"""
Error recovery for the MediaWiki client.

Provides the retry executor that absorbs replication lag, server-side
throttling, read-only windows and network failures.
"""

from .retry import RetryExecutor, RetryStats, DEFAULT_SOFT_SUCCESS_CODES

__all__ = [
    "RetryExecutor",
    "RetryStats",
    "DEFAULT_SOFT_SUCCESS_CODES",
]
