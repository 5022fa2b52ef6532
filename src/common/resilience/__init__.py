"""
Resilience Patterns

Retry with backoff for fault-tolerant network operations.
"""

from src.common.resilience.retry import RetryConfig, retry_with_backoff

__all__ = [
    "retry_with_backoff",
    "RetryConfig",
]
