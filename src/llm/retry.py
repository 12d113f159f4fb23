# src/llm/retry.py — v1
"""Retry policy with exponential backoff for slot executions.

Errors are classified by type; each type has its own budget. Unknown
errors are not retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class LLMRetryExhausted(Exception):
    """All retries exhausted for an execution."""

    def __init__(self, label: str, error_type: str, attempts: int, last_error: Exception):
        self.label = label
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"'{label}' failed after {attempts} attempts ({error_type}): {last_error}"
        )


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for a specific error type."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(max_retries=3, base_delay_s=2.0),
    "timeout": RetryConfig(max_retries=2, base_delay_s=1.0, backoff_factor=1.0),
    "connection": RetryConfig(max_retries=2, base_delay_s=1.0),
    "server_error": RetryConfig(max_retries=3, base_delay_s=5.0),
    "token_limit": RetryConfig(max_retries=0, base_delay_s=0.0, backoff_factor=1.0),
}

# openai SDK exception class names, checked before message sniffing.
_NAMED_ERRORS: dict[str, str] = {
    "ratelimiterror": "rate_limit",
    "apitimeouterror": "timeout",
    "apiconnectionerror": "connection",
    "internalservererror": "server_error",
}


def classify_error(error: Exception) -> str:
    """Classify an exception into a retry error type."""
    name = type(error).__name__.lower()
    if name in _NAMED_ERRORS:
        return _NAMED_ERRORS[name]

    msg = str(error).lower()
    if "429" in msg or "rate limit" in msg:
        return "rate_limit"
    if "timeout" in name or "timed out" in msg or "timeout" in msg:
        return "timeout"
    if "connection" in name or "connect" in msg or "refused" in msg:
        return "connection"
    if any(c in msg for c in ("500", "502", "503", "504", "server error")):
        return "server_error"
    if ("token" in msg or "context" in msg) and ("limit" in msg or "exceed" in msg):
        return "token_limit"
    return "unknown"


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Delay before retry number attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    label: str = "execute",
    retry_configs: dict[str, RetryConfig] | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async function with retry logic.

    Raises:
        LLMRetryExhausted: If the error type is not retryable or its budget is spent.
    """
    configs = retry_configs if retry_configs is not None else DEFAULT_RETRY_CONFIGS
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            error_type = classify_error(e)
            attempts += 1
            config = configs.get(error_type)

            if config is None or attempts > config.max_retries:
                raise LLMRetryExhausted(label, error_type, attempts, e) from e

            delay = compute_delay(config, attempts - 1)
            logger.warning(
                "'%s' %s (attempt %d/%d), retrying in %.1fs",
                label, error_type, attempts, config.max_retries, delay,
            )
            await asyncio.sleep(delay)
