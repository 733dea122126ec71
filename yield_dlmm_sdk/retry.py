"""Retry logic with exponential backoff for idempotent RPC reads.

Transaction submission is never retried here; only reads (account info,
blockhash, balances) go through `with_retry`.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from solana.exceptions import SolanaRpcException

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay_ms: int = 100
    max_delay_ms: int = 5000

    @classmethod
    def default(cls) -> "RetryConfig":
        """Create default config (3 retries)."""
        return cls()

    @classmethod
    def disabled(cls) -> "RetryConfig":
        """Create config with retries disabled."""
        return cls(max_retries=0)

    @classmethod
    def with_retries(cls, max_retries: int) -> "RetryConfig":
        """Create config with specified retry count."""
        return cls(max_retries=max_retries)

    def with_base_delay_ms(self, delay: int) -> "RetryConfig":
        """Set base delay."""
        self.base_delay_ms = delay
        return self

    def with_max_delay_ms(self, delay: int) -> "RetryConfig":
        """Set max delay cap."""
        self.max_delay_ms = delay
        return self


def is_retryable(error: Exception) -> bool:
    """Check if an error should trigger a retry."""
    if isinstance(error, SolanaRpcException):
        return True
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, (asyncio.TimeoutError, ConnectionError, OSError)):
        return True
    return False


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay with exponential backoff and jitter."""
    # Exponential backoff: base_delay * 2^attempt
    delay_ms = config.base_delay_ms * (2**attempt)

    delay_ms = min(delay_ms, config.max_delay_ms)

    # Add jitter: 75-100% of calculated delay
    jitter = random.uniform(0.75, 1.0)
    delay_ms = int(delay_ms * jitter)

    return float(delay_ms) / 1000.0


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    description: str = "rpc read",
) -> T:
    """Run an idempotent async operation, retrying transient failures.

    Raises:
        The last error once retries are exhausted or the error is not retryable
    """
    config = config or RetryConfig.default()
    last_error: Optional[Exception] = None

    for attempt in range(config.max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e

            # Don't retry if not retryable or last attempt
            if not is_retryable(e) or attempt >= config.max_retries:
                raise

            delay = calculate_delay(attempt, config)
            logger.debug(
                f"{description} failed ({e}); retrying in {delay:.2f}s "
                f"({attempt + 1}/{config.max_retries})"
            )
            await asyncio.sleep(delay)

    raise last_error or RuntimeError("Unexpected retry loop exit")
