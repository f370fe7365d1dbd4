"""Retry with exponential backoff and error-suppression helpers."""

from asyncio import sleep
from contextlib import asynccontextmanager
from functools import wraps

from typing import TYPE_CHECKING, ParamSpec, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field

from src.helpers.constants import (
    MAX_RETRIES,
    RETRY_BACKOFF_MULTIPLIER,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
    RETRYABLE_ERROR_SUBSTRINGS,
)
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable


logger = get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class RetryConfig(BaseModel):
    """Backoff tuning for one network."""

    max_retries: int = Field(default=MAX_RETRIES, ge=1, description="Total attempts")
    base_delay: float = Field(default=RETRY_BASE_DELAY, ge=0, description="Seconds")
    max_delay: float = Field(default=RETRY_MAX_DELAY, ge=0, description="Seconds")
    backoff_multiplier: float = Field(default=RETRY_BACKOFF_MULTIPLIER, ge=1)
    retryable_substrings: tuple[str, ...] = Field(default=RETRYABLE_ERROR_SUBSTRINGS)

    model_config = ConfigDict(frozen=True)

    def delay_for(self, attempt: int) -> float:
        """Delay after failed ``attempt`` (1-based), capped at ``max_delay``."""
        return min(
            self.base_delay * self.backoff_multiplier ** (attempt - 1), self.max_delay
        )


def is_retryable_error(
    error: BaseException, substrings: tuple[str, ...] = RETRYABLE_ERROR_SUBSTRINGS
) -> bool:
    """Classify an error as transient.

    Transport failures and timeouts are always transient; anything else is
    retried only when its message contains one of ``substrings``.
    """
    if isinstance(error, (httpx.TransportError, TimeoutError)):
        return True
    message = str(error).lower()
    return any(fragment in message for fragment in substrings)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    operation_name: str = "operation",
    log_errors: bool = True,
) -> T:
    """Run ``operation`` with exponential backoff.

    The operation is attempted at most ``config.max_retries`` times. A
    non-retryable error, or any error on the final attempt, propagates
    immediately.

    Example:
        ```python
        from src.helpers.retry import RetryConfig, with_retry

        receipt = await with_retry(
            lambda: client.wait_for_transaction(tx_hash, 1, 30.0),
            RetryConfig(max_retries=4, base_delay=15.0, backoff_multiplier=1.5),
            operation_name="wait_for_confirmation",
        )
        ```
    """
    config = config or RetryConfig()

    for attempt in range(1, config.max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            if attempt == config.max_retries:
                if log_errors and config.max_retries > 1:
                    logger.error(
                        "%s failed after %d attempts: %s",
                        operation_name,
                        config.max_retries,
                        e,
                    )
                raise
            if not is_retryable_error(e, config.retryable_substrings):
                raise

            delay = config.delay_for(attempt)
            if log_errors:
                logger.warning(
                    "%s error (attempt %d/%d), retrying in %.2fs: %s",
                    operation_name,
                    attempt,
                    config.max_retries,
                    delay,
                    e,
                )
            await sleep(delay)

    # max_retries >= 1 is enforced by RetryConfig, so the loop returns or raises
    msg = f"{operation_name} failed without exception"
    raise RuntimeError(msg)


def retry_with_backoff(
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
    *,
    backoff_multiplier: float = RETRY_BACKOFF_MULTIPLIER,
    log_errors: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator form of :func:`with_retry`.

    Example:
        ```python
        @retry_with_backoff(max_retries=3, base_delay=2.0)
        async def fetch_head(client: RPCClient) -> int:
            return await client.get_block_number()

        # Will retry transient errors with delays of 2s, 4s
        ```
    """
    config = RetryConfig(
        max_retries=max_retries,
        base_delay=base_delay,
        max_delay=max_delay,
        backoff_multiplier=backoff_multiplier,
    )

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await with_retry(
                lambda: func(*args, **kwargs),
                config,
                operation_name=func.__name__,
                log_errors=log_errors,
            )

        return wrapper

    return decorator


@asynccontextmanager
async def log_and_suppress_errors(
    operation_name: str,
    *,
    log_level: str = "warning",
    suppress: bool = True,
) -> AsyncIterator[None]:
    """Context manager to log and optionally suppress errors.

    Args:
        operation_name: Description of the operation for logging
        log_level: Logging level ("debug", "info", "warning", "error")
        suppress: If True, suppress exceptions; if False, re-raise after logging

    Yields:
        None

    Example:
        ```python
        async with log_and_suppress_errors("MEV monitor tick for sepolia"):
            await monitor.analyze_latest_block()
            # A failing tick is logged and the loop carries on
        ```
    """
    try:
        yield
    except Exception as e:
        log_method = getattr(logger, log_level, logger.warning)
        log_method("%s failed: %s", operation_name, e)

        if not suppress:
            raise


__all__ = [
    "RetryConfig",
    "is_retryable_error",
    "log_and_suppress_errors",
    "retry_with_backoff",
    "with_retry",
]
