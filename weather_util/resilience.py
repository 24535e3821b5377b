"""
Resilience Infrastructure for weather-util

Retry with exponential backoff for provider requests.

- Transient failures (timeouts, transport errors, HTTP 5xx) are retried up
  to a fixed attempt ceiling, then raised as TransientNetworkError.
- Permanent failures (HTTP 4xx, invalid URLs) and decode errors are raised
  on the first attempt without retrying.
- Each attempt runs under its own deadline; hitting it counts as a timeout.
- Jitter spreads out retries from concurrent callers.
"""

import asyncio
import functools
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

import httpx

from weather_util.errors import (
    Endpoint,
    FetchError,
    MalformedResponse,
    PermanentRequestError,
    TransientNetworkError,
    WeatherUtilError,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ErrorType(Enum):
    """Categories of errors for logging."""
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    TRANSPORT_ERROR = "transport_error"
    PARSE_ERROR = "parse_error"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 5.0
    exponential_base: float = 2.0
    jitter: bool = True  # Add randomness to prevent thundering herd
    attempt_timeout_seconds: Optional[float] = 15.0

    # 4xx never retries; these 5xx codes (and any other >= 500) do
    retryable_status_codes: tuple = (500, 502, 503, 504)


DEFAULT_RETRY_CONFIG = RetryConfig()


def categorize_error(exception: BaseException) -> Tuple[ErrorType, str]:
    """
    Categorize an exception for logging.

    Returns:
        Tuple of (ErrorType, error_message)
    """
    error_msg = str(exception)[:200]  # Truncate long messages

    if isinstance(exception, (httpx.TimeoutException, asyncio.TimeoutError)):
        return (ErrorType.TIMEOUT, f"Timeout: {error_msg or type(exception).__name__}")

    elif isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        reason = exception.response.reason_phrase
        if status >= 500:
            return (ErrorType.SERVER_ERROR, f"HTTP {status} {reason}".strip())
        return (ErrorType.CLIENT_ERROR, f"HTTP {status} {reason}".strip())

    elif isinstance(exception, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        return (ErrorType.CLIENT_ERROR, f"Invalid request: {error_msg}")

    elif isinstance(exception, httpx.RequestError):
        return (ErrorType.TRANSPORT_ERROR, f"Transport error: {type(exception).__name__} {error_msg}".strip())

    elif isinstance(exception, MalformedResponse):
        return (ErrorType.PARSE_ERROR, f"Decode error: {error_msg}")

    elif isinstance(exception, TransientNetworkError):
        return (ErrorType.TRANSPORT_ERROR, error_msg)

    elif isinstance(exception, PermanentRequestError):
        return (ErrorType.CLIENT_ERROR, error_msg)

    else:
        return (ErrorType.UNKNOWN, error_msg)


def calculate_backoff_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay with exponential backoff and optional jitter.

    Args:
        attempt: The retry attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    delay = min(
        config.base_delay_seconds * (config.exponential_base ** attempt),
        config.max_delay_seconds
    )

    if config.jitter:
        # Add up to 25% jitter
        jitter_amount = delay * 0.25 * random.random()
        delay += jitter_amount

    return delay


def is_retryable_error(exception: BaseException, config: RetryConfig) -> bool:
    """
    Determine if an exception should trigger a retry.

    Args:
        exception: The caught exception
        config: Retry configuration

    Returns:
        True if should retry, False otherwise
    """
    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status in config.retryable_status_codes or status >= 500

    # Timeouts are always retryable
    if isinstance(exception, (httpx.TimeoutException, asyncio.TimeoutError)):
        return True

    # A bad URL will be just as bad next time
    if isinstance(exception, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        return False

    # Connection refused/reset and other transport errors are retryable
    if isinstance(exception, httpx.RequestError):
        return True

    if isinstance(exception, TransientNetworkError):
        return True

    # Decode errors, 4xx and anything unexpected are not
    return False


def to_fetch_error(
    exception: BaseException,
    endpoint: Optional[Endpoint],
    attempts: int,
) -> WeatherUtilError:
    """
    Translate an httpx/asyncio exception into the project's error taxonomy.

    Errors that already belong to the taxonomy keep their type and get the
    endpoint filled in.
    """
    if isinstance(exception, MalformedResponse):
        if exception.endpoint is None:
            exception.endpoint = endpoint
        return exception

    if isinstance(exception, TransientNetworkError):
        if exception.endpoint is None:
            exception.endpoint = endpoint
        exception.attempts = attempts
        return exception

    if isinstance(exception, FetchError):
        if exception.endpoint is None:
            exception.endpoint = endpoint
        return exception

    _, error_msg = categorize_error(exception)

    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        if status >= 500:
            return TransientNetworkError(
                f"{error_msg} after {attempts} attempt(s)", endpoint, attempts=attempts
            )
        if status in (401, 403):
            error_msg = f"{error_msg} (check the API key)"
        return PermanentRequestError(error_msg, endpoint, status_code=status)

    if is_retryable_error(exception, DEFAULT_RETRY_CONFIG):
        return TransientNetworkError(
            f"{error_msg} after {attempts} attempt(s)", endpoint, attempts=attempts
        )

    return PermanentRequestError(error_msg, endpoint)


def with_retry(
    config: Optional[RetryConfig] = None,
    provider_name: str = "unknown",
    endpoint: Optional[Endpoint] = None,
) -> Callable:
    """
    Decorator that adds retry logic with exponential backoff.

    Works with async functions only.

    Usage:
        @with_retry(provider_name="OpenWeatherMap", endpoint=Endpoint.CURRENT)
        async def fetch_current(self) -> CurrentObservation:
            ...

    Args:
        config: Retry configuration (uses DEFAULT_RETRY_CONFIG if None)
        provider_name: Name for logging purposes
        endpoint: Endpoint recorded on raised errors

    Returns:
        Decorated function. It returns the wrapped function's result or
        raises a FetchError/MalformedResponse once retrying stops.
    """
    if config is None:
        config = DEFAULT_RETRY_CONFIG

    label = f"{provider_name}:{endpoint.value}" if endpoint else provider_name

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> T:
            start_time = time.monotonic()
            attempt = 0

            while True:
                attempt += 1
                try:
                    if config.attempt_timeout_seconds:
                        result = await asyncio.wait_for(
                            func(*args, **kwargs), timeout=config.attempt_timeout_seconds
                        )
                    else:
                        result = await func(*args, **kwargs)

                    if attempt > 1:
                        elapsed = time.monotonic() - start_time
                        logger.info(
                            f"[{label}] Succeeded on attempt {attempt} "
                            f"({elapsed:.2f}s total)"
                        )
                    return result

                except Exception as e:
                    error_type, error_msg = categorize_error(e)
                    logger.warning(
                        f"[{label}] Attempt {attempt}/{config.max_attempts} failed: "
                        f"{error_type.value} - {error_msg}"
                    )

                    if not is_retryable_error(e, config):
                        if not isinstance(e, (httpx.HTTPError, httpx.InvalidURL, WeatherUtilError)):
                            raise
                        logger.error(f"[{label}] Error not retryable, giving up")
                        error = to_fetch_error(e, endpoint, attempt)
                        if error is e:
                            raise
                        raise error from e

                    if attempt >= config.max_attempts:
                        elapsed = time.monotonic() - start_time
                        logger.error(
                            f"[{label}] All {config.max_attempts} attempts failed "
                            f"({elapsed:.2f}s total). Last error: {error_type.value}"
                        )
                        error = to_fetch_error(e, endpoint, attempt)
                        if error is e:
                            raise
                        raise error from e

                delay = calculate_backoff_delay(attempt - 1, config)
                logger.info(
                    f"[{label}] Retry {attempt}/{config.max_attempts - 1} "
                    f"after {delay:.1f}s delay"
                )
                await asyncio.sleep(delay)

        return async_wrapper

    return decorator


# Convenience function for one-off retries without decorator
async def retry_async(
    func: Callable[..., Awaitable[T]],
    provider_name: str = "unknown",
    config: Optional[RetryConfig] = None,
    endpoint: Optional[Endpoint] = None,
    *args,
    **kwargs
) -> Any:
    """
    Execute an async function with retry logic.

    Args:
        func: Async function to call
        provider_name: Name for logging
        config: Retry configuration
        endpoint: Endpoint recorded on raised errors
        *args, **kwargs: Arguments to pass to func

    Returns:
        Result of func
    """
    @with_retry(config=config, provider_name=provider_name, endpoint=endpoint)
    async def wrapper():
        return await func(*args, **kwargs)

    return await wrapper()
