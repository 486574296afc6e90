"""
Bounded retry with exponential backoff.

Only errors flagged as recoverable (the backend being temporarily
unavailable) are retried; everything else propagates on the first failure.
When the attempts run out a RetryExhaustedError is raised so the caller can
surface it.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ln_translator.config import MAX_UNAVAILABLE_RETRIES, RETRY_DELAY_SECONDS, MAX_RETRY_DELAY_SECONDS
from ln_translator.core.exceptions import TranslatorError, RetryExhaustedError


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (first call included)
        initial_delay: Delay before the first retry, in seconds
        max_delay: Ceiling for any single delay, in seconds
        backoff_factor: Multiplier applied to the delay after each failure
        jitter: Random extra delay, as a fraction of the delay (0.0-1.0)
    """
    max_attempts: int = MAX_UNAVAILABLE_RETRIES
    initial_delay: float = RETRY_DELAY_SECONDS
    max_delay: float = MAX_RETRY_DELAY_SECONDS
    backoff_factor: float = 2.0
    jitter: float = 0.0


class RetryManager:
    """Runs an async callable, retrying recoverable failures with backoff."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        log_callback: Optional[Callable[[str, str], None]] = None
    ):
        """
        Args:
            config: Retry configuration
            log_callback: Callback for logging (log_type, message)
        """
        self.config = config or RetryConfig()
        self.log_callback = log_callback

    def calculate_delay(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        config = self.config
        delay = config.initial_delay * (config.backoff_factor ** (attempt - 1))
        delay = min(delay, config.max_delay)

        if config.jitter > 0:
            delay += delay * config.jitter * random.random()

        return delay

    def _log(self, log_type: str, message: str):
        if self.log_callback:
            self.log_callback(log_type, message)

    async def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args,
        operation_id: Optional[str] = None,
        on_retry: Optional[Callable[[Exception, int], None]] = None,
        **kwargs
    ) -> Any:
        """Execute an async function with retry logic.

        Args:
            func: Async function to execute
            *args: Positional arguments for func
            operation_id: Identifier used in log messages
            on_retry: Callback called before each retry (error, attempt_number)
            **kwargs: Keyword arguments for func

        Returns:
            Result of func

        Raises:
            RetryExhaustedError: If all attempts failed with a recoverable error
            Exception: If the error is not recoverable
        """
        attempt = 0
        op_id = operation_id or getattr(func, '__name__', 'operation')

        while True:
            attempt += 1
            try:
                result = await func(*args, **kwargs)
                if attempt > 1:
                    self._log("info", f"Operation {op_id} succeeded after {attempt} attempts")
                return result

            except TranslatorError as error:
                if not error.recoverable:
                    raise

                if attempt >= self.config.max_attempts:
                    self._log(
                        "error",
                        f"Retry exhausted for {op_id} after {attempt} attempts: {error.message}"
                    )
                    raise RetryExhaustedError(
                        f"Maximum retry attempts ({self.config.max_attempts}) exceeded",
                        original_error=error,
                        attempts=attempt
                    )

                delay = self.calculate_delay(attempt)
                self._log(
                    "warning",
                    f"Attempt {attempt}/{self.config.max_attempts} failed for {op_id}: "
                    f"{error.message}. Retrying in {delay:.2f}s..."
                )

                if on_retry:
                    try:
                        on_retry(error, attempt)
                    except Exception as callback_error:
                        self._log("warning", f"Error in on_retry callback: {callback_error}")

                if delay > 0:
                    await asyncio.sleep(delay)
