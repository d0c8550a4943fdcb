"""
Retry and polling policies.

Both policies grow their delay with the same capped exponential curve,
`backoff_delay`, which is a pure function of the attempt number so it can be
tested without sleeping. RetryPolicy adds jitter for individual HTTP calls;
PollPolicy does not, since poll ticks are already spread out.
"""

from __future__ import annotations

import random

from pydantic import BaseModel, Field


def backoff_delay(
    attempt: int,
    base: float,
    ceiling: float,
    factor: float = 2.0,
) -> float:
    """Delay before the next attempt: min(base * factor ** attempt, ceiling).

    Args:
        attempt: The attempt number (0-indexed).
        base: Delay for the first attempt.
        ceiling: Upper bound for any delay.
        factor: Growth factor between attempts.

    Returns:
        Delay in seconds.
    """
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    # Cap the exponent so huge attempt counts don't overflow a float
    exponent = min(attempt, 64)
    return min(base * (factor**exponent), ceiling)


class RetryPolicy(BaseModel):
    """Configuration for retrying a single transport call.

    Implements exponential backoff with optional jitter. The delay for
    attempt N is: min(base_delay * (exponential_base ** N), max_delay) + jitter

    Attributes:
        max_attempts: Maximum number of attempts (including initial).
        base_delay: Initial delay in seconds between retries.
        max_delay: Maximum delay in seconds (caps backoff).
        exponential_base: Base for exponential backoff calculation.
        jitter: Whether to add random jitter to delays.
        retry_server_errors: Whether 5xx responses are retried.
    """

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=30.0, ge=0.0)
    exponential_base: float = Field(default=2.0, ge=1.0)
    jitter: bool = True
    retry_server_errors: bool = True

    model_config = {"frozen": True}

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt number.

        Args:
            attempt: The attempt number (0-indexed).

        Returns:
            Delay in seconds before the next retry.
        """
        delay = backoff_delay(attempt, self.base_delay, self.max_delay, self.exponential_base)

        if self.jitter:
            # Add up to 25% jitter
            delay += delay * 0.25 * random.random()

        return delay

    def should_retry_status(self, status_code: int) -> bool:
        """Check if a status code should trigger a retry.

        Args:
            status_code: HTTP status code to check.

        Returns:
            True for 5xx responses when server errors are retried.
        """
        return self.retry_server_errors and 500 <= status_code < 600


class PollPolicy(BaseModel):
    """Configuration for the wait-until-terminal loop.

    Attributes:
        interval: Delay after the first poll, in seconds.
        max_interval: Ceiling the delay doubles up to.
        multiplier: Growth factor between polls.
    """

    interval: float = Field(default=2.0, gt=0.0)
    max_interval: float = Field(default=30.0, gt=0.0)
    multiplier: float = Field(default=2.0, ge=1.0)

    model_config = {"frozen": True}

    def delay_for(self, attempt: int) -> float:
        """Delay before poll number `attempt + 1`."""
        return backoff_delay(attempt, self.interval, self.max_interval, self.multiplier)

    def with_interval(self, interval: float) -> "PollPolicy":
        """Return a copy starting at `interval`, keeping the ceiling above it."""
        return self.model_copy(
            update={"interval": interval, "max_interval": max(self.max_interval, interval)}
        )


DEFAULT_RETRY_POLICY = RetryPolicy()
DEFAULT_POLL_POLICY = PollPolicy()
