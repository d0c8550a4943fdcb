"""
Configuration for axiom-jobs.

A single Settings class holds every value the client reads from the
environment. Values are loaded from a `.env` file in the working directory
and can be overridden by real environment variables.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from axiom_jobs.runtime.retry import PollPolicy, RetryPolicy

DEFAULT_API_URL = "https://api.axiom.xyz/v1"


class Settings(BaseSettings):
    """
    Settings for the job client and CLI.

    The API key is deliberately optional here: a missing key is reported as
    an Unauthenticated error at request time, not at startup.
    """

    # Service
    AXIOM_API_URL: str = DEFAULT_API_URL
    AXIOM_API_KEY: str | None = None
    AXIOM_CONFIG_ID: str | None = None

    # Header carrying the key. "Authorization" sends a bearer token.
    API_KEY_HEADER: str = "Authorization"

    # Timeouts (seconds)
    REQUEST_TIMEOUT: float = 60.0
    DOWNLOAD_TIMEOUT: float = 600.0

    # Per-call retry
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY: float = 1.0
    RETRY_MAX_DELAY: float = 10.0

    # Status polling
    POLL_INTERVAL: float = 2.0
    POLL_MAX_INTERVAL: float = 30.0

    # Logging
    LOG_LEVEL: str = "INFO"

    # Where downloaded artifacts land when no output path is given
    ARTIFACTS_DIR: str = "axiom-artifacts"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    def retry_policy(self) -> RetryPolicy:
        """Retry policy for individual transport calls."""
        return RetryPolicy(
            max_attempts=self.RETRY_MAX_ATTEMPTS,
            base_delay=self.RETRY_BASE_DELAY,
            max_delay=self.RETRY_MAX_DELAY,
        )

    def poll_policy(self) -> PollPolicy:
        """Backoff policy for waiting on a job."""
        return PollPolicy(
            interval=self.POLL_INTERVAL,
            max_interval=self.POLL_MAX_INTERVAL,
        )


# Global settings instance
settings = Settings()  # type: ignore
