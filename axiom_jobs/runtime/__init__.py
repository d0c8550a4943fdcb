"""
Runtime layer for axiom-jobs.

This package provides the shared infrastructure under the job client:
- RunContext: Request-scoped context with correlation IDs
- ServiceError: Standardized errors with retry semantics
- Transport: Pooled async HTTP client with auth and retry
- RetryPolicy / PollPolicy: Backoff configuration
- CancellationToken: Cooperative cancellation for long waits
"""

from .cancellation import CancellationToken
from .context import RunContext
from .credentials import CredentialStore, SettingsCredentials, StaticCredentials
from .errors import (
    AbortedError,
    ClientError,
    CorruptArtifactError,
    ErrorCode,
    InvalidParamsError,
    JobFailedError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    NotReadyError,
    RejectedError,
    RetryableError,
    ServerError,
    ServiceError,
    TerminalError,
    TimedOutError,
    UnauthenticatedError,
    UnsupportedArtifactTypeError,
)
from .retry import PollPolicy, RetryPolicy, backoff_delay
from .transport import Transport, decode_json

__all__ = [
    "AbortedError",
    "CancellationToken",
    "ClientError",
    "CorruptArtifactError",
    "CredentialStore",
    "ErrorCode",
    "InvalidParamsError",
    "JobFailedError",
    "MalformedResponseError",
    "NetworkError",
    "NotFoundError",
    "NotReadyError",
    "PollPolicy",
    "RejectedError",
    "RetryPolicy",
    "RetryableError",
    "RunContext",
    "ServerError",
    "ServiceError",
    "SettingsCredentials",
    "StaticCredentials",
    "TerminalError",
    "TimedOutError",
    "Transport",
    "UnauthenticatedError",
    "UnsupportedArtifactTypeError",
    "backoff_delay",
    "decode_json",
]
