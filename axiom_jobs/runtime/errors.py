"""
Standardized error model with retry semantics.

Every failure the job client can surface is a ServiceError subclass carrying
a machine-readable code, a message safe to show the user, and (when known)
the job id and kind it relates to. The `retryable` flag tells the transport
and the status poller whether a failure is transient.
"""

from __future__ import annotations

import uuid
from typing import Any


class ServiceError(Exception):
    """Standardized service error with retry classification.

    Attributes:
        code: Error code for programmatic handling.
        message_safe: Safe message for logging and user display.
        message_debug: Optional detailed message for debugging.
        retryable: Whether this error can be retried.
        cause: Optional underlying exception.
        debug_id: Unique identifier for support tickets.
        job_id: Job the failure relates to, if any.
        kind: Job kind ("build", "prove", "verify"), if known.
    """

    def __init__(
        self,
        code: str,
        message_safe: str,
        message_debug: str | None = None,
        retryable: bool = False,
        cause: Exception | None = None,
        debug_id: str | None = None,
        job_id: str | None = None,
        kind: str | None = None,
    ):
        super().__init__(message_safe)
        self.code = code
        self.message_safe = message_safe
        self.message_debug = message_debug
        self.retryable = retryable
        self.cause = cause
        self.debug_id = debug_id or str(uuid.uuid4())[:8]
        self.job_id = job_id
        self.kind = kind

    def __str__(self) -> str:
        """Return string representation."""
        return f"[{self.code}] {self.message_safe}"

    def __repr__(self) -> str:
        """Return detailed representation."""
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"message_safe={self.message_safe!r}, "
            f"retryable={self.retryable}, "
            f"job_id={self.job_id!r}, "
            f"debug_id={self.debug_id!r})"
        )

    def bind(self, job_id: str | None = None, kind: str | None = None) -> "ServiceError":
        """Attach job context without overwriting what is already set.

        Returns:
            The same error, so callers can `raise err.bind(...)`.
        """
        if self.job_id is None:
            self.job_id = job_id
        if self.kind is None and kind is not None:
            self.kind = str(getattr(kind, "value", kind))
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output.

        Returns:
            Dictionary with error details (excludes debug info).
        """
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message_safe,
            "debug_id": self.debug_id,
        }
        if self.job_id is not None:
            result["job_id"] = self.job_id
        if self.kind is not None:
            result["kind"] = self.kind
        return result


class RetryableError(ServiceError):
    """Error that indicates the operation can be retried.

    Use this for transient failures like:
    - Network timeouts and refused connections
    - Server-side errors (5xx)
    """

    def __init__(
        self,
        code: str,
        message_safe: str,
        message_debug: str | None = None,
        cause: Exception | None = None,
        debug_id: str | None = None,
        job_id: str | None = None,
        kind: str | None = None,
    ):
        super().__init__(
            code=code,
            message_safe=message_safe,
            message_debug=message_debug,
            retryable=True,
            cause=cause,
            debug_id=debug_id,
            job_id=job_id,
            kind=kind,
        )


class TerminalError(ServiceError):
    """Error that indicates the operation should not be retried.

    Use this for permanent failures like:
    - Invalid parameters or rejected submissions
    - Missing or invalid credentials
    - Unknown job ids
    """

    def __init__(
        self,
        code: str,
        message_safe: str,
        message_debug: str | None = None,
        cause: Exception | None = None,
        debug_id: str | None = None,
        job_id: str | None = None,
        kind: str | None = None,
    ):
        super().__init__(
            code=code,
            message_safe=message_safe,
            message_debug=message_debug,
            retryable=False,
            cause=cause,
            debug_id=debug_id,
            job_id=job_id,
            kind=kind,
        )


class ErrorCode:
    """Error codes surfaced by the job client."""

    # Local validation
    INVALID_PARAMS = "INVALID_PARAMS"

    # Authentication
    UNAUTHENTICATED = "UNAUTHENTICATED"

    # Remote responses
    NOT_FOUND = "NOT_FOUND"
    REJECTED = "REJECTED"
    CLIENT_ERROR = "CLIENT_ERROR"

    # Transport
    NETWORK = "NETWORK"
    SERVER_ERROR = "SERVER_ERROR"
    MALFORMED = "MALFORMED"

    # Artifacts
    NOT_READY = "NOT_READY"
    UNSUPPORTED_ARTIFACT_TYPE = "UNSUPPORTED_ARTIFACT_TYPE"
    CORRUPT_ARTIFACT = "CORRUPT_ARTIFACT"

    # Waiting
    TIMED_OUT = "TIMED_OUT"
    ABORTED = "ABORTED"

    # Job outcome
    JOB_FAILED = "JOB_FAILED"


class NetworkError(RetryableError):
    """Connection refused, timeout, DNS or protocol failure."""

    def __init__(self, message_safe: str = "Failed to reach the proving service", **kwargs: Any):
        super().__init__(ErrorCode.NETWORK, message_safe, **kwargs)


class ServerError(RetryableError):
    """The service answered with a 5xx status."""

    def __init__(self, status_code: int, message_safe: str | None = None, **kwargs: Any):
        super().__init__(
            ErrorCode.SERVER_ERROR,
            message_safe or f"Service returned {status_code}",
            **kwargs,
        )
        self.status_code = status_code


class ClientError(TerminalError):
    """The service refused the request with a 4xx status."""

    def __init__(
        self,
        status_code: int,
        remote_message: str | None = None,
        code: str = ErrorCode.CLIENT_ERROR,
        **kwargs: Any,
    ):
        message = f"Request failed with status {status_code}"
        if remote_message:
            message = f"{message}: {remote_message}"
        super().__init__(code, message, **kwargs)
        self.status_code = status_code
        self.remote_message = remote_message


class NotFoundError(ClientError):
    """The job or artifact id is unknown to the service."""

    def __init__(self, remote_message: str | None = None, **kwargs: Any):
        super().__init__(404, remote_message, code=ErrorCode.NOT_FOUND, **kwargs)
        self.message_safe = remote_message or "Resource not found"


class UnauthenticatedError(TerminalError):
    """No credential is configured, or the service rejected it."""

    def __init__(self, message_safe: str = "Unauthenticated", **kwargs: Any):
        super().__init__(ErrorCode.UNAUTHENTICATED, message_safe, **kwargs)


class MalformedResponseError(TerminalError):
    """Response body does not match the expected schema."""

    def __init__(self, message_safe: str = "Malformed response from service", **kwargs: Any):
        super().__init__(ErrorCode.MALFORMED, message_safe, **kwargs)


class InvalidParamsError(TerminalError):
    """Local validation failed; no request was sent."""

    def __init__(self, message_safe: str, fields: list[str] | None = None, **kwargs: Any):
        super().__init__(ErrorCode.INVALID_PARAMS, message_safe, **kwargs)
        self.fields = fields or []


class RejectedError(TerminalError):
    """The service refused a submission (quota, malformed input, ...)."""

    def __init__(self, reason: str, **kwargs: Any):
        super().__init__(ErrorCode.REJECTED, f"Submission rejected: {reason}", **kwargs)
        self.reason = reason


class NotReadyError(TerminalError):
    """Artifact requested before the job reached terminal success."""

    def __init__(self, phase: str, **kwargs: Any):
        super().__init__(
            ErrorCode.NOT_READY,
            f"Job has not succeeded yet (current phase: {phase})",
            **kwargs,
        )
        self.phase = phase


class UnsupportedArtifactTypeError(TerminalError):
    """Requested artifact type is not produced by this job kind."""

    def __init__(self, artifact_type: str, supported: list[str], **kwargs: Any):
        if supported:
            hint = f"expected one of: {', '.join(supported)}"
        else:
            hint = "this job kind has no downloadable artifacts"
        super().__init__(
            ErrorCode.UNSUPPORTED_ARTIFACT_TYPE,
            f"Unsupported artifact type '{artifact_type}' ({hint})",
            **kwargs,
        )
        self.artifact_type = artifact_type
        self.supported = supported


class CorruptArtifactError(TerminalError):
    """Downloaded content does not match the artifact's encoding."""

    def __init__(self, message_safe: str, **kwargs: Any):
        super().__init__(ErrorCode.CORRUPT_ARTIFACT, message_safe, **kwargs)


class TimedOutError(TerminalError):
    """The job did not reach a terminal state before the timeout."""

    def __init__(self, timeout: float, last_phase: str | None = None, **kwargs: Any):
        message = f"Job did not finish within {timeout:g}s"
        if last_phase:
            message = f"{message} (last seen: {last_phase})"
        super().__init__(ErrorCode.TIMED_OUT, message, **kwargs)
        self.timeout = timeout
        self.last_phase = last_phase


class AbortedError(TerminalError):
    """The caller cancelled the wait; the remote job is unaffected."""

    def __init__(self, reason: str = "Wait aborted", **kwargs: Any):
        super().__init__(ErrorCode.ABORTED, reason, **kwargs)


class JobFailedError(TerminalError):
    """A job reached a terminal state other than success."""

    def __init__(self, message_safe: str, phase: str, **kwargs: Any):
        super().__init__(ErrorCode.JOB_FAILED, message_safe, **kwargs)
        self.phase = phase
