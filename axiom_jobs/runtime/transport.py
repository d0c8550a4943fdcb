"""
Authenticated async HTTP transport for the proving service.

This module provides a pooled HTTP client that attaches the API token and
correlation headers to every request, classifies failures, and retries the
transient ones (network errors and 5xx responses) with backoff.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from .context import RunContext
from .credentials import CredentialStore
from .errors import (
    ClientError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    ServerError,
    ServiceError,
    UnauthenticatedError,
)
from .retry import RetryPolicy

ModelT = TypeVar("ModelT", bound=BaseModel)

SleepFn = Callable[[float], Awaitable[None]]

MISSING_CREDENTIAL_MESSAGE = "No API key configured. Set AXIOM_API_KEY or pass --api-key."


def remote_message(response: httpx.Response) -> str | None:
    """Extract the human-readable message from an error response.

    Looks for the usual `detail` / `message` / `error` keys in a JSON body
    and falls back to the raw text.
    """
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:500] or None

    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if value:
                return value if isinstance(value, str) else str(value)
    return str(body)[:500] or None


def decode_json(
    response: httpx.Response,
    model: type[ModelT] | None = None,
    what: str = "response",
) -> Any:
    """Parse a response body as JSON, optionally validating it against a model.

    Args:
        response: The successful HTTP response.
        model: Optional pydantic model the body must match.
        what: Description used in the error message.

    Returns:
        The decoded JSON value, or a model instance if `model` is given.

    Raises:
        MalformedResponseError: If the body is not JSON or does not match.
    """
    try:
        data = response.json()
    except ValueError as e:
        raise MalformedResponseError(
            f"Malformed {what}: body is not valid JSON",
            message_debug=response.text[:500] if response.content else None,
            cause=e,
        )

    if model is None:
        return data

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Malformed {what}: unexpected schema",
            message_debug=str(e),
            cause=e,
        )


class Transport:
    """Shared HTTP client for calls to the proving service.

    Features:
    - Connection pooling via httpx.AsyncClient
    - API token and correlation header injection
    - Retry on network errors and 5xx responses
    - Classification of every failure into a ServiceError subclass

    Example:
        transport = Transport("https://api.axiom.xyz/v1", StaticCredentials(key))
        async with transport:
            response = await transport.call("GET", "/proofs/pf-7")
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialStore,
        timeout: float = 60.0,
        retry_policy: RetryPolicy | None = None,
        api_key_header: str = "Authorization",
        max_connections: int = 10,
        max_keepalive: int = 5,
        http_transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        """Initialize the transport.

        Args:
            base_url: Base URL for all requests.
            credentials: Source of the API token.
            timeout: Default timeout in seconds.
            retry_policy: Retry configuration. Uses default if None.
            api_key_header: Header carrying the token. "Authorization" sends
                a bearer token; any other name sends the raw key.
            max_connections: Maximum total connections in pool.
            max_keepalive: Maximum keepalive connections.
            http_transport: Optional httpx transport (used by tests).
            sleep: Coroutine used to wait between retries.
        """
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.api_key_header = api_key_header

        self._limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive,
            keepalive_expiry=30.0,
        )
        self._http_transport = http_transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=self._limits,
                transport=self._http_transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "Transport":
        """Enter async context manager."""
        await self._get_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context manager."""
        await self.close()

    def _build_url(self, path: str) -> str:
        """Build full URL from path."""
        path = path.lstrip("/")
        return f"{self.base_url}/{path}"

    def _auth_headers(self) -> dict[str, str]:
        """Headers carrying the API token.

        Raises:
            UnauthenticatedError: If no token is configured.
        """
        token = self.credentials.get_token()
        if not token:
            raise UnauthenticatedError(MISSING_CREDENTIAL_MESSAGE)
        if self.api_key_header.lower() == "authorization":
            return {"Authorization": f"Bearer {token}"}
        return {self.api_key_header: token}

    def _classify(self, response: httpx.Response, policy: RetryPolicy) -> ServiceError | None:
        """Map a response to an error, or None if it succeeded."""
        status = response.status_code

        if status < 400:
            return None

        if status >= 500:
            error = ServerError(
                status,
                message_debug=response.text[:500] if response.content else None,
            )
            if not policy.should_retry_status(status):
                error.retryable = False
            return error

        message = remote_message(response)

        if status in (401, 403):
            return UnauthenticatedError(
                f"Service rejected the API key ({status})"
                + (f": {message}" if message else "")
            )

        if status == 404:
            return NotFoundError(message)

        return ClientError(status, message)

    async def call(
        self,
        method: str,
        path: str,
        context: RunContext | None = None,
        retry_policy: RetryPolicy | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make an authenticated request with classification and retry.

        Args:
            method: HTTP method (GET, POST, etc.).
            path: Request path relative to base_url.
            context: RunContext for header injection and correlation.
            retry_policy: Override of the transport's retry policy.
            **kwargs: Additional arguments passed to httpx (params, json,
                files, timeout, ...).

        Returns:
            The successful HTTP response.

        Raises:
            UnauthenticatedError: No token configured (no request is sent),
                or the service answered 401/403.
            NotFoundError: The service answered 404.
            ClientError: Any other 4xx.
            ServerError: 5xx after retries are exhausted.
            NetworkError: Connection failure after retries are exhausted.
        """
        ctx = context or RunContext.new()
        policy = retry_policy or self.retry_policy
        url = self._build_url(path)

        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(ctx.get_headers())
        headers.update(self._auth_headers())

        client = await self._get_client()

        for attempt in range(policy.max_attempts):
            try:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    **kwargs,
                )
            except httpx.TimeoutException as e:
                error: ServiceError = NetworkError(
                    f"Request timed out after {kwargs.get('timeout', self.timeout)}s",
                    cause=e,
                )
            except httpx.TransportError as e:
                error = NetworkError(
                    "Failed to connect to the proving service",
                    message_debug=str(e),
                    cause=e,
                )
            else:
                classified = self._classify(response, policy)
                if classified is None:
                    return response
                error = classified

            error.bind(job_id=ctx.job_id, kind=ctx.kind)

            if not error.retryable:
                raise error

            if attempt + 1 >= policy.max_attempts:
                logger.warning(
                    f"[{ctx.label}] Giving up on {method} {path} after "
                    f"{policy.max_attempts} attempts: {error.message_safe}"
                )
                raise error

            delay = policy.calculate_delay(attempt)
            logger.info(
                f"[{ctx.label}] Retry {attempt + 1}/{policy.max_attempts} "
                f"for {method} {path} ({error.message_safe}) in {delay:.2f}s"
            )
            await self._sleep(delay)

        raise RuntimeError("Retry loop exited unexpectedly")

    async def get(self, path: str, context: RunContext | None = None, **kwargs: Any) -> httpx.Response:
        """Make a GET request."""
        return await self.call("GET", path, context, **kwargs)

    async def post(self, path: str, context: RunContext | None = None, **kwargs: Any) -> httpx.Response:
        """Make a POST request."""
        return await self.call("POST", path, context, **kwargs)
