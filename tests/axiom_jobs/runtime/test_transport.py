"""Unit tests for Transport."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from axiom_jobs import __version__
from axiom_jobs.jobs.models import JobRef
from axiom_jobs.runtime.context import RunContext
from axiom_jobs.runtime.credentials import StaticCredentials
from axiom_jobs.runtime.errors import (
    ClientError,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    ServerError,
    UnauthenticatedError,
)
from axiom_jobs.runtime.retry import RetryPolicy
from axiom_jobs.runtime.transport import Transport, decode_json

BASE_URL = "http://proving.test/v1"


@pytest.fixture
def context():
    """Create a test RunContext."""
    return RunContext(request_id="test-req-123")


def make_transport(handler, token="secret-key", max_attempts=3, **kwargs):
    return Transport(
        base_url=BASE_URL,
        credentials=StaticCredentials(token),
        retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=0.01, jitter=False),
        http_transport=httpx.MockTransport(handler),
        sleep=AsyncMock(),
        **kwargs,
    )


class Recorder:
    """MockTransport handler replaying a fixed list of replies."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class TestTransportInit:
    """Tests for transport initialization."""

    def test_strips_trailing_slash(self):
        """Should strip trailing slash from base_url."""
        transport = Transport(base_url="http://example.com/", credentials=StaticCredentials("k"))
        assert transport.base_url == "http://example.com"

    def test_builds_url(self):
        """Should join paths with or without a leading slash."""
        transport = Transport(base_url=BASE_URL, credentials=StaticCredentials("k"))
        assert transport._build_url("/proofs/pf-1") == f"{BASE_URL}/proofs/pf-1"
        assert transport._build_url("proofs/pf-1") == f"{BASE_URL}/proofs/pf-1"


class TestAuthentication:
    """Tests for credential handling."""

    @pytest.mark.asyncio
    async def test_missing_token_fails_before_network(self, context):
        """Should raise Unauthenticated without creating a client."""
        transport = Transport(base_url=BASE_URL, credentials=StaticCredentials(None))

        with patch.object(transport, "_get_client", new_callable=AsyncMock) as mock_get_client:
            with pytest.raises(UnauthenticatedError):
                await transport.get("/proofs/pf-1", context)

            mock_get_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, context):
        """Should send the key as a bearer token by default."""
        recorder = Recorder(httpx.Response(200, json={}))
        transport = make_transport(recorder)

        await transport.get("/proofs/pf-1", context)

        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Bearer secret-key"
        assert request.headers["X-Request-Id"] == "test-req-123"
        assert request.headers["Axiom-CLI-Version"] == __version__
        await transport.close()

    @pytest.mark.asyncio
    async def test_sends_raw_key_in_custom_header(self, context):
        """Should send the raw key when a custom header is configured."""
        recorder = Recorder(httpx.Response(200, json={}))
        transport = make_transport(recorder, api_key_header="Axiom-API-Key")

        await transport.get("/proofs/pf-1", context)

        request = recorder.requests[0]
        assert request.headers["Axiom-API-Key"] == "secret-key"
        assert "Authorization" not in request.headers
        await transport.close()

    @pytest.mark.asyncio
    async def test_leaves_caller_headers_untouched(self, context):
        """Extra headers are sent without mutating the caller's dict."""
        recorder = Recorder(httpx.Response(200, json={}))
        transport = make_transport(recorder)
        extra = {"Accept": "application/json"}

        await transport.get("/proofs/pf-1", context, headers=extra)

        assert extra == {"Accept": "application/json"}
        assert recorder.requests[0].headers["Accept"] == "application/json"
        assert recorder.requests[0].headers["Authorization"] == "Bearer secret-key"
        await transport.close()

    @pytest.mark.asyncio
    async def test_rejected_key(self, context):
        """401 and 403 should map to Unauthenticated without retry."""
        recorder = Recorder(httpx.Response(401, json={"message": "invalid key"}))
        transport = make_transport(recorder)

        with pytest.raises(UnauthenticatedError) as exc_info:
            await transport.get("/proofs/pf-1", context)

        assert "invalid key" in exc_info.value.message_safe
        assert len(recorder.requests) == 1
        await transport.close()


class TestErrorHandling:
    """Tests for response classification and retry."""

    @pytest.mark.asyncio
    async def test_retries_server_error_then_succeeds(self, context):
        """Fewer failures than the bound should end in success."""
        recorder = Recorder(
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, json={"id": "pf-1"}),
        )
        transport = make_transport(recorder, max_attempts=3)

        response = await transport.get("/proofs/pf-1", context)

        assert response.json() == {"id": "pf-1"}
        assert len(recorder.requests) == 3
        assert transport._sleep.await_count == 2
        await transport.close()

    @pytest.mark.asyncio
    async def test_surfaces_final_server_error(self, context):
        """More failures than the bound should surface the last ServerError."""
        recorder = Recorder(httpx.Response(500), httpx.Response(500), httpx.Response(504))
        transport = make_transport(recorder, max_attempts=3)

        with pytest.raises(ServerError) as exc_info:
            await transport.get("/proofs/pf-1", context)

        assert exc_info.value.status_code == 504
        assert len(recorder.requests) == 3
        await transport.close()

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self, context):
        """404 should raise NotFoundError immediately."""
        recorder = Recorder(httpx.Response(404, json={"detail": "Proof not found"}))
        transport = make_transport(recorder)

        with pytest.raises(NotFoundError) as exc_info:
            await transport.get("/proofs/missing", context)

        assert exc_info.value.message_safe == "Proof not found"
        assert len(recorder.requests) == 1
        await transport.close()

    @pytest.mark.asyncio
    async def test_client_error_carries_remote_message(self, context):
        """Other 4xx should raise ClientError with the service message."""
        recorder = Recorder(httpx.Response(400, text="program_id is invalid"))
        transport = make_transport(recorder)

        with pytest.raises(ClientError) as exc_info:
            await transport.post("/proofs", context)

        assert exc_info.value.status_code == 400
        assert exc_info.value.remote_message == "program_id is invalid"
        await transport.close()

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_retried(self, context):
        """429 is a client error like any other 4xx."""
        recorder = Recorder(httpx.Response(429, json={"error": "slow down"}))
        transport = make_transport(recorder)

        with pytest.raises(ClientError):
            await transport.get("/proofs/pf-1", context)

        assert len(recorder.requests) == 1
        await transport.close()

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self, context):
        """Connection failures should be retried and then surface as NetworkError."""
        recorder = Recorder(httpx.ConnectError("connection refused"))
        transport = make_transport(recorder, max_attempts=2)

        with pytest.raises(NetworkError):
            await transport.get("/proofs/pf-1", context)

        assert len(recorder.requests) == 2
        await transport.close()

    @pytest.mark.asyncio
    async def test_timeouts_become_network_errors(self, context):
        """Read timeouts should be classified as network errors."""
        recorder = Recorder(httpx.ReadTimeout("timed out"), httpx.Response(200, json={}))
        transport = make_transport(recorder, max_attempts=2)

        response = await transport.get("/proofs/pf-1", context)

        assert response.status_code == 200
        await transport.close()

    @pytest.mark.asyncio
    async def test_binds_job_context(self):
        """Errors should name the job the request was about."""
        recorder = Recorder(httpx.Response(404))
        transport = make_transport(recorder)
        ctx = RunContext.for_job(JobRef.of("prove", "pf-9"))

        with pytest.raises(NotFoundError) as exc_info:
            await transport.get("/proofs/pf-9", ctx)

        assert exc_info.value.job_id == "pf-9"
        assert exc_info.value.kind == "prove"
        await transport.close()


class TestDecodeJson:
    """Tests for response body decoding."""

    def test_decodes_json(self):
        """Should return the parsed body."""
        assert decode_json(httpx.Response(200, json={"id": "x"})) == {"id": "x"}

    def test_rejects_non_json(self):
        """Should raise MalformedResponseError for non-JSON bodies."""
        with pytest.raises(MalformedResponseError):
            decode_json(httpx.Response(200, text="<html>"), what="status response")
