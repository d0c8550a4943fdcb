"""
Job Lifecycle Client.

The facade callers use: submit a job, check or wait for its status, download
its artifacts, cancel it. Every operation takes only a kind and a job id, so
each step can run in a fresh process.
"""

from __future__ import annotations

import time
from typing import Any, Mapping

import httpx
from loguru import logger
from pydantic import BaseModel

from axiom_jobs.config import Settings, settings as default_settings
from axiom_jobs.runtime import (
    CancellationToken,
    CredentialStore,
    InvalidParamsError,
    JobFailedError,
    MalformedResponseError,
    PollPolicy,
    RunContext,
    SettingsCredentials,
    Transport,
    decode_json,
)

from .kinds import DEFAULT_KINDS, KindRegistry, StatusVocabulary
from .models import Artifact, FlowResult, JobKind, JobPhase, JobRef, JobStatus
from .poller import Clock, SleepFn, StatusCallback, StatusPoller
from .retriever import ArtifactRetriever
from .submitter import JobSubmitter

DEFAULT_CANCEL_MESSAGE = "Cancellation request submitted successfully"


class JobLifecycleClient:
    """Async client for build, prove and verify jobs.

    Example:
        async with JobLifecycleClient() as client:
            ref = await client.submit_prove(program_id, "0x01aa")
            status = await client.wait(ref.kind, ref.job_id, timeout=1800)
            proof = await client.download(ref.kind, ref.job_id, "evm")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        credentials: CredentialStore | None = None,
        transport: Transport | None = None,
        kinds: KindRegistry | None = None,
        vocabularies: Mapping[JobKind, StatusVocabulary] | None = None,
        poll_policy: PollPolicy | None = None,
        clock: Clock = time.monotonic,
        sleep: SleepFn | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            settings: Configuration. Uses the global settings if None.
            credentials: Token source. Reads AXIOM_API_KEY from settings if None.
            transport: Prebuilt transport; built from settings if None.
            kinds: Kind registry. Uses the default registry if None.
            vocabularies: Status vocabularies replacing the defaults per kind.
            poll_policy: Backoff between status polls.
            clock: Monotonic clock for wait timeouts.
            sleep: Coroutine used between polls (tests inject a fake).
            http_transport: Optional httpx transport (used by tests).
        """
        self.settings = settings or default_settings
        self._transport = transport or Transport(
            base_url=self.settings.AXIOM_API_URL,
            credentials=credentials or SettingsCredentials(self.settings),
            timeout=self.settings.REQUEST_TIMEOUT,
            retry_policy=self.settings.retry_policy(),
            api_key_header=self.settings.API_KEY_HEADER,
            http_transport=http_transport,
        )

        registry = kinds or DEFAULT_KINDS
        if vocabularies:
            registry = registry.with_vocabularies(vocabularies)
        self.kinds = registry

        self.submitter = JobSubmitter(self._transport, self.kinds)
        self.poller = StatusPoller(
            self._transport,
            self.kinds,
            policy=poll_policy or self.settings.poll_policy(),
            clock=clock,
            sleep=sleep,
        )
        self.retriever = ArtifactRetriever(
            self._transport,
            self.poller,
            self.kinds,
            download_timeout=self.settings.DOWNLOAD_TIMEOUT,
        )

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        await self._transport.close()

    async def __aenter__(self) -> "JobLifecycleClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context manager."""
        await self.close()

    async def submit(
        self,
        kind: JobKind | str,
        params: BaseModel | Mapping[str, Any],
        context: RunContext | None = None,
    ) -> JobRef:
        """Submit a job and return a reference to it."""
        job_id = await self.submitter.submit(kind, params, context)
        return JobRef.of(kind, job_id)

    async def submit_build(self, payload: bytes, **options: Any) -> JobRef:
        """Upload a source archive and start a build."""
        return await self.submit(JobKind.BUILD, {"payload": payload, **options})

    async def submit_prove(self, program_id: str, input: Any = None, **options: Any) -> JobRef:
        """Start proving `program_id` on `input` (an empty input list if None)."""
        params = {"program_id": program_id, **options}
        if input is not None:
            params["input"] = input
        return await self.submit(JobKind.PROVE, params)

    async def submit_verify(self, proof: bytes | str, **options: Any) -> JobRef:
        """Upload a proof for verification."""
        return await self.submit(JobKind.VERIFY, {"proof": proof, **options})

    async def status(self, kind: JobKind | str, job_id: str) -> JobStatus:
        """Fetch the current status of a job."""
        return await self.poller.fetch_status(JobRef.of(kind, job_id))

    async def wait(
        self,
        kind: JobKind | str,
        job_id: str,
        timeout: float | None = None,
        poll_interval: float | None = None,
        cancel_token: CancellationToken | None = None,
        on_status: StatusCallback | None = None,
    ) -> JobStatus:
        """Wait until a job reaches a terminal phase.

        The returned status may be FAILED or CANCELLED; call
        `raise_for_status()` on it to turn those into errors.
        """
        return await self.poller.await_terminal(
            JobRef.of(kind, job_id),
            poll_interval=poll_interval,
            timeout=timeout,
            cancel_token=cancel_token,
            on_status=on_status,
        )

    async def list_jobs(self, kind: JobKind | str, program_id: str) -> list[JobStatus]:
        """List the jobs of `kind` run against a program.

        Raises:
            InvalidParamsError: The kind can't be listed or `program_id` is empty.
            MalformedResponseError: The response has no `items` list, or an
                item lacks an id or state.
        """
        spec = self.kinds.get(kind)
        url = spec.list_url()
        program_id = (program_id or "").strip()
        if not program_id:
            raise InvalidParamsError("A program id is required", fields=["program_id"], kind=spec.kind.value)

        ctx = RunContext.new(kind=spec.kind.value)
        response = await self._transport.get(url, ctx, params={"program_id": program_id})
        body = decode_json(response, what=f"{spec.kind.value} list")
        items = body.get("items") if isinstance(body, dict) else None
        if not isinstance(items, list):
            raise MalformedResponseError(f"Malformed {spec.kind.value} list: missing 'items'")

        statuses = []
        for item in items:
            job_id = item.get("id") if isinstance(item, dict) else None
            if not job_id:
                raise MalformedResponseError(f"Malformed {spec.kind.value} list: item without an id")
            try:
                statuses.append(spec.parse_status(str(job_id), item))
            except ValueError as e:
                raise MalformedResponseError(
                    f"Malformed {spec.kind.value} list item {job_id}: {e}", cause=e
                )

        logger.info(f"[{ctx.label}] Found {len(statuses)} {spec.kind.value} jobs for program {program_id}")
        return statuses

    async def download(self, kind: JobKind | str, job_id: str, artifact_type: Any) -> Artifact:
        """Download one artifact of a successful job."""
        return await self.retriever.download(JobRef.of(kind, job_id), artifact_type)

    async def download_all(self, kind: JobKind | str, job_id: str) -> list[Artifact]:
        """Download every artifact in the kind's bundle, one after another.

        Raises:
            UnsupportedArtifactTypeError: The kind has no artifact bundle.
        """
        ref = JobRef.of(kind, job_id)
        types = self.kinds.get(ref.kind).bundle_types(job_id=ref.job_id)
        return [await self.retriever.download(ref, artifact_type) for artifact_type in types]

    async def cancel(self, kind: JobKind | str, job_id: str) -> str:
        """Ask the service to cancel a running job.

        Returns:
            The service's confirmation message.

        Raises:
            InvalidParamsError: The kind doesn't support cancellation.
        """
        ref = JobRef.of(kind, job_id)
        url = self.kinds.get(ref.kind).cancel_url(ref.job_id)
        ctx = RunContext.for_job(ref)

        response = await self._transport.post(url, ctx)
        message = DEFAULT_CANCEL_MESSAGE
        if response.content:
            body = decode_json(response, what="cancel response")
            if isinstance(body, dict) and body.get("message"):
                message = str(body["message"])

        logger.info(f"[{ctx.label}] Cancel requested for {ref}: {message}")
        return message

    async def wait_cancelled(
        self,
        kind: JobKind | str,
        job_id: str,
        timeout: float | None = None,
        poll_interval: float | None = None,
        cancel_token: CancellationToken | None = None,
        on_status: StatusCallback | None = None,
    ) -> JobStatus:
        """Wait for a job whose cancel was requested to reach CANCELLED.

        Raises:
            JobFailedError: The job failed or succeeded before the cancel
                took effect.
            TimedOutError: `timeout` elapsed first.
        """
        status = await self.wait(
            kind,
            job_id,
            timeout=timeout,
            poll_interval=poll_interval,
            cancel_token=cancel_token,
            on_status=on_status,
        )
        if status.phase is not JobPhase.CANCELLED:
            detail = f": {status.error_message}" if status.error_message else ""
            raise JobFailedError(
                f"{status.kind.value.capitalize()} job {status.phase.value} before cancellation "
                f"could complete{detail}",
                phase=status.phase.value,
                job_id=status.job_id,
                kind=status.kind.value,
            )
        logger.info(f"[{status.job_id}] {status.kind.value} job cancelled")
        return status

    async def run(
        self,
        kind: JobKind | str,
        params: BaseModel | Mapping[str, Any],
        wait: bool = True,
        artifact_type: Any = None,
        timeout: float | None = None,
        poll_interval: float | None = None,
        cancel_token: CancellationToken | None = None,
        on_status: StatusCallback | None = None,
    ) -> FlowResult:
        """Submit a job, optionally wait for it and download an artifact.

        Args:
            kind: Job kind to run.
            params: Submission parameters for that kind.
            wait: Wait for a terminal phase after submitting.
            artifact_type: Artifact to download once the job succeeds.
            timeout: Wait timeout in seconds.
            poll_interval: First delay between status polls.
            cancel_token: Token to abort the wait.
            on_status: Called with each status snapshot while waiting.

        Returns:
            FlowResult with the job id and, when waited for, the terminal
            status and the downloaded artifact.

        Raises:
            JobFailedError: The job failed, was cancelled, or (verify) the
                proof was found invalid.
        """
        if artifact_type is not None:
            self.kinds.get(kind).parse_artifact_type(artifact_type)

        ref = await self.submit(kind, params)
        result = FlowResult(job_id=ref.job_id, kind=ref.kind)
        if not wait:
            return result

        status = await self.wait(
            ref.kind,
            ref.job_id,
            timeout=timeout,
            poll_interval=poll_interval,
            cancel_token=cancel_token,
            on_status=on_status,
        )
        result.status = status
        status.raise_for_status()

        if artifact_type is not None:
            result.artifact = await self.download(ref.kind, ref.job_id, artifact_type)
        return result
