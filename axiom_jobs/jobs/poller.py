"""
Status polling.

`fetch_status` is a single snapshot query. `await_terminal` repeats it with
capped exponential backoff until the job reaches a terminal phase, the
timeout elapses, or the caller cancels. Transient failures on a single poll
are logged and retried at the next tick; everything else ends the wait.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from loguru import logger

from axiom_jobs.runtime import (
    CancellationToken,
    InvalidParamsError,
    MalformedResponseError,
    NetworkError,
    PollPolicy,
    RunContext,
    ServerError,
    TimedOutError,
    Transport,
    decode_json,
)

from .kinds import DEFAULT_KINDS, KindRegistry
from .models import JobPhase, JobRef, JobStatus

Clock = Callable[[], float]
SleepFn = Callable[[float], Awaitable[None]]
StatusCallback = Callable[[JobStatus], None]


class PhaseTracker:
    """Remembers the highest phase seen during one wait.

    Status reads can be served by replicas that lag behind each other, so a
    snapshot may report an older phase than one we've already seen.
    """

    def __init__(self) -> None:
        self.phase: JobPhase | None = None

    def accept(self, status: JobStatus) -> bool:
        """Record `status` and return True unless it moves the phase backwards."""
        if self.phase is not None and status.phase.rank < self.phase.rank:
            return False
        self.phase = status.phase
        return True


class StatusPoller:
    """Queries job status and waits for jobs to finish.

    Example:
        poller = StatusPoller(transport)
        status = await poller.await_terminal(JobRef.of("prove", "pf-7"), timeout=600)
    """

    def __init__(
        self,
        transport: Transport,
        kinds: KindRegistry | None = None,
        policy: PollPolicy | None = None,
        clock: Clock = time.monotonic,
        sleep: SleepFn | None = None,
    ):
        """Initialize the poller.

        Args:
            transport: Transport used for status queries.
            kinds: Kind registry. Uses the default vocabularies if None.
            policy: Backoff between polls. Uses default if None.
            clock: Monotonic clock used for the timeout.
            sleep: Coroutine used between polls. Defaults to the
                cancellation token's interruptible sleep.
        """
        self._transport = transport
        self._kinds = kinds or DEFAULT_KINDS
        self.policy = policy or PollPolicy()
        self._clock = clock
        self._sleep = sleep

    async def fetch_status(self, ref: JobRef, context: RunContext | None = None) -> JobStatus:
        """Fetch a single status snapshot.

        Raises:
            NotFoundError: The service doesn't know the job id.
            MalformedResponseError: The body has no recognizable state.
        """
        spec = self._kinds.get(ref.kind)
        ctx = context or RunContext.for_job(ref)

        response = await self._transport.get(spec.status_url(ref.job_id), ctx)
        body = decode_json(response, what=f"{ref.kind.value} status response")
        if not isinstance(body, dict):
            raise MalformedResponseError(
                f"Malformed {ref.kind.value} status response: expected an object",
                message_debug=str(body)[:500],
            ).bind(job_id=ref.job_id, kind=ref.kind.value)

        try:
            status = spec.parse_status(ref.job_id, body)
        except ValueError as e:
            raise MalformedResponseError(
                f"Malformed {ref.kind.value} status response: {e}",
                cause=e,
            ).bind(job_id=ref.job_id, kind=ref.kind.value)

        logger.debug(f"[{ctx.label}] {ref} is {status.state} ({status.phase.value})")
        return status

    async def await_terminal(
        self,
        ref: JobRef,
        poll_interval: float | None = None,
        timeout: float | None = None,
        cancel_token: CancellationToken | None = None,
        on_status: StatusCallback | None = None,
    ) -> JobStatus:
        """Poll until the job reaches a terminal phase.

        Args:
            ref: The job to wait for.
            poll_interval: First delay between polls. Uses the policy's if None.
            timeout: Give up after this many seconds. Waits forever if None.
            cancel_token: Token the caller can set to stop waiting.
            on_status: Called with every accepted snapshot, in phase order.

        Returns:
            The first terminal status observed.

        Raises:
            TimedOutError: `timeout` elapsed first.
            AbortedError: `cancel_token` was set.
            NotFoundError, ClientError, UnauthenticatedError,
            MalformedResponseError: Raised by a poll; not retried.
        """
        if poll_interval is not None and poll_interval <= 0:
            raise InvalidParamsError(
                "poll_interval must be positive", fields=["poll_interval"], kind=ref.kind.value
            )
        if timeout is not None and timeout <= 0:
            raise InvalidParamsError("timeout must be positive", fields=["timeout"], kind=ref.kind.value)

        policy = self.policy.with_interval(poll_interval) if poll_interval else self.policy
        token = cancel_token or CancellationToken()
        sleep = self._sleep or token.sleep
        deadline = self._clock() + timeout if timeout is not None else None
        tracker = PhaseTracker()
        kind = ref.kind.value

        attempt = 0
        while True:
            token.raise_if_cancelled(job_id=ref.job_id, kind=kind)

            try:
                status = await self.fetch_status(ref)
            except (NetworkError, ServerError) as e:
                logger.warning(f"[{ref.job_id}] Status poll failed, will retry: {e.message_safe}")
            else:
                if not tracker.accept(status):
                    logger.warning(
                        f"[{ref.job_id}] Ignoring stale status {status.state} "
                        f"({status.phase.value}) after {tracker.phase.value}"
                    )
                else:
                    if on_status is not None:
                        on_status(status)
                    if status.is_terminal:
                        logger.info(f"[{ref.job_id}] {ref} finished: {status.state}")
                        return status

            delay = policy.delay_for(attempt)
            attempt += 1

            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    raise TimedOutError(
                        timeout,
                        last_phase=tracker.phase.value if tracker.phase else None,
                        job_id=ref.job_id,
                        kind=kind,
                    )
                delay = min(delay, remaining)

            token.raise_if_cancelled(job_id=ref.job_id, kind=kind)
            logger.debug(f"[{ref.job_id}] Next poll in {delay:.1f}s")
            await sleep(delay)
