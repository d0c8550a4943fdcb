"""
Cooperative cancellation for long waits.

A CancellationToken is a read-only flag from the point of view of the
poller: it is checked before each status query and before each sleep, and a
sleep in progress wakes up as soon as the token is set. The token alone never
interrupts a request; signal handlers installed with a task also cancel that
task so an upload or download in flight stops right away.
"""

from __future__ import annotations

import asyncio
import signal

from loguru import logger

from .errors import AbortedError


class CancellationToken:
    """Flag shared between the caller and a poll loop."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Wait aborted by caller") -> None:
        """Request that the wait stop at the next poll boundary."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self, job_id: str | None = None, kind: str | None = None) -> None:
        """Raise AbortedError if cancel() has been called."""
        if self._event.is_set():
            raise AbortedError(self.reason or "Wait aborted", job_id=job_id, kind=kind)

    async def sleep(self, delay: float) -> None:
        """Sleep for `delay` seconds, returning early if cancelled."""
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def install_signal_handlers(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
        task: asyncio.Task | None = None,
    ) -> None:
        """Cancel this token when the process receives one of `signals`.

        Must be called from inside a running event loop unless `loop` is given.

        Args:
            loop: Event loop to install the handlers on.
            signals: Signals that cancel the token.
            task: Task to cancel as well, interrupting any request it awaits.
        """
        loop = loop or asyncio.get_running_loop()
        for sig in signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig, task)
            except (NotImplementedError, RuntimeError):
                # Not available on this platform or outside the main thread
                logger.debug(f"Cannot install handler for {sig.name}")

    def _on_signal(self, sig: signal.Signals, task: asyncio.Task | None) -> None:
        logger.warning(f"Received {sig.name}, aborting")
        self.cancel(f"Interrupted by {sig.name}")
        if task is not None and not task.done():
            task.cancel()
