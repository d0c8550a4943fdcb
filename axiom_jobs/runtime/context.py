"""
Request-scoped context for calls to the proving service.

RunContext carries the correlation id and client version that are attached
to every outbound request, plus the job it concerns so log lines and errors
can name it.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from pydantic import BaseModel

from axiom_jobs import __version__

if TYPE_CHECKING:
    from axiom_jobs.jobs.models import JobRef

REQUEST_ID_HEADER = "X-Request-Id"
CLIENT_VERSION_HEADER = "Axiom-CLI-Version"


class RunContext(BaseModel):
    """Request-scoped context for service operations.

    Attributes:
        request_id: Unique identifier for request tracing.
        job_id: Job the request concerns, if any.
        kind: Job kind the request concerns, if any.
        client_version: Version string sent to the service.
    """

    request_id: str
    job_id: str | None = None
    kind: str | None = None
    client_version: str = __version__

    model_config = {"frozen": True}

    @classmethod
    def new(cls, kind: str | None = None) -> "RunContext":
        """Create a context with a fresh request id."""
        return cls(request_id=str(uuid.uuid4()), kind=kind)

    @classmethod
    def for_job(cls, ref: "JobRef") -> "RunContext":
        """Create a context for calls about an existing job.

        Args:
            ref: The job reference.

        Returns:
            A new RunContext with a fresh request id and the job attached.
        """
        return cls(
            request_id=str(uuid.uuid4()),
            job_id=ref.job_id,
            kind=ref.kind.value,
        )

    @property
    def label(self) -> str:
        """Short tag for log lines: the job id when known, else the request id."""
        return self.job_id or self.request_id[:8]

    def get_headers(self) -> dict[str, str]:
        """Get HTTP headers for propagating context.

        Returns:
            Dictionary of headers to inject into outbound requests.
        """
        return {
            REQUEST_ID_HEADER: self.request_id,
            CLIENT_VERSION_HEADER: self.client_version,
        }
