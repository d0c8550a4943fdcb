"""
Domain models for jobs, statuses and artifacts.

The service speaks a different status vocabulary per job kind; every raw
state is mapped onto a shared JobPhase so the poller can treat all kinds the
same way. The raw state and the full response payload are kept alongside
for display.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from axiom_jobs.runtime.errors import InvalidParamsError, JobFailedError


class JobKind(str, Enum):
    """The closed set of job kinds the service runs."""

    BUILD = "build"
    PROVE = "prove"
    VERIFY = "verify"


class JobPhase(str, Enum):
    """Kind-independent lifecycle phase.

    Phases are ordered QUEUED < RUNNING < {SUCCEEDED, FAILED, CANCELLED};
    a job never moves to a lower rank and never leaves a terminal phase.
    """

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def rank(self) -> int:
        return _PHASE_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self.rank == _TERMINAL_RANK


_TERMINAL_RANK = 2
_PHASE_RANK = {
    JobPhase.QUEUED: 0,
    JobPhase.RUNNING: 1,
    JobPhase.SUCCEEDED: _TERMINAL_RANK,
    JobPhase.FAILED: _TERMINAL_RANK,
    JobPhase.CANCELLED: _TERMINAL_RANK,
}


class Verdict(str, Enum):
    """Outcome of a completed verification job."""

    VALID = "valid"
    INVALID = "invalid"


class ProofType(str, Enum):
    """Proof flavour requested from prove jobs or checked by verify jobs."""

    STARK = "stark"
    EVM = "evm"


class ProofArtifactType(str, Enum):
    """Artifacts of a successful prove job."""

    STARK = "stark"
    ROOT = "root"
    EVM = "evm"
    LOGS = "logs"


class BuildArtifactType(str, Enum):
    """Artifacts of a successful build job."""

    EXE = "exe"
    ELF = "elf"
    SOURCE = "source"
    APP_EXE_COMMIT = "app_exe_commit"
    LOGS = "logs"


class ArtifactEncoding(str, Enum):
    """How artifact bytes are checked before being handed to the caller."""

    JSON = "json"
    BINARY = "binary"
    TEXT = "text"
    HEX = "hex"
    GZIP = "gzip"


class JobRef(BaseModel):
    """The durable handle a caller keeps between process invocations."""

    kind: JobKind
    job_id: str

    model_config = {"frozen": True}

    @classmethod
    def of(cls, kind: JobKind | str, job_id: str) -> "JobRef":
        """Build a reference, rejecting unknown kinds and empty ids.

        Raises:
            InvalidParamsError: If the kind is unknown or the id is blank.
        """
        try:
            job_kind = JobKind(kind)
        except ValueError:
            raise InvalidParamsError(
                f"Unknown job kind '{kind}'",
                fields=["kind"],
            )

        job_id = (job_id or "").strip()
        if not job_id:
            raise InvalidParamsError(
                "Job id must not be empty",
                fields=["job_id"],
                kind=job_kind.value,
            )
        return cls(kind=job_kind, job_id=job_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.job_id}"


class JobStatus(BaseModel):
    """A single status snapshot returned by the service."""

    job_id: str
    kind: JobKind
    state: str = Field(..., description="Raw state string from the service")
    phase: JobPhase
    created_at: str | None = None
    error_message: str | None = None
    program_id: str | None = Field(
        None, description="Program produced by a successful build"
    )
    verdict: Verdict | None = Field(
        None, description="Verification outcome, for verify jobs"
    )
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def ref(self) -> JobRef:
        return JobRef(kind=self.kind, job_id=self.job_id)

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal

    @property
    def succeeded(self) -> bool:
        return self.phase is JobPhase.SUCCEEDED

    def raise_for_status(self) -> "JobStatus":
        """Raise JobFailedError unless the job succeeded with a positive outcome.

        A verify job that completed with an INVALID verdict counts as a
        failure here. Non-terminal statuses pass through unchanged.

        Returns:
            The status itself, for chaining.
        """
        if self.phase in (JobPhase.FAILED, JobPhase.CANCELLED):
            reason = self.error_message or "Unknown error"
            if self.phase is JobPhase.CANCELLED:
                message = f"{self.kind.value.capitalize()} job was cancelled"
            else:
                message = f"{self.kind.value.capitalize()} job failed: {reason}"
            raise JobFailedError(
                message, phase=self.phase.value, job_id=self.job_id, kind=self.kind.value
            )

        if self.verdict is Verdict.INVALID:
            raise JobFailedError(
                "Proof verification failed",
                phase=self.phase.value,
                job_id=self.job_id,
                kind=self.kind.value,
            )
        return self


class Artifact(BaseModel):
    """A validated artifact of a successful job.

    Artifacts are not persisted by the client; the caller decides where
    the bytes go.
    """

    job_id: str
    kind: JobKind
    artifact_type: str
    encoding: ArtifactEncoding
    content: bytes
    media_type: str | None = None
    program_id: str | None = Field(
        None, description="Program the job belongs to, when the service reports it"
    )
    metadata: Any = Field(
        None, description="Parsed JSON, decoded text or normalized hex"
    )

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.content).hexdigest()

    def summary(self) -> dict[str, Any]:
        """Everything except the content, for JSON output."""
        return {
            "job_id": self.job_id,
            "kind": self.kind.value,
            "artifact_type": self.artifact_type,
            "encoding": self.encoding.value,
            "media_type": self.media_type,
            "program_id": self.program_id,
            "size": self.size,
            "sha256": self.sha256,
        }


class FlowResult(BaseModel):
    """Outcome of an end-to-end flow (submit, wait, download)."""

    job_id: str
    kind: JobKind
    status: JobStatus | None = None
    artifact: Artifact | None = None

    @property
    def ref(self) -> JobRef:
        return JobRef(kind=self.kind, job_id=self.job_id)
