"""
Per-kind definitions: endpoints, status vocabulary and artifact types.

Everything the submitter, poller and retriever need to know about a job
kind lives in its KindSpec, so they can rebuild their full context from a
JobRef alone. Status vocabularies are data and can be replaced when the
service adds or renames states.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, Mapping

from loguru import logger
from pydantic import BaseModel

from axiom_jobs.runtime.errors import InvalidParamsError, UnsupportedArtifactTypeError

from .models import (
    ArtifactEncoding,
    BuildArtifactType,
    JobKind,
    JobPhase,
    JobStatus,
    ProofArtifactType,
    Verdict,
)
from .params import PARAMS_MODELS

ALL_ARTIFACTS = "all"


class StatusVocabulary(BaseModel):
    """Maps a kind's raw status strings onto JobPhase (and Verdict).

    Lookups are case-insensitive. A raw state missing from `phases` is
    treated as RUNNING: the service is still working on something we don't
    have a name for.

    Attributes:
        state_field: Key of the raw state in the status payload.
        phases: Raw state to phase.
        verdicts: Raw state to verification verdict (verify jobs only).
    """

    state_field: str
    phases: dict[str, JobPhase]
    verdicts: dict[str, Verdict] = {}

    model_config = {"frozen": True}

    def phase_for(self, state: str) -> JobPhase:
        phase = _lookup(self.phases, state)
        if phase is None:
            logger.warning(f"Unknown job state '{state}', treating it as running")
            return JobPhase.RUNNING
        return phase

    def verdict_for(self, state: str) -> Verdict | None:
        return _lookup(self.verdicts, state)


def _lookup(table: Mapping[str, Any], key: str) -> Any:
    if key in table:
        return table[key]
    lowered = key.lower()
    for name, value in table.items():
        if name.lower() == lowered:
            return value
    return None


BUILD_VOCABULARY = StatusVocabulary(
    state_field="status",
    phases={
        "not_ready": JobPhase.QUEUED,
        "processing": JobPhase.RUNNING,
        "ready": JobPhase.SUCCEEDED,
        "error": JobPhase.FAILED,
        "failed": JobPhase.FAILED,
    },
)

PROVE_VOCABULARY = StatusVocabulary(
    state_field="state",
    phases={
        "Queued": JobPhase.QUEUED,
        "InProgress": JobPhase.RUNNING,
        # Cancel requested but not yet honoured; the proof may still finish
        "Canceling": JobPhase.RUNNING,
        "Succeeded": JobPhase.SUCCEEDED,
        "Failed": JobPhase.FAILED,
        "Canceled": JobPhase.CANCELLED,
    },
)

VERIFY_VOCABULARY = StatusVocabulary(
    state_field="result",
    phases={
        "pending": JobPhase.QUEUED,
        "queued": JobPhase.QUEUED,
        "processing": JobPhase.RUNNING,
        "verified": JobPhase.SUCCEEDED,
        # The verification ran; the proof just didn't check out
        "failed": JobPhase.SUCCEEDED,
        "error": JobPhase.FAILED,
    },
    verdicts={
        "verified": Verdict.VALID,
        "failed": Verdict.INVALID,
    },
)


@dataclasses.dataclass(frozen=True)
class KindSpec:
    """Static description of one job kind."""

    kind: JobKind
    vocabulary: StatusVocabulary
    status_path: str
    artifact_types: type[Enum] | None = None
    artifact_paths: Mapping[str, str] = dataclasses.field(default_factory=dict)
    artifact_path_default: str | None = None
    artifact_encodings: Mapping[str, ArtifactEncoding] = dataclasses.field(default_factory=dict)
    cancel_path: str | None = None
    list_path: str | None = None
    artifact_bundle: tuple[str, ...] = ()

    @property
    def params_model(self) -> type[BaseModel]:
        return PARAMS_MODELS[self.kind]

    def status_url(self, job_id: str) -> str:
        return self.status_path.format(job_id=job_id)

    def supported_artifacts(self) -> list[str]:
        if self.artifact_types is None:
            return []
        return [member.value for member in self.artifact_types]

    def parse_artifact_type(self, value: Enum | str, job_id: str | None = None) -> Enum:
        """Resolve `value` to this kind's artifact enum.

        Raises:
            UnsupportedArtifactTypeError: If the kind doesn't produce it.
        """
        raw = str(getattr(value, "value", value)).lower()
        if self.artifact_types is not None:
            for member in self.artifact_types:
                if member.value == raw:
                    return member
        raise UnsupportedArtifactTypeError(
            raw,
            self.supported_artifacts(),
            job_id=job_id,
            kind=self.kind.value,
        )

    def artifact_url(self, job_id: str, artifact_type: Enum) -> str:
        template = self.artifact_paths.get(artifact_type.value, self.artifact_path_default)
        if template is None:
            raise UnsupportedArtifactTypeError(
                artifact_type.value, self.supported_artifacts(), job_id=job_id, kind=self.kind.value
            )
        return template.format(job_id=job_id, artifact_type=artifact_type.value)

    def encoding_for(self, artifact_type: Enum) -> ArtifactEncoding:
        return self.artifact_encodings.get(artifact_type.value, ArtifactEncoding.BINARY)

    def cancel_url(self, job_id: str) -> str:
        if self.cancel_path is None:
            raise InvalidParamsError(
                f"Cancellation is not supported for {self.kind.value} jobs",
                job_id=job_id,
                kind=self.kind.value,
            )
        return self.cancel_path.format(job_id=job_id)

    def list_url(self) -> str:
        if self.list_path is None:
            raise InvalidParamsError(
                f"Listing is not supported for {self.kind.value} jobs", kind=self.kind.value
            )
        return self.list_path

    def bundle_types(self, job_id: str | None = None) -> list[Enum]:
        """Artifact types fetched when every artifact of a job is requested.

        Raises:
            UnsupportedArtifactTypeError: If the kind has no bundle.
        """
        if not self.artifact_bundle:
            raise UnsupportedArtifactTypeError(
                ALL_ARTIFACTS, self.supported_artifacts(), job_id=job_id, kind=self.kind.value
            )
        return [self.parse_artifact_type(name, job_id=job_id) for name in self.artifact_bundle]

    def parse_status(self, job_id: str, payload: dict[str, Any]) -> JobStatus:
        """Build a JobStatus from a raw status payload.

        Raises:
            ValueError: If the payload has no state field.
        """
        state = payload.get(self.vocabulary.state_field)
        if not isinstance(state, str) or not state:
            raise ValueError(f"missing '{self.vocabulary.state_field}' field")

        phase = self.vocabulary.phase_for(state)
        verdict = self.vocabulary.verdict_for(state) if phase.is_terminal else None

        program_id = None
        if self.kind is JobKind.BUILD and phase is JobPhase.SUCCEEDED:
            # The service reuses the build id as the program id unless it says otherwise
            program_id = payload.get("program_id") or payload.get("id") or job_id
        elif self.kind is not JobKind.BUILD:
            program_id = payload.get("program_id") or payload.get("program_uuid")

        return JobStatus(
            job_id=job_id,
            kind=self.kind,
            state=state,
            phase=phase,
            created_at=_as_str(payload.get("created_at")),
            error_message=_as_str(payload.get("error_message")),
            program_id=_as_str(program_id),
            verdict=verdict,
            payload=payload,
        )

    def with_vocabulary(self, vocabulary: StatusVocabulary) -> "KindSpec":
        return dataclasses.replace(self, vocabulary=vocabulary)


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


BUILD_SPEC = KindSpec(
    kind=JobKind.BUILD,
    vocabulary=BUILD_VOCABULARY,
    status_path="/programs/{job_id}",
    artifact_types=BuildArtifactType,
    artifact_paths={"logs": "/programs/{job_id}/logs"},
    artifact_path_default="/programs/{job_id}/download/{artifact_type}",
    artifact_encodings={
        "exe": ArtifactEncoding.BINARY,
        "elf": ArtifactEncoding.BINARY,
        "source": ArtifactEncoding.GZIP,
        "app_exe_commit": ArtifactEncoding.HEX,
        "logs": ArtifactEncoding.TEXT,
    },
    artifact_bundle=("exe", "elf", "source", "app_exe_commit"),
)

PROVE_SPEC = KindSpec(
    kind=JobKind.PROVE,
    vocabulary=PROVE_VOCABULARY,
    status_path="/proofs/{job_id}",
    artifact_types=ProofArtifactType,
    artifact_paths={"logs": "/proofs/{job_id}/logs"},
    artifact_path_default="/proofs/{job_id}/proof/{artifact_type}",
    artifact_encodings={
        "stark": ArtifactEncoding.BINARY,
        "root": ArtifactEncoding.BINARY,
        "evm": ArtifactEncoding.JSON,
        "logs": ArtifactEncoding.TEXT,
    },
    cancel_path="/proofs/{job_id}/cancel",
    list_path="/proofs",
)

VERIFY_SPEC = KindSpec(
    kind=JobKind.VERIFY,
    vocabulary=VERIFY_VOCABULARY,
    status_path="/verify/{job_id}",
)


class KindRegistry:
    """Lookup table from JobKind to KindSpec."""

    def __init__(self, specs: Mapping[JobKind, KindSpec] | None = None):
        self._specs: dict[JobKind, KindSpec] = dict(
            specs
            or {
                JobKind.BUILD: BUILD_SPEC,
                JobKind.PROVE: PROVE_SPEC,
                JobKind.VERIFY: VERIFY_SPEC,
            }
        )

    def get(self, kind: JobKind | str) -> KindSpec:
        """Return the KindSpec for `kind`.

        Raises:
            InvalidParamsError: If the kind is unknown.
        """
        try:
            return self._specs[JobKind(kind)]
        except (ValueError, KeyError):
            raise InvalidParamsError(f"Unknown job kind '{kind}'", fields=["kind"])

    def with_vocabularies(self, vocabularies: Mapping[JobKind, StatusVocabulary]) -> "KindRegistry":
        """Return a registry with some kinds' vocabularies replaced."""
        specs = dict(self._specs)
        for kind, vocabulary in vocabularies.items():
            specs[JobKind(kind)] = specs[JobKind(kind)].with_vocabulary(vocabulary)
        return KindRegistry(specs)

    def __iter__(self):
        return iter(self._specs.values())


DEFAULT_KINDS = KindRegistry()
