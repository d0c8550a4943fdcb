"""
Job lifecycle layer.

- JobSubmitter: validates parameters and creates jobs
- StatusPoller: status snapshots and wait-until-terminal
- ArtifactRetriever: downloads and validates artifacts
- JobLifecycleClient: the facade tying the three together
"""

from .client import DEFAULT_CANCEL_MESSAGE, JobLifecycleClient
from .inputs import InputError, encode_input
from .kinds import ALL_ARTIFACTS, DEFAULT_KINDS, KindRegistry, KindSpec, StatusVocabulary
from .models import (
    Artifact,
    ArtifactEncoding,
    BuildArtifactType,
    FlowResult,
    JobKind,
    JobPhase,
    JobRef,
    JobStatus,
    ProofArtifactType,
    ProofType,
    Verdict,
)
from .params import BuildParams, ProveParams, VerifyParams, validate_params
from .poller import StatusPoller
from .retriever import ArtifactRetriever, decode_artifact
from .submitter import JobSubmitter

__all__ = [
    "ALL_ARTIFACTS",
    "DEFAULT_CANCEL_MESSAGE",
    "DEFAULT_KINDS",
    "Artifact",
    "ArtifactEncoding",
    "ArtifactRetriever",
    "BuildArtifactType",
    "BuildParams",
    "FlowResult",
    "InputError",
    "JobKind",
    "JobLifecycleClient",
    "JobPhase",
    "JobRef",
    "JobStatus",
    "JobSubmitter",
    "KindRegistry",
    "KindSpec",
    "ProofArtifactType",
    "ProofType",
    "ProveParams",
    "StatusPoller",
    "StatusVocabulary",
    "Verdict",
    "VerifyParams",
    "decode_artifact",
    "encode_input",
    "validate_params",
]
