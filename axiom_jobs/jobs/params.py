"""
Submission parameters per job kind.

Each kind has its own pydantic model; `validate_params` turns a plain
mapping (or an existing model) into the right one and reports missing or
invalid fields as InvalidParamsError before anything touches the network.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from axiom_jobs.runtime.errors import InvalidParamsError

from .inputs import encode_input
from .models import JobKind, ProofType


class BuildParams(BaseModel):
    """Parameters for registering and building a program."""

    payload: bytes = Field(..., min_length=1, description="Source archive (tar.gz)")
    filename: str = "program.tar.gz"
    config_id: str | None = None
    project_id: str | None = None
    project_name: str | None = None
    bin_name: str | None = None
    program_name: str | None = None
    default_num_gpus: int | None = Field(None, ge=1, le=10000)

    model_config = {"extra": "forbid"}


class ProveParams(BaseModel):
    """Parameters for generating a proof of a built program."""

    program_id: str = Field(..., min_length=1)
    input: dict[str, list[str]] = Field(
        default_factory=lambda: {"input": []}, description="Program input; empty when omitted"
    )
    proof_type: ProofType = ProofType.STARK
    num_gpus: int | None = Field(None, ge=1, le=10000)
    priority: int | None = Field(None, ge=1, le=10)

    model_config = {"extra": "forbid"}

    @field_validator("input", mode="before")
    @classmethod
    def _encode_input(cls, value: Any) -> dict[str, list[str]]:
        return encode_input(value)


class VerifyParams(BaseModel):
    """Parameters for verifying a proof."""

    proof: bytes = Field(..., min_length=1, description="Proof file content")
    proof_type: ProofType = ProofType.EVM
    config_id: str | None = None
    program_id: str | None = None

    model_config = {"extra": "forbid"}

    @field_validator("proof", mode="before")
    @classmethod
    def _proof_bytes(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    @model_validator(mode="after")
    def _check_proof_type(self) -> "VerifyParams":
        if self.proof_type is ProofType.STARK and not self.program_id:
            raise ValueError("program_id is required to verify a STARK proof")
        if self.proof_type is ProofType.EVM:
            try:
                json.loads(self.cleaned_proof())
            except ValueError as e:
                raise ValueError(f"Invalid EVM proof file: {e}")
        return self

    def cleaned_proof(self) -> bytes:
        """Proof content with 0x prefixes stripped, as the service expects."""
        return self.proof.replace(b"0x", b"")


PARAMS_MODELS: dict[JobKind, type[BaseModel]] = {
    JobKind.BUILD: BuildParams,
    JobKind.PROVE: ProveParams,
    JobKind.VERIFY: VerifyParams,
}


def validate_params(kind: JobKind, params: BaseModel | Mapping[str, Any]) -> BaseModel:
    """Validate submission parameters for `kind`.

    Args:
        kind: The job kind being submitted.
        params: A params model instance or a mapping of field values.

    Returns:
        The validated params model.

    Raises:
        InvalidParamsError: Naming every missing or invalid field.
    """
    model = PARAMS_MODELS[kind]

    if isinstance(params, model):
        return params
    if isinstance(params, BaseModel):
        raise InvalidParamsError(
            f"Expected {model.__name__} for a {kind.value} job, got {type(params).__name__}",
            kind=kind.value,
        )

    try:
        return model.model_validate(dict(params))
    except ValidationError as e:
        fields = []
        problems = []
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"]) or "params"
            fields.append(field)
            problems.append(f"{field}: {err['msg']}")
        raise InvalidParamsError(
            f"Invalid {kind.value} parameters: " + "; ".join(problems),
            fields=fields,
            kind=kind.value,
            cause=e,
        )
