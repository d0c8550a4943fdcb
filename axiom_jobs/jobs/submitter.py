"""
Job submission.

Validates the parameters for a job kind, issues the single creation call and
returns the id the service assigned. Submission never waits for progress.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping

import httpx
from loguru import logger
from pydantic import BaseModel

from axiom_jobs.runtime import (
    ClientError,
    MalformedResponseError,
    NotFoundError,
    RejectedError,
    RunContext,
    Transport,
    decode_json,
)

from .kinds import DEFAULT_KINDS, KindRegistry
from .models import JobKind, ProofType
from .params import BuildParams, ProveParams, VerifyParams, validate_params


class JobSubmitter:
    """Creates build, prove and verify jobs."""

    def __init__(self, transport: Transport, kinds: KindRegistry | None = None):
        self._transport = transport
        self._kinds = kinds or DEFAULT_KINDS
        self._builders: dict[JobKind, Callable[[Any, RunContext], Awaitable[httpx.Response]]] = {
            JobKind.BUILD: self._submit_build,
            JobKind.PROVE: self._submit_prove,
            JobKind.VERIFY: self._submit_verify,
        }

    async def submit(
        self,
        kind: JobKind | str,
        params: BaseModel | Mapping[str, Any],
        context: RunContext | None = None,
    ) -> str:
        """Submit a job and return its id.

        Args:
            kind: Job kind to create.
            params: Params model or mapping for that kind.
            context: Optional RunContext for correlation ID propagation.

        Returns:
            The job id assigned by the service.

        Raises:
            InvalidParamsError: Params are missing or invalid; nothing is sent.
            RejectedError: The service refused the submission.
            MalformedResponseError: The response carries no job id.
        """
        spec = self._kinds.get(kind)
        validated = validate_params(spec.kind, params)
        ctx = context or RunContext.new(kind=spec.kind.value)

        try:
            response = await self._builders[spec.kind](validated, ctx)
        except NotFoundError:
            raise
        except ClientError as e:
            raise RejectedError(
                e.remote_message or f"status {e.status_code}",
                message_debug=e.message_debug,
                cause=e,
                kind=spec.kind.value,
            )

        body = decode_json(response, what=f"{spec.kind.value} submission response")
        job_id = body.get("id") if isinstance(body, dict) else None
        if not isinstance(job_id, str) or not job_id.strip():
            raise MalformedResponseError(
                f"Malformed {spec.kind.value} submission response: missing job id",
                message_debug=str(body)[:500],
                kind=spec.kind.value,
            )

        logger.info(f"[{ctx.label}] Submitted {spec.kind.value} job {job_id}")
        return job_id

    async def _submit_build(self, params: BuildParams, ctx: RunContext) -> httpx.Response:
        query = _query(
            config_id=params.config_id,
            project_id=params.project_id,
            project_name=params.project_name,
            bin_name=params.bin_name,
            program_name=params.program_name,
            default_num_gpus=params.default_num_gpus,
        )
        files = {"program": (params.filename, params.payload, "application/gzip")}
        return await self._transport.post("/programs", ctx, params=query, files=files)

    async def _submit_prove(self, params: ProveParams, ctx: RunContext) -> httpx.Response:
        query = _query(
            program_id=params.program_id,
            proof_type=params.proof_type.value,
            num_gpus=params.num_gpus,
            priority=params.priority,
        )
        return await self._transport.post("/proofs", ctx, params=query, json=params.input)

    async def _submit_verify(self, params: VerifyParams, ctx: RunContext) -> httpx.Response:
        files = {"proof": ("proof.json", params.cleaned_proof(), "application/json")}
        if params.proof_type is ProofType.STARK:
            path = "/verify/stark"
            query = _query(program_id=params.program_id)
        else:
            path = "/verify"
            query = _query(config_id=params.config_id)
        return await self._transport.post(path, ctx, params=query, files=files)


def _query(**values: Any) -> dict[str, str]:
    """Drop unset values and stringify the rest."""
    return {key: str(value) for key, value in values.items() if value is not None}
