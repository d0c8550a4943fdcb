"""
Artifact download and validation.

The retriever re-checks the job status on every call rather than trusting
a status the caller may have seen earlier, then downloads the artifact and
checks that its bytes match the artifact type's encoding.
"""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from axiom_jobs.runtime import (
    CorruptArtifactError,
    NotReadyError,
    RunContext,
    Transport,
)

from .kinds import DEFAULT_KINDS, KindRegistry
from .models import Artifact, ArtifactEncoding, JobRef
from .poller import StatusPoller

GZIP_MAGIC = b"\x1f\x8b"

MEDIA_TYPES = {
    ArtifactEncoding.JSON: "application/json",
    ArtifactEncoding.BINARY: "application/octet-stream",
    ArtifactEncoding.TEXT: "text/plain",
    ArtifactEncoding.HEX: "text/plain",
    ArtifactEncoding.GZIP: "application/gzip",
}


def decode_artifact(content: bytes, encoding: ArtifactEncoding) -> Any:
    """Check `content` against `encoding` and return its decoded form.

    Returns:
        Parsed JSON, decoded text, the normalized hex string, or None for
        binary and gzip content.

    Raises:
        ValueError: If the content doesn't match the encoding.
    """
    if encoding is ArtifactEncoding.JSON:
        return json.loads(content)

    if encoding is ArtifactEncoding.TEXT:
        return content.decode("utf-8")

    if encoding is ArtifactEncoding.HEX:
        text = content.decode("ascii").strip()
        digits = text[2:] if text[:2].lower() == "0x" else text
        if not digits:
            raise ValueError("empty hex value")
        if any(c.isspace() for c in digits):
            raise ValueError("hex value contains whitespace")
        try:
            raw = bytes.fromhex(digits)
        except ValueError:
            raise ValueError("not a hex string")
        return "0x" + raw.hex()

    if not content:
        raise ValueError("empty content")

    if encoding is ArtifactEncoding.GZIP and not content.startswith(GZIP_MAGIC):
        raise ValueError("missing gzip header")

    return None


class ArtifactRetriever:
    """Downloads the artifacts of successful jobs."""

    def __init__(
        self,
        transport: Transport,
        poller: StatusPoller,
        kinds: KindRegistry | None = None,
        download_timeout: float | None = None,
    ):
        self._transport = transport
        self._poller = poller
        self._kinds = kinds or DEFAULT_KINDS
        self.download_timeout = download_timeout

    async def download(
        self,
        ref: JobRef,
        artifact_type: Any,
        context: RunContext | None = None,
    ) -> Artifact:
        """Download one artifact of a finished job.

        Args:
            ref: The job whose artifact to fetch.
            artifact_type: One of the kind's artifact types (enum or string).
            context: Optional RunContext for correlation ID propagation.

        Returns:
            The validated artifact. Nothing is written to disk.

        Raises:
            UnsupportedArtifactTypeError: The kind doesn't produce this
                artifact; no request is sent.
            NotReadyError: The job hasn't succeeded.
            CorruptArtifactError: The content doesn't match its encoding.
        """
        spec = self._kinds.get(ref.kind)
        resolved = spec.parse_artifact_type(artifact_type, job_id=ref.job_id)
        ctx = context or RunContext.for_job(ref)

        status = await self._poller.fetch_status(ref, ctx)
        if not status.succeeded:
            raise NotReadyError(status.phase.value, job_id=ref.job_id, kind=ref.kind.value)

        kwargs: dict[str, Any] = {}
        if self.download_timeout is not None:
            kwargs["timeout"] = self.download_timeout
        response = await self._transport.get(spec.artifact_url(ref.job_id, resolved), ctx, **kwargs)

        encoding = spec.encoding_for(resolved)
        content = response.content
        try:
            metadata = decode_artifact(content, encoding)
        except ValueError as e:
            raise CorruptArtifactError(
                f"{resolved.value} artifact is not valid {encoding.value}: {e}",
                cause=e,
                job_id=ref.job_id,
                kind=ref.kind.value,
            )

        logger.info(f"[{ctx.label}] Downloaded {resolved.value} artifact ({len(content)} bytes)")
        return Artifact(
            job_id=ref.job_id,
            kind=ref.kind,
            artifact_type=resolved.value,
            encoding=encoding,
            content=content,
            media_type=response.headers.get("content-type") or MEDIA_TYPES[encoding],
            program_id=status.program_id,
            metadata=metadata,
        )
