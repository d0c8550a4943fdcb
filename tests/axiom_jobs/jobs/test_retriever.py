"""Unit tests for ArtifactRetriever."""

import gzip
import json

import pytest

from axiom_jobs.jobs.models import ArtifactEncoding, JobRef
from axiom_jobs.jobs.poller import StatusPoller
from axiom_jobs.jobs.retriever import ArtifactRetriever, decode_artifact
from axiom_jobs.runtime.errors import (
    CorruptArtifactError,
    NotFoundError,
    NotReadyError,
    UnsupportedArtifactTypeError,
)
from tests.fakes import FakeTransport, bytes_response, json_response

PROOF = JobRef.of("prove", "pf-1")
BUILD = JobRef.of("build", "prg-1")
VERIFY = JobRef.of("verify", "vr-1")


def make_retriever(transport, download_timeout=None):
    return ArtifactRetriever(transport, StatusPoller(transport), download_timeout=download_timeout)


class TestDecodeArtifact:
    """Tests for per-encoding content checks."""

    def test_json(self):
        """JSON content is parsed."""
        assert decode_artifact(b'{"proof": "0x01"}', ArtifactEncoding.JSON) == {"proof": "0x01"}

    def test_invalid_json(self):
        """Truncated JSON is rejected."""
        with pytest.raises(ValueError):
            decode_artifact(b'{"proof": ', ArtifactEncoding.JSON)

    def test_binary_must_not_be_empty(self):
        """Empty binary content is rejected."""
        with pytest.raises(ValueError):
            decode_artifact(b"", ArtifactEncoding.BINARY)
        assert decode_artifact(b"\x00\x01", ArtifactEncoding.BINARY) is None

    def test_text(self):
        """Text must be UTF-8; empty logs are fine."""
        assert decode_artifact("línea".encode(), ArtifactEncoding.TEXT) == "línea"
        assert decode_artifact(b"", ArtifactEncoding.TEXT) == ""
        with pytest.raises(ValueError):
            decode_artifact(b"\xff\xfe\xfa", ArtifactEncoding.TEXT)

    def test_hex(self):
        """Hex content is normalized with a 0x prefix."""
        assert decode_artifact(b"0xABCD\n", ArtifactEncoding.HEX) == "0xabcd"
        with pytest.raises(ValueError):
            decode_artifact(b"0xzz", ArtifactEncoding.HEX)

    def test_hex_prefix_is_case_insensitive(self):
        """An uppercase 0X prefix is accepted."""
        assert decode_artifact(b"0XABcd", ArtifactEncoding.HEX) == "0xabcd"

    @pytest.mark.parametrize("content", [b"ab cd", b"0xab\ncd", b"0x", b"abc"])
    def test_hex_rejects_malformed(self, content):
        """Inner whitespace, a bare prefix and odd lengths are rejected."""
        with pytest.raises(ValueError):
            decode_artifact(content, ArtifactEncoding.HEX)

    def test_gzip(self):
        """Gzip content must carry the magic header."""
        assert decode_artifact(gzip.compress(b"src"), ArtifactEncoding.GZIP) is None
        with pytest.raises(ValueError):
            decode_artifact(b"plain tar", ArtifactEncoding.GZIP)


class TestDownload:
    """Tests for the download flow."""

    @pytest.mark.asyncio
    async def test_downloads_evm_proof(self):
        """A succeeded prove job yields a validated JSON artifact."""
        proof = {"proof": "0xdead", "public_values": "0x01"}
        transport = (
            FakeTransport()
            .add("GET", "/proofs/pf-1", json_response({"state": "Succeeded", "program_uuid": "prg-1"}))
            .add("GET", "/proofs/pf-1/proof/evm", bytes_response(json.dumps(proof).encode(), "application/json"))
        )

        artifact = await make_retriever(transport).download(PROOF, "evm")

        assert artifact.artifact_type == "evm"
        assert artifact.encoding is ArtifactEncoding.JSON
        assert artifact.metadata == proof
        assert artifact.program_id == "prg-1"
        assert artifact.media_type == "application/json"

    @pytest.mark.asyncio
    async def test_downloads_build_logs(self):
        """Logs come from the logs endpoint as text."""
        transport = (
            FakeTransport()
            .add("GET", "/programs/prg-1", json_response({"status": "ready"}))
            .add("GET", "/programs/prg-1/logs", bytes_response(b"compiling...\n", "text/plain"))
        )

        artifact = await make_retriever(transport).download(BUILD, "logs")

        assert artifact.metadata == "compiling...\n"
        assert artifact.program_id == "prg-1"

    @pytest.mark.asyncio
    async def test_passes_download_timeout(self):
        """Downloads use the longer download timeout."""
        transport = (
            FakeTransport()
            .add("GET", "/programs/prg-1", json_response({"status": "ready"}))
            .add("GET", "/programs/prg-1/download/elf", bytes_response(b"\x7fELF"))
        )

        await make_retriever(transport, download_timeout=600.0).download(BUILD, "elf")

        assert transport.calls_to("GET", "/programs/prg-1/download/elf")[0]["timeout"] == 600.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", ["Queued", "InProgress", "Failed", "Canceled"])
    @pytest.mark.parametrize("artifact_type", ["stark", "root", "evm", "logs"])
    async def test_not_ready_before_success(self, state, artifact_type):
        """Every artifact type is unavailable until the job succeeds."""
        transport = FakeTransport().add("GET", "/proofs/pf-1", json_response({"state": state}))

        with pytest.raises(NotReadyError):
            await make_retriever(transport).download(PROOF, artifact_type)

        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_unsupported_type_makes_no_request(self):
        """A type the kind doesn't produce fails before any network call."""
        transport = FakeTransport()

        with pytest.raises(UnsupportedArtifactTypeError):
            await make_retriever(transport).download(PROOF, "elf")

        with pytest.raises(UnsupportedArtifactTypeError):
            await make_retriever(transport).download(VERIFY, "evm")

        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_corrupt_artifact(self):
        """Content that doesn't match the encoding is corrupt."""
        transport = (
            FakeTransport()
            .add("GET", "/proofs/pf-1", json_response({"state": "Succeeded"}))
            .add("GET", "/proofs/pf-1/proof/evm", bytes_response(b"<html>oops</html>"))
        )

        with pytest.raises(CorruptArtifactError) as exc_info:
            await make_retriever(transport).download(PROOF, "evm")

        assert exc_info.value.job_id == "pf-1"

    @pytest.mark.asyncio
    async def test_empty_binary_is_corrupt(self):
        """An empty STARK proof is corrupt."""
        transport = (
            FakeTransport()
            .add("GET", "/proofs/pf-1", json_response({"state": "Succeeded"}))
            .add("GET", "/proofs/pf-1/proof/stark", bytes_response(b""))
        )

        with pytest.raises(CorruptArtifactError):
            await make_retriever(transport).download(PROOF, "stark")

    @pytest.mark.asyncio
    async def test_unknown_job(self):
        """An unknown id surfaces NotFoundError from the status check."""
        transport = FakeTransport().add("GET", "/proofs/pf-1", NotFoundError())

        with pytest.raises(NotFoundError):
            await make_retriever(transport).download(PROOF, "evm")
