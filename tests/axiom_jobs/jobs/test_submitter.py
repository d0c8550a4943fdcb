"""Unit tests for JobSubmitter."""

import json

import pytest

from axiom_jobs.jobs.models import JobKind
from axiom_jobs.jobs.submitter import JobSubmitter
from axiom_jobs.runtime.errors import (
    ClientError,
    InvalidParamsError,
    MalformedResponseError,
    NotFoundError,
    RejectedError,
    ServerError,
)
from tests.fakes import FakeTransport, json_response

EVM_PROOF = json.dumps({"proof": "0xdeadbeef"}).encode()


class TestSubmitBuild:
    """Tests for build submissions."""

    @pytest.mark.asyncio
    async def test_uploads_program(self):
        """Should post the archive as multipart with query params."""
        transport = FakeTransport().add("POST", "/programs", json_response({"id": "prg-1"}))
        submitter = JobSubmitter(transport)

        job_id = await submitter.submit(
            JobKind.BUILD,
            {"payload": b"\x1f\x8barchive", "config_id": "cfg-1", "bin_name": "app"},
        )

        assert job_id == "prg-1"
        call = transport.calls[0]
        assert call["params"] == {"config_id": "cfg-1", "bin_name": "app"}
        assert call["files"]["program"][0] == "program.tar.gz"
        assert call["files"]["program"][1] == b"\x1f\x8barchive"

    @pytest.mark.asyncio
    async def test_invalid_params_send_nothing(self):
        """Validation failures should not reach the network."""
        transport = FakeTransport()
        submitter = JobSubmitter(transport)

        with pytest.raises(InvalidParamsError):
            await submitter.submit("build", {})

        assert transport.calls == []


class TestSubmitProve:
    """Tests for prove submissions."""

    @pytest.mark.asyncio
    async def test_posts_input_json(self):
        """Should send the encoded input and proof options."""
        transport = FakeTransport().add("POST", "/proofs", json_response({"id": "pf-1"}))
        submitter = JobSubmitter(transport)

        job_id = await submitter.submit(
            "prove",
            {"program_id": "prg-1", "input": "01aa", "proof_type": "evm", "num_gpus": 4},
        )

        assert job_id == "pf-1"
        call = transport.calls[0]
        assert call["params"] == {"program_id": "prg-1", "proof_type": "evm", "num_gpus": "4"}
        assert call["json"] == {"input": ["0x01aa"]}
        assert call["context"].kind == "prove"

    @pytest.mark.asyncio
    async def test_client_error_is_rejection(self):
        """A 4xx on submit means the service refused the job."""
        transport = FakeTransport().add("POST", "/proofs", ClientError(400, "quota exceeded"))
        submitter = JobSubmitter(transport)

        with pytest.raises(RejectedError) as exc_info:
            await submitter.submit("prove", {"program_id": "prg-1", "input": "01aa"})

        assert exc_info.value.reason == "quota exceeded"
        assert exc_info.value.kind == "prove"

    @pytest.mark.asyncio
    async def test_not_found_propagates(self):
        """An unknown program is reported as not found."""
        transport = FakeTransport().add("POST", "/proofs", NotFoundError("Program not found"))
        submitter = JobSubmitter(transport)

        with pytest.raises(NotFoundError):
            await submitter.submit("prove", {"program_id": "prg-x", "input": "01aa"})

    @pytest.mark.asyncio
    async def test_server_error_propagates(self):
        """Transport errors other than 4xx pass through."""
        transport = FakeTransport().add("POST", "/proofs", ServerError(503))
        submitter = JobSubmitter(transport)

        with pytest.raises(ServerError):
            await submitter.submit("prove", {"program_id": "prg-1", "input": "01aa"})

    @pytest.mark.asyncio
    async def test_missing_id_is_malformed(self):
        """A success body without an id is malformed."""
        transport = FakeTransport().add("POST", "/proofs", json_response({"status": "ok"}))
        submitter = JobSubmitter(transport)

        with pytest.raises(MalformedResponseError):
            await submitter.submit("prove", {"program_id": "prg-1", "input": "01aa"})


class TestSubmitVerify:
    """Tests for verify submissions."""

    @pytest.mark.asyncio
    async def test_evm_proof(self):
        """EVM proofs go to /verify with the config id."""
        transport = FakeTransport().add("POST", "/verify", json_response({"id": "vr-1"}))
        submitter = JobSubmitter(transport)

        job_id = await submitter.submit("verify", {"proof": EVM_PROOF, "config_id": "cfg-1"})

        assert job_id == "vr-1"
        call = transport.calls[0]
        assert call["params"] == {"config_id": "cfg-1"}
        filename, content, media_type = call["files"]["proof"]
        assert filename == "proof.json"
        assert media_type == "application/json"
        assert content == b'{"proof": "deadbeef"}'

    @pytest.mark.asyncio
    async def test_stark_proof(self):
        """STARK proofs go to /verify/stark with the program id."""
        transport = FakeTransport().add("POST", "/verify/stark", json_response({"id": "vr-2"}))
        submitter = JobSubmitter(transport)

        job_id = await submitter.submit(
            "verify", {"proof": b"\x00\x01", "proof_type": "stark", "program_id": "prg-1"}
        )

        assert job_id == "vr-2"
        assert transport.calls[0]["params"] == {"program_id": "prg-1"}
