"""
Writing downloaded artifacts.

The job client never touches the filesystem; these helpers are what the CLI
uses to put an Artifact somewhere. The default layout keeps every artifact of
a program under one directory:

    axiom-artifacts/program-{program_id}/artifacts/program.{ext}
    axiom-artifacts/program-{program_id}/artifacts/logs.txt
    axiom-artifacts/program-{program_id}/proofs/{proof_id}/{type}-proof.json
    axiom-artifacts/program-{program_id}/proofs/{proof_id}/logs.txt
"""

from __future__ import annotations

import os
import sys
from typing import BinaryIO

import aiofiles
import aiofiles.os

from axiom_jobs.jobs.models import Artifact, JobKind

LOGS_FILENAME = "logs.txt"


def default_artifact_path(artifact: Artifact, root: str = "axiom-artifacts") -> str:
    """Where `artifact` goes when the caller doesn't choose a path."""
    program_dir = os.path.join(root, f"program-{artifact.program_id or 'unknown'}")

    if artifact.kind is JobKind.BUILD:
        if artifact.artifact_type == "logs":
            filename = LOGS_FILENAME
        elif artifact.artifact_type == "source":
            filename = "program.tar.gz"
        else:
            filename = f"program.{artifact.artifact_type}"
        return os.path.join(program_dir, "artifacts", filename)

    proof_dir = os.path.join(program_dir, "proofs", artifact.job_id)
    if artifact.artifact_type == "logs":
        return os.path.join(proof_dir, LOGS_FILENAME)
    return os.path.join(proof_dir, f"{artifact.artifact_type}-proof.json")


async def save_artifact(artifact: Artifact, path: str) -> str:
    """Write the artifact bytes to `path`, creating parent directories.

    Returns:
        The path written.
    """
    parent = os.path.dirname(path)
    if parent:
        await aiofiles.os.makedirs(parent, exist_ok=True)

    async with aiofiles.open(path, "wb") as f:
        await f.write(artifact.content)
    return path


def write_stdout(artifact: Artifact, stream: BinaryIO | None = None) -> int:
    """Write the artifact bytes to stdout (or `stream`) unchanged.

    Returns:
        Number of bytes written.
    """
    out = stream or sys.stdout.buffer
    out.write(artifact.content)
    out.flush()
    return len(artifact.content)
