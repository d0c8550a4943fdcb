"""
Loading job payloads from disk.

Build jobs upload a gzipped tarball of the program source. A directory is
packed in memory; an existing archive is uploaded as-is. Prove input and
verify proofs are read from files or taken literally.
"""

from __future__ import annotations

import asyncio
import io
import json
import os
import tarfile
from typing import Any, Iterable

import aiofiles

from axiom_jobs.jobs.inputs import is_hex_input
from axiom_jobs.runtime import InvalidParamsError

ARCHIVE_NAME = "program.tar.gz"

# Never packed into a build upload
DEFAULT_EXCLUDES = ("target", "openvm", ARCHIVE_NAME)


def _excluded(name: str, excludes: Iterable[str]) -> bool:
    return name.startswith(".") or name in excludes


def pack_directory(root: str, exclude: Iterable[str] = ()) -> bytes:
    """Pack `root` into a gzipped tarball, skipping hidden and build entries.

    Args:
        root: Project directory.
        exclude: Extra file or directory names to leave out.

    Returns:
        The archive bytes. Paths inside are relative to `root`.
    """
    excludes = set(DEFAULT_EXCLUDES) | set(exclude)
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if not _excluded(d, excludes))
            for filename in sorted(filenames):
                if _excluded(filename, excludes):
                    continue
                full_path = os.path.join(dirpath, filename)
                tar.add(full_path, arcname=os.path.relpath(full_path, root))
    return buffer.getvalue()


async def _read_bytes(path: str) -> bytes:
    async with aiofiles.open(path, "rb") as f:
        return await f.read()


async def load_payload(path: str, exclude: Iterable[str] = ()) -> tuple[bytes, str]:
    """Load a build payload from an archive file or a project directory.

    Returns:
        `(content, filename)` ready for the `program` upload field.

    Raises:
        InvalidParamsError: If `path` doesn't exist or packs to nothing.
    """
    if os.path.isdir(path):
        content = await asyncio.to_thread(pack_directory, path, exclude)
        filename = ARCHIVE_NAME
    elif os.path.isfile(path):
        content = await _read_bytes(path)
        filename = os.path.basename(path)
    else:
        raise InvalidParamsError(f"Program path not found: {path}", fields=["payload"], kind="build")

    if not content:
        raise InvalidParamsError(f"Program payload is empty: {path}", fields=["payload"], kind="build")
    return content, filename


async def load_input(value: str) -> Any:
    """Resolve prove input given on the command line.

    A valid hex item is used as-is; anything else must be a path to a JSON
    file holding `{"input": [...]}` or a list of hex strings.

    Raises:
        InvalidParamsError: The value is neither hex nor a readable JSON file.
    """
    if is_hex_input(value):
        return value

    if not os.path.isfile(value):
        raise InvalidParamsError(
            f"Input must be a hex string starting with 01 or 02, or a JSON file path: {value}",
            fields=["input"],
            kind="prove",
        )

    async with aiofiles.open(value, "r") as f:
        text = await f.read()
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidParamsError(
            f"Input file is not valid JSON: {e}",
            fields=["input"],
            kind="prove",
            cause=e,
        )


async def load_proof(path: str) -> bytes:
    """Read a proof file for verification.

    Raises:
        InvalidParamsError: If the file doesn't exist.
    """
    if not os.path.isfile(path):
        raise InvalidParamsError(f"Proof file not found: {path}", fields=["proof"], kind="verify")
    return await _read_bytes(path)
