"""
Command-line interface for axiom-jobs.

Usage:
    axiom-jobs build submit ./my-program --wait
    axiom-jobs prove submit --program-id prg-1 --input 0x01aa
    axiom-jobs prove status pf-7 --wait --timeout 1800
    axiom-jobs prove download pf-7 --type evm --output proof.json
    axiom-jobs verify submit evm-proof.json
    axiom-jobs prove cancel pf-7 --wait
    axiom-jobs prove list --program-id prg-1
    axiom-jobs build download prg-1 --type all

Results are printed to stdout as JSON; logs and errors go to stderr. The
exit status tells scripts what happened without parsing output.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from loguru import logger

from axiom_jobs import __version__
from axiom_jobs.config import Settings, settings
from axiom_jobs.jobs import (
    ALL_ARTIFACTS,
    DEFAULT_KINDS,
    JobKind,
    JobLifecycleClient,
    JobStatus,
    ProofType,
)
from axiom_jobs.logging import setup_logging
from axiom_jobs.payloads import load_input, load_payload, load_proof
from axiom_jobs.runtime import (
    AbortedError,
    CancellationToken,
    ErrorCode,
    InvalidParamsError,
    ServiceError,
)
from axiom_jobs.sinks import default_artifact_path, save_artifact, write_stdout

EXIT_OK = 0
EXIT_ABORTED = 130

EXIT_CODES = {
    ErrorCode.JOB_FAILED: 1,
    ErrorCode.INVALID_PARAMS: 2,
    ErrorCode.UNAUTHENTICATED: 3,
    ErrorCode.NOT_FOUND: 4,
    ErrorCode.REJECTED: 5,
    ErrorCode.CLIENT_ERROR: 5,
    ErrorCode.NETWORK: 6,
    ErrorCode.SERVER_ERROR: 6,
    ErrorCode.MALFORMED: 6,
    ErrorCode.NOT_READY: 7,
    ErrorCode.UNSUPPORTED_ARTIFACT_TYPE: 8,
    ErrorCode.CORRUPT_ARTIFACT: 9,
    ErrorCode.TIMED_OUT: 10,
    ErrorCode.ABORTED: EXIT_ABORTED,
}


def exit_code_for(error: ServiceError) -> int:
    """Process exit status for a failed command."""
    return EXIT_CODES.get(error.code, 1)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _status_json(status: JobStatus) -> dict[str, Any]:
    return status.model_dump(mode="json")


def _log_status(status: JobStatus) -> None:
    logger.info(f"[{status.job_id}] {status.kind.value} job is {status.state}")


def _add_wait_options(parser: argparse.ArgumentParser, wait_help: str = "Wait for the job to finish") -> None:
    parser.add_argument("--wait", action="store_true", help=wait_help)
    parser.add_argument("--timeout", type=float, default=None, help="Give up waiting after S seconds")
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Initial delay between status checks (defaults to settings.POLL_INTERVAL)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="axiom-jobs",
        description="Submit and track build, prove and verify jobs",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--api-url", default=None, help="Override AXIOM_API_URL")
    parser.add_argument("--api-key", default=None, help="Override AXIOM_API_KEY")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")

    kinds = parser.add_subparsers(dest="kind", required=True)
    for kind in JobKind:
        kind_parser = kinds.add_parser(kind.value, help=f"{kind.value.capitalize()} jobs")
        actions = kind_parser.add_subparsers(dest="action", required=True)

        submit = actions.add_parser("submit", help=f"Submit a {kind.value} job")
        _add_submit_options(kind, submit)
        _add_wait_options(submit)
        submit.set_defaults(handler=cmd_submit)

        status = actions.add_parser("status", help="Show job status")
        status.add_argument("job_id")
        _add_wait_options(status)
        status.set_defaults(handler=cmd_status)

        download = actions.add_parser("download", help="Download a job artifact")
        download.add_argument("job_id")
        download.add_argument(
            "--type",
            dest="artifact_type",
            required=True,
            help=f"Artifact type, or '{ALL_ARTIFACTS}' for every build output",
        )
        download.add_argument(
            "--output",
            default=None,
            help="File to write, or '-' for stdout (defaults to the artifacts directory). "
            f"With --type {ALL_ARTIFACTS}, the directory to write into",
        )
        download.set_defaults(handler=cmd_download)

        cancel = actions.add_parser("cancel", help="Ask the service to cancel the job")
        cancel.add_argument("job_id")
        _add_wait_options(cancel, wait_help="Wait until the service reports the job cancelled")
        cancel.set_defaults(handler=cmd_cancel)

        if DEFAULT_KINDS.get(kind).list_path is not None:
            listing = actions.add_parser("list", help=f"List a program's {kind.value} jobs")
            listing.add_argument("--program-id", required=True)
            listing.set_defaults(handler=cmd_list)

    return parser


def _add_submit_options(kind: JobKind, parser: argparse.ArgumentParser) -> None:
    if kind is JobKind.BUILD:
        parser.add_argument("path", help="Project directory or source archive (tar.gz)")
        parser.add_argument("--config-id", default=None)
        parser.add_argument("--project-id", default=None)
        parser.add_argument("--project-name", default=None)
        parser.add_argument("--bin-name", default=None)
        parser.add_argument("--program-name", default=None)
        parser.add_argument("--default-num-gpus", type=int, default=None)
        parser.add_argument(
            "--exclude",
            action="append",
            default=[],
            help="File or directory name to leave out of the archive (repeatable)",
        )
    elif kind is JobKind.PROVE:
        parser.add_argument("--program-id", required=True)
        parser.add_argument(
            "--input", default=None, help="Hex input or path to an input JSON file (empty input if omitted)"
        )
        parser.add_argument(
            "--type", dest="proof_type", choices=[t.value for t in ProofType], default=ProofType.STARK.value
        )
        parser.add_argument("--num-gpus", type=int, default=None)
        parser.add_argument("--priority", type=int, default=None)
    else:
        parser.add_argument("proof", help="Path to the proof file")
        parser.add_argument(
            "--type", dest="proof_type", choices=[t.value for t in ProofType], default=ProofType.EVM.value
        )
        parser.add_argument("--config-id", default=None)
        parser.add_argument("--program-id", default=None)


async def _submit_params(kind: JobKind, args: argparse.Namespace, config: Settings) -> dict[str, Any]:
    if kind is JobKind.BUILD:
        payload, filename = await load_payload(args.path, exclude=args.exclude)
        return {
            "payload": payload,
            "filename": filename,
            "config_id": args.config_id or config.AXIOM_CONFIG_ID,
            "project_id": args.project_id,
            "project_name": args.project_name,
            "bin_name": args.bin_name,
            "program_name": args.program_name,
            "default_num_gpus": args.default_num_gpus,
        }
    if kind is JobKind.PROVE:
        params: dict[str, Any] = {
            "program_id": args.program_id,
            "proof_type": args.proof_type,
            "num_gpus": args.num_gpus,
            "priority": args.priority,
        }
        if args.input is not None:
            params["input"] = await load_input(args.input)
        return params
    return {
        "proof": await load_proof(args.proof),
        "proof_type": args.proof_type,
        "config_id": args.config_id or config.AXIOM_CONFIG_ID,
        "program_id": args.program_id,
    }


async def cmd_submit(client: JobLifecycleClient, args: argparse.Namespace, token: CancellationToken) -> int:
    kind = JobKind(args.kind)
    params = await _submit_params(kind, args, client.settings)
    ref = await client.submit(kind, params)

    if not args.wait:
        _print_json({"kind": ref.kind.value, "job_id": ref.job_id})
        return EXIT_OK

    status = await client.wait(
        ref.kind,
        ref.job_id,
        timeout=args.timeout,
        poll_interval=args.poll_interval,
        cancel_token=token,
        on_status=_log_status,
    )
    _print_json(_status_json(status))
    status.raise_for_status()
    return EXIT_OK


async def cmd_status(client: JobLifecycleClient, args: argparse.Namespace, token: CancellationToken) -> int:
    if not args.wait:
        _print_json(_status_json(await client.status(args.kind, args.job_id)))
        return EXIT_OK

    status = await client.wait(
        args.kind,
        args.job_id,
        timeout=args.timeout,
        poll_interval=args.poll_interval,
        cancel_token=token,
        on_status=_log_status,
    )
    _print_json(_status_json(status))
    status.raise_for_status()
    return EXIT_OK


async def cmd_download(client: JobLifecycleClient, args: argparse.Namespace, token: CancellationToken) -> int:
    if args.artifact_type.lower() == ALL_ARTIFACTS:
        return await _download_all(client, args)

    artifact = await client.download(args.kind, args.job_id, args.artifact_type)

    if args.output == "-":
        write_stdout(artifact)
        return EXIT_OK

    path = args.output or default_artifact_path(artifact, client.settings.ARTIFACTS_DIR)
    await save_artifact(artifact, path)
    logger.info(f"Saved {artifact.artifact_type} artifact to {path}")
    _print_json({**artifact.summary(), "path": path})
    return EXIT_OK


async def _download_all(client: JobLifecycleClient, args: argparse.Namespace) -> int:
    if args.output == "-":
        raise InvalidParamsError(
            "Several artifacts can't be written to stdout",
            fields=["output"],
            job_id=args.job_id,
            kind=args.kind,
        )

    root = args.output or client.settings.ARTIFACTS_DIR
    saved = []
    for artifact in await client.download_all(args.kind, args.job_id):
        path = await save_artifact(artifact, default_artifact_path(artifact, root))
        logger.info(f"Saved {artifact.artifact_type} artifact to {path}")
        saved.append({**artifact.summary(), "path": path})
    _print_json(saved)
    return EXIT_OK


async def cmd_cancel(client: JobLifecycleClient, args: argparse.Namespace, token: CancellationToken) -> int:
    message = await client.cancel(args.kind, args.job_id)
    result: dict[str, Any] = {"kind": args.kind, "job_id": args.job_id, "message": message}
    if args.wait:
        status = await client.wait_cancelled(
            args.kind,
            args.job_id,
            timeout=args.timeout,
            poll_interval=args.poll_interval,
            cancel_token=token,
            on_status=_log_status,
        )
        result["status"] = _status_json(status)
    _print_json(result)
    return EXIT_OK


async def cmd_list(client: JobLifecycleClient, args: argparse.Namespace, token: CancellationToken) -> int:
    statuses = await client.list_jobs(args.kind, args.program_id)
    _print_json([_status_json(status) for status in statuses])
    return EXIT_OK


def _settings_for(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.api_url:
        overrides["AXIOM_API_URL"] = args.api_url
    if args.api_key:
        overrides["AXIOM_API_KEY"] = args.api_key
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level
    return settings.model_copy(update=overrides) if overrides else settings


async def _run(args: argparse.Namespace, config: Settings, **client_options: Any) -> int:
    token = CancellationToken()
    token.install_signal_handlers(task=asyncio.current_task())

    try:
        async with JobLifecycleClient(settings=config, **client_options) as client:
            return await args.handler(client, args, token)
    except asyncio.CancelledError:
        if not token.cancelled:
            raise
        raise AbortedError(
            token.reason or "Interrupted", job_id=getattr(args, "job_id", None), kind=args.kind
        )


def main(argv: list[str] | None = None, **client_options: Any) -> int:
    """Entry point for the `axiom-jobs` script.

    Args:
        argv: Arguments to parse. Uses sys.argv if None.
        **client_options: Passed to JobLifecycleClient (used by tests).

    Returns:
        The process exit status.
    """
    args = build_parser().parse_args(argv)
    config = _settings_for(args)
    setup_logging(config.LOG_LEVEL)

    try:
        return asyncio.run(_run(args, config, **client_options))
    except ServiceError as e:
        logger.error(str(e))
        print(json.dumps({"error": e.to_dict()}), file=sys.stderr)
        return exit_code_for(e)
    except KeyboardInterrupt:
        return EXIT_ABORTED


if __name__ == "__main__":
    sys.exit(main())
