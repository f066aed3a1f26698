"""CLI entry point for the Magic Pod API client."""

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

import aiohttp

from magicpod_api_client.client import (
    DownloadType,
    FileIndexType,
    FileNameBodyType,
    MagicPodClient,
)
from magicpod_api_client.config import DEFAULT_URL_BASE, ClientConfig
from magicpod_api_client.errors import MagicPodError
from magicpod_api_client.models.result import EXIT_ERROR, BatchRunOutcome
from magicpod_api_client.orchestrator import BatchRunOrchestrator

log = logging.getLogger("magicpod_api_client")

VERSION = "0.1.0"


def parse_http_headers(value: str) -> Mapping[str, str]:
    """Parse extra HTTP headers given as a JSON object."""
    if not value.strip():
        return {}
    try:
        headers = json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"invalid JSON: {e}") from e
    if not isinstance(headers, dict):
        raise argparse.ArgumentTypeError("HTTP headers must be a JSON object")
    return {str(k): str(v) for k, v in headers.items()}


async def run_batch_run(
    config: ClientConfig,
    test_settings_number: int,
    setting: str,
    *,
    wait_for_result: bool = True,
    wait_limit: int = 0,
) -> int:
    """Start batch run(s), wait for them and return the exit code."""
    async with MagicPodClient.from_config(config) as client:
        orchestrator = BatchRunOrchestrator(client=client)
        outcome = await orchestrator.execute(
            test_settings_number,
            setting,
            wait_for_result=wait_for_result,
            wait_limit=wait_limit,
        )

    log_outcome(outcome)
    return outcome.exit_code


def log_outcome(outcome: BatchRunOutcome) -> None:
    """Log a one-line summary of the outcome."""
    if outcome.has_error:
        log.error("Batch run finished with errors")
    elif outcome.has_unresolved:
        log.warning("Batch run finished with unresolved test cases")
    else:
        log.info("Batch run finished successfully")


async def run_upload_app(config: ClientConfig, app_path: Path) -> int:
    """Upload an app file and print its file number."""
    async with MagicPodClient.from_config(config) as client:
        file_no = await client.upload_file(app_path)
    print(file_no)
    return 0


async def run_delete_app(config: ClientConfig, app_file_number: int) -> int:
    """Delete an uploaded app file."""
    async with MagicPodClient.from_config(config) as client:
        await client.delete_file(app_file_number)
    return 0


async def run_latest_batch_run_no(config: ClientConfig) -> int:
    """Print the number of the latest batch run."""
    async with MagicPodClient.from_config(config) as client:
        batch_run_number = await client.latest_batch_run_number()
    print(batch_run_number)
    return 0


async def run_get_screenshots(
    config: ClientConfig,
    batch_run_number: int,
    download_path: Path,
    *,
    file_index_type: FileIndexType,
    file_name_body_type: FileNameBodyType,
    download_type: DownloadType,
    mask_dynamically_changed_area: bool,
) -> int:
    """Download screenshots of a batch run, the latest one if number is 0."""
    async with MagicPodClient.from_config(config) as client:
        if batch_run_number == 0:
            batch_run_number = await client.latest_batch_run_number()
        await client.download_screenshots(
            batch_run_number,
            download_path,
            file_index_type=file_index_type,
            file_name_body_type=file_name_body_type,
            download_type=download_type,
            mask_dynamically_changed_area=mask_dynamically_changed_area,
        )
    print(f"screenshots of batch run #{batch_run_number} saved to {download_path}")
    return 0


async def run(args: argparse.Namespace) -> int:
    """Run the selected command and return exit code."""
    config = ClientConfig(
        token=args.token,
        organization=args.organization,
        project=args.project,
        url_base=args.url_base,
        http_headers=args.http_headers,
    )

    try:
        match args.command:
            case "batch-run":
                return await run_batch_run(
                    config,
                    args.test_settings_number,
                    args.setting,
                    wait_for_result=not args.no_wait,
                    wait_limit=args.wait_limit,
                )
            case "upload-app":
                return await run_upload_app(config, args.app_path)
            case "delete-app":
                return await run_delete_app(config, args.app_file_number)
            case "latest-batch-run-no":
                return await run_latest_batch_run_no(config)
            case "get-screenshots":
                return await run_get_screenshots(
                    config,
                    args.batch_run_number,
                    args.download_path,
                    file_index_type=args.file_index_type,
                    file_name_body_type=args.file_name_body_type,
                    download_type=args.download_type,
                    mask_dynamically_changed_area=args.mask_dynamically_changed_area,
                )
            case _:  # pragma: no cover
                raise ValueError(f"Unknown command: {args.command}")
    except MagicPodError as e:
        log.error("%s", e)
        return e.exit_code
    except (aiohttp.ClientError, TimeoutError) as e:
        log.error("Request to Magic Pod failed: %r", e)
        return EXIT_ERROR


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add credentials and project options shared by every command."""
    parser.add_argument(
        "-t",
        "--token",
        default=os.environ.get("MAGIC_POD_API_TOKEN", ""),
        help="API token. You can get the value from "
        "https://magic-pod.com/accounts/api-token/",
    )
    parser.add_argument(
        "-o",
        "--organization",
        default=os.environ.get("MAGIC_POD_ORGANIZATION", ""),
        help='Organization name. (Not "organization display name", be careful!)',
    )
    parser.add_argument(
        "-p",
        "--project",
        default=os.environ.get("MAGIC_POD_PROJECT", ""),
        help='Project name. (Not "project display name", be careful!)',
    )
    parser.add_argument(
        "--http_headers",
        type=parse_http_headers,
        default={},
        help="Additional HTTP headers in JSON format",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one sub-command per API operation."""
    parser = argparse.ArgumentParser(
        prog="magicpod-api-client",
        description="Simple and useful wrapper for Magic Pod Web API",
    )
    parser.add_argument("--version", action="version", version=VERSION)
    parser.add_argument("--url-base", default=DEFAULT_URL_BASE, help=argparse.SUPPRESS)
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    batch_run = subparsers.add_parser("batch-run", help="Run batch test")
    add_common_arguments(batch_run)
    batch_run.add_argument(
        "-S",
        "--test_settings_number",
        type=int,
        default=0,
        help="Test setting number defined in the project batch run page",
    )
    batch_run.add_argument(
        "-s", "--setting", default="", help="Test setting in JSON format"
    )
    batch_run.add_argument(
        "-n",
        "--no_wait",
        action="store_true",
        help="Return immediately without waiting the batch run to be finished",
    )
    batch_run.add_argument(
        "-w",
        "--wait_limit",
        type=int,
        default=0,
        help="Wait limit in seconds. If 0 is specified, "
        "the value is test count x 10 minutes",
    )

    upload_app = subparsers.add_parser("upload-app", help="Upload app/ipa/apk file")
    add_common_arguments(upload_app)
    upload_app.add_argument(
        "-a", "--app_path", type=Path, required=True, help="Path to the app file"
    )

    delete_app = subparsers.add_parser("delete-app", help="Delete uploaded app file")
    add_common_arguments(delete_app)
    delete_app.add_argument(
        "-a",
        "--app_file_number",
        type=int,
        required=True,
        help="File number of the uploaded app",
    )

    latest = subparsers.add_parser(
        "latest-batch-run-no", help="Get the latest batch run number"
    )
    add_common_arguments(latest)

    screenshots = subparsers.add_parser(
        "get-screenshots", help="Download screenshots of a batch run"
    )
    add_common_arguments(screenshots)
    screenshots.add_argument(
        "-b",
        "--batch_run_number",
        type=int,
        default=0,
        help="Batch run number. If 0 is specified, the latest batch run is used",
    )
    screenshots.add_argument(
        "-d",
        "--download_path",
        type=Path,
        default=Path("screenshots.zip"),
        help="Path of the zip file to write",
    )
    screenshots.add_argument(
        "--file_index_type",
        choices=["line_number", "auto_increment"],
        default="line_number",
    )
    screenshots.add_argument(
        "--file_name_body_type",
        choices=["none", "screenshot_name"],
        default="screenshot_name",
    )
    screenshots.add_argument(
        "--download_type", choices=["all", "last_run"], default="all"
    )
    screenshots.add_argument(
        "--mask_dynamically_changed_area", action="store_true"
    )

    return parser


def validate_arguments(
    parser: argparse.ArgumentParser, args: argparse.Namespace
) -> None:
    """Fail like a missing required option when env defaults are empty too."""
    if not args.url_base:
        parser.error("url-base argument cannot be empty")
    for name in ("token", "organization", "project"):
        if not getattr(args, name):
            parser.error(f"--{name} option is required")
    if args.command == "batch-run" and args.wait_limit < 0:
        parser.error("--wait_limit must not be negative")


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    validate_arguments(parser, args)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(run(args))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
