"""Integration tests for the CLI against mocked API responses."""

from functools import partial
from unittest.mock import AsyncMock, patch

import pytest
from aioresponses import aioresponses as aioresponses_cls

from magicpod_api_client.cli import main
from magicpod_api_client.orchestrator import BatchRunOrchestrator
from magicpod_api_client.testing.payloads import batch_run, cross_batch_run_response

URL_BASE = "http://magicpod.test"
PROJECT_URL = f"{URL_BASE}/api/v1.0/test-org/test-project"
CLI_ARGS = [
    "--url-base",
    URL_BASE,
    "batch-run",
    "-t",
    "test-token",
    "-o",
    "test-org",
    "-p",
    "test-project",
]


def test_batch_run_succeeds(
    aioresponses: aioresponses_cls, capsys: pytest.CaptureFixture[str]
) -> None:
    """Exits with 0 after the batch run succeeded."""
    aioresponses.post(
        f"{PROJECT_URL}/batch-run/", payload=batch_run(batch_run_number=1, total=2)
    )
    aioresponses.get(
        f"{PROJECT_URL}/batch-run/1/",
        payload=batch_run(batch_run_number=1, status="succeeded", succeeded=2, total=2),
    )

    with pytest.raises(SystemExit) as exc_info:
        main([*CLI_ARGS, "-s", '{"model": "Pixel 4"}'])

    assert exc_info.value.code == 0
    out = capsys.readouterr().out
    assert "2/2 finished" in out
    assert "batch run succeeded" in out


def test_cross_batch_run_with_unresolved_and_failure(
    aioresponses: aioresponses_cls, capsys: pytest.CaptureFixture[str]
) -> None:
    """Polls every run of the group, failures win over unresolved cases."""
    aioresponses.post(
        f"{PROJECT_URL}/cross-batch-run/",
        payload=cross_batch_run_response(
            batch_run(batch_run_number=1), batch_run(batch_run_number=2)
        ),
    )
    aioresponses.get(
        f"{PROJECT_URL}/batch-run/1/",
        payload=batch_run(batch_run_number=1, status="succeeded", unresolved=1),
    )
    aioresponses.get(
        f"{PROJECT_URL}/batch-run/2/",
        payload=batch_run(batch_run_number=2, status="failed", failed=1),
    )

    with pytest.raises(SystemExit) as exc_info:
        main([*CLI_ARGS, "-S", "2"])

    assert exc_info.value.code == 1
    out = capsys.readouterr().out
    assert "batch run succeeded" in out
    assert "batch run failed (1 failed)" in out


def test_batch_run_polls_until_finished(aioresponses: aioresponses_cls) -> None:
    """Keeps polling a running batch run and exits with 2 on unresolved cases."""
    aioresponses.post(
        f"{PROJECT_URL}/batch-run/", payload=batch_run(batch_run_number=1, total=2)
    )
    aioresponses.get(
        f"{PROJECT_URL}/batch-run/1/",
        payload=batch_run(batch_run_number=1, succeeded=1, total=2),
    )
    aioresponses.get(
        f"{PROJECT_URL}/batch-run/1/",
        payload=batch_run(
            batch_run_number=1, status="unresolved", succeeded=1, unresolved=1, total=2
        ),
    )

    with (
        patch(
            "magicpod_api_client.cli.BatchRunOrchestrator",
            partial(BatchRunOrchestrator, sleep=AsyncMock()),
        ),
        pytest.raises(SystemExit) as exc_info,
    ):
        main(CLI_ARGS)

    assert exc_info.value.code == 2


def test_start_failure_exits_with_error(aioresponses: aioresponses_cls) -> None:
    """Exits with 1 when the server rejects the batch run."""
    aioresponses.post(f"{PROJECT_URL}/batch-run/", status=401, body="Invalid token")

    with pytest.raises(SystemExit) as exc_info:
        main(CLI_ARGS)

    assert exc_info.value.code == 1
