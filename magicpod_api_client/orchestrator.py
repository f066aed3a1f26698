"""Orchestration of batch runs: start them and wait for their completion."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

import aiohttp

from magicpod_api_client.client import MagicPodClient
from magicpod_api_client.errors import ApiError, WaitLimitExceededError
from magicpod_api_client.models.batch_run import BatchRun
from magicpod_api_client.models.result import BatchRunOutcome, OutcomeAggregator
from magicpod_api_client.settings import resolve_setting

log = logging.getLogger(__name__)

# Poll more frequently at first.
INITIAL_POLL_INTERVAL = 10
INITIAL_POLL_PERIOD = 120
POLL_INTERVAL = 60
DEFAULT_WAIT_PER_TEST_CASE = 10 * 60


@dataclass(kw_only=True)
class PollContext:
    """Wait budget shared by every batch run of a group."""

    limit_seconds: int
    passed_seconds: int = 0
    aggregator: OutcomeAggregator = field(default_factory=OutcomeAggregator)

    @classmethod
    def for_group(
        cls, batch_runs: Sequence[BatchRun], wait_limit: int
    ) -> "PollContext":
        """Create context; a wait_limit of 0 allows 10 minutes per test case."""
        if wait_limit:
            return cls(limit_seconds=wait_limit)
        total = sum(batch_run.test_cases.total for batch_run in batch_runs)
        return cls(limit_seconds=total * DEFAULT_WAIT_PER_TEST_CASE)

    @property
    def exceeded(self) -> bool:
        """Whether more time passed than the group may wait."""
        return self.passed_seconds > self.limit_seconds

    def next_interval(self) -> int:
        """Seconds to wait before the next poll."""
        if self.passed_seconds < INITIAL_POLL_PERIOD:
            return INITIAL_POLL_INTERVAL
        return POLL_INTERVAL


def format_progress(batch_run: BatchRun) -> str:
    """Format the progress line of a batch run, e.g. ``3/5 finished (1 failed)``."""
    test_cases = batch_run.test_cases
    not_successful: list[str] = []
    if test_cases.failed > 0:
        not_successful.append(f"{test_cases.failed} failed")
    if test_cases.unresolved > 0:
        not_successful.append(f"{test_cases.unresolved} unresolved")

    line = f"{test_cases.finished}/{test_cases.total} finished"
    if not_successful:
        line += f" ({', '.join(not_successful)})"
    return line


def format_terminal(batch_run: BatchRun) -> str:
    """Format the closing line of a batch run in a terminal status."""
    test_cases = batch_run.test_cases
    match batch_run.status:
        case "succeeded":
            return "batch run succeeded"
        case "failed":
            if test_cases.failed == 0:
                return "batch run failed"
            if test_cases.unresolved > 0:
                return (
                    f"batch run failed ({test_cases.failed} failed, "
                    f"{test_cases.unresolved} unresolved)"
                )
            return f"batch run failed ({test_cases.failed} failed)"
        case "unresolved":
            return f"batch run unresolved ({test_cases.unresolved} unresolved)"
        case "aborted":
            return "batch run aborted"
        case _:
            raise ValueError(f"Batch run is not finished: status={batch_run.status}")


@dataclass(frozen=True, kw_only=True)
class BatchRunOrchestrator:
    """Starts batch runs and polls them one at a time until they finish."""

    client: MagicPodClient
    print_result: bool = True
    sleep: Callable[[float], Awaitable[None]] = field(
        default=asyncio.sleep, repr=False
    )

    def echo(self, message: str = "") -> None:
        """Print a progress line unless printing is disabled."""
        if self.print_result:
            print(message)

    async def start(self, test_settings_number: int, setting: str) -> list[BatchRun]:
        """Resolve the setting and start the batch run(s).

        Raises:
            SettingMismatchError: Before any request if the selector and the
                setting disagree
            ApiError: If the server rejects the start request

        """
        resolved = resolve_setting(test_settings_number, setting)
        batch_runs = list(
            await self.client.start_batch_run(resolved.payload, resolved.is_group)
        )
        log.info("Started %d batch run(s)", len(batch_runs))

        self.echo("test result page:")
        for batch_run in batch_runs:
            self.echo(batch_run.url)
        return batch_runs

    async def execute(
        self,
        test_settings_number: int,
        setting: str,
        *,
        wait_for_result: bool = True,
        wait_limit: int = 0,
    ) -> BatchRunOutcome:
        """Start batch run(s) and wait for their completion with progress."""
        batch_runs = await self.start(test_settings_number, setting)
        if not wait_for_result:
            return BatchRunOutcome()
        return await self.wait_for_completion(batch_runs, wait_limit=wait_limit)

    async def wait_for_completion(
        self, batch_runs: list[BatchRun], *, wait_limit: int = 0
    ) -> BatchRunOutcome:
        """Poll every batch run in order until it reaches a terminal status.

        Entries of batch_runs are replaced with the latest fetched state.

        Args:
            batch_runs: Started batch runs, in launch order
            wait_limit: Wait limit in seconds for the whole group, 0 for
                10 minutes per test case

        Returns:
            Aggregated outcome of the group

        Raises:
            WaitLimitExceededError: If the group does not finish in time

        """
        context = PollContext.for_group(batch_runs, wait_limit)

        for index, batch_run in enumerate(batch_runs):
            self.echo()
            self.echo(
                f"#{batch_run.batch_run_number} wait until "
                f"{batch_run.test_cases.total} tests to be finished.. "
            )
            await self._poll_batch_run(batch_runs, index, context)

        return context.aggregator.outcome()

    async def _poll_batch_run(
        self, batch_runs: list[BatchRun], index: int, context: PollContext
    ) -> None:
        batch_run_number = batch_runs[index].batch_run_number
        prev_finished = 0

        while True:
            try:
                batch_run = await self.client.get_batch_run(batch_run_number)
            except (ApiError, aiohttp.ClientError, TimeoutError) as e:
                log.error("Failed to fetch batch run #%d: %s", batch_run_number, e)
                self.echo(str(e) or type(e).__name__)
                context.aggregator.record_fetch_error()
                return

            batch_runs[index] = batch_run
            finished = batch_run.test_cases.finished
            if finished != prev_finished:
                self.echo(format_progress(batch_run))
                prev_finished = finished

            if batch_run.is_terminal:
                context.aggregator.record_terminal(batch_run)
                self.echo(format_terminal(batch_run))
                log.info(
                    "Batch run #%d finished: status=%s",
                    batch_run_number,
                    batch_run.status,
                )
                return

            if context.exceeded:
                raise WaitLimitExceededError("batch run never finished")

            interval = context.next_interval()
            log.debug(
                "Batch run #%d still running, next poll in %ds",
                batch_run_number,
                interval,
            )
            await self.sleep(interval)
            context.passed_seconds += interval
