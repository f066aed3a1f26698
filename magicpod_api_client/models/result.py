"""Aggregated outcome of a group of batch runs."""

from dataclasses import dataclass

from magicpod_api_client.models.batch_run import BatchRun

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_UNRESOLVED = 2


@dataclass(frozen=True, kw_only=True)
class BatchRunOutcome:
    """Final decision over every batch run of one invocation."""

    has_error: bool = False
    has_unresolved: bool = False

    @property
    def exit_code(self) -> int:
        """Process exit code; errors take priority over unresolved cases."""
        if self.has_error:
            return EXIT_ERROR
        if self.has_unresolved:
            return EXIT_UNRESOLVED
        return EXIT_SUCCESS


@dataclass(kw_only=True)
class OutcomeAggregator:
    """Collects per-run terminal states while the group is polled."""

    has_error: bool = False
    has_unresolved: bool = False

    def record_terminal(self, batch_run: BatchRun) -> None:
        """Fold a batch run that reached a terminal status into the outcome.

        Unresolved cases are flagged whatever the final status is, since a
        batch run can succeed while some cases still need manual triage.
        """
        if batch_run.test_cases.unresolved > 0:
            self.has_unresolved = True
        if batch_run.status in ("failed", "aborted"):
            self.has_error = True

    def record_fetch_error(self) -> None:
        """Mark that a batch run was abandoned because it could not be fetched."""
        self.has_error = True

    def outcome(self) -> BatchRunOutcome:
        """Freeze the collected flags."""
        return BatchRunOutcome(
            has_error=self.has_error, has_unresolved=self.has_unresolved
        )
