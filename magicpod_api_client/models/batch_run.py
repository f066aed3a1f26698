"""Models for batch runs reported by the Magic Pod API."""

from collections.abc import Sequence
from typing import Annotated, Literal, TypeAlias

from pydantic import Field, TypeAdapter, ValidationError

from magicpod_api_client.models.base import Model

BatchRunStatus: TypeAlias = Literal["running", "succeeded", "failed", "unresolved", "aborted"]

TERMINAL_STATUSES: frozenset[BatchRunStatus] = frozenset(
    ["succeeded", "failed", "unresolved", "aborted"]
)


class TestCases(Model):
    """Per-status test case counters of a batch run."""

    __test__ = False

    succeeded: int = 0
    failed: int = 0
    aborted: int = 0
    unresolved: int = 0
    total: int = 0

    @property
    def finished(self) -> int:
        """Number of test cases that reached an outcome."""
        return self.succeeded + self.failed + self.aborted + self.unresolved


class BatchRun(Model):
    """A single batch run executed on the server."""

    url: str = Field(..., description="Result page of the batch run")
    status: BatchRunStatus = Field(
        default="running", description="Server-reported state of the batch run"
    )
    batch_run_number: int = Field(..., description="Number used to fetch the run")
    test_cases: TestCases = Field(default_factory=TestCases)

    @property
    def is_terminal(self) -> bool:
        """Whether the run stopped changing."""
        return self.status in TERMINAL_STATUSES


class BatchRunsResponse(Model):
    """Response wrapping a list of batch runs."""

    batch_runs: Sequence[BatchRun]


class UploadedFile(Model):
    """Response from the upload-file endpoint."""

    file_no: int


# Servers older than 0.65.0 answer a cross batch run with a bare batch run
# object instead of the wrapped list.
cross_batch_run_adapter: TypeAdapter[BatchRunsResponse | BatchRun] = TypeAdapter(
    Annotated[BatchRunsResponse | BatchRun, Field(union_mode="left_to_right")]
)


def parse_cross_batch_run_response(body: bytes | str) -> Sequence[BatchRun]:
    """Decode a cross batch run start response into a run group."""
    decoded = cross_batch_run_adapter.validate_json(body)
    if isinstance(decoded, BatchRun):
        return [decoded]
    if decoded.batch_runs:
        return list(decoded.batch_runs)

    # An empty list may still come with the fields of a single batch run.
    try:
        return [BatchRun.model_validate_json(body)]
    except ValidationError:
        return []
