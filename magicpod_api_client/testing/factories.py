"""Test factories for generating batch runs."""

from polyfactory import Use
from polyfactory.factories.pydantic_factory import ModelFactory

from magicpod_api_client.models.batch_run import BatchRun, TestCases


class BatchRunTestCasesFactory(ModelFactory[TestCases]):
    """Factory for TestCases, a running batch run with no finished case."""

    succeeded = 0
    failed = 0
    aborted = 0
    unresolved = 0
    total = 1


class BatchRunFactory(ModelFactory[BatchRun]):
    """Factory for BatchRun."""

    status = "running"
    test_cases = Use(BatchRunTestCasesFactory.build)
